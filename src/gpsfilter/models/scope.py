"""Source targeting.

``targetSource`` arrives as ``"ALL"``, a single source id, or a list of ids.
It is resolved once into one of the scope types below so the per-candidate
check is a plain type dispatch.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from gpsfilter._constants import ALL_SOURCES_SENTINELS


class AllSources(BaseModel):
    model_config = ConfigDict(frozen=True)


class SingleSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_id: str

    @field_validator("source_id")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        source_id = value.strip()
        if not source_id:
            raise ValueError("source_id must be non-empty")
        return source_id


class SourceSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_ids: frozenset[str]

    @field_validator("source_ids")
    @classmethod
    def _non_empty(cls, value: frozenset[str]) -> frozenset[str]:
        cleaned = frozenset(item.strip() for item in value if item.strip())
        if not cleaned:
            raise ValueError("source_ids must contain at least one source id")
        return cleaned


TargetScope = AllSources | SingleSource | SourceSet


def resolve_target_scope(value: Any) -> TargetScope:
    """Resolve a raw ``targetSource`` option into a :data:`TargetScope`.

    Raises :class:`ValueError` for empty or wrongly typed values.
    """
    if isinstance(value, (AllSources, SingleSource, SourceSet)):
        return value
    if value is None:
        return AllSources()
    if isinstance(value, str):
        if value.strip() in ALL_SOURCES_SENTINELS:
            return AllSources()
        return SingleSource(source_id=value)
    if isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
        if not all(isinstance(item, str) for item in items):
            raise ValueError("targetSource list must contain only strings")
        if any(item.strip() in ALL_SOURCES_SENTINELS for item in items):
            return AllSources()
        return SourceSet(source_ids=frozenset(items))
    raise ValueError(f"targetSource must be a string or a list of strings, got {type(value).__name__}")


def in_scope(source_id: str | None, scope: TargetScope) -> bool:
    """Whether *source_id* is validated under *scope*."""
    if isinstance(scope, AllSources):
        return True
    if not source_id:
        return False
    if isinstance(scope, SingleSource):
        return source_id == scope.source_id
    return source_id in scope.source_ids


def describe_scope(scope: TargetScope) -> str:
    """Short human-readable description used in status and start-up logs."""
    if isinstance(scope, AllSources):
        return "all GPS sources"
    if isinstance(scope, SingleSource):
        return "1 GPS source"
    count = len(scope.source_ids)
    return f"{count} GPS source" if count == 1 else f"{count} GPS sources"
