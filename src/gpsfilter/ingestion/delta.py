"""Signal K delta ingestion helpers.

This module flattens Signal K delta messages into per-value position
updates, and builds the messages the stream client sends back (the
subscription request and re-emitted positions).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gpsfilter._constants import (
    POSITION_PATH,
    SELF_CONTEXT,
    SUBSCRIBE_MIN_PERIOD_MS,
    SUBSCRIBE_PERIOD_MS,
)
from gpsfilter.ingestion.normalize import safe_str

_logger = logging.getLogger(__name__)


class _DeltaEnvelope(BaseModel):
    """Minimal Pydantic envelope for a Signal K delta."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    context: str | None = None
    updates: list[dict[str, Any]] = Field(...)


class _DeltaValue(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    path: str
    value: Any = None


class _DeltaUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    source_ref: str | None = Field(default=None, alias="$source")
    source: dict[str, Any] | None = None
    timestamp: str | int | float | None = None
    values: list[_DeltaValue] = Field(default_factory=list)


class PositionUpdate(BaseModel):
    """One ``navigation.position`` value taken out of a delta.

    ``value`` is the payload exactly as received.  Coordinates are not
    interpreted here; the engine decides whether they are usable.
    """

    model_config = ConfigDict(frozen=True)

    context: str = SELF_CONTEXT
    source_id: str | None = None
    source: dict[str, Any] | None = None
    timestamp: str | int | float | None = None
    path: str = POSITION_PATH
    value: Any = None

    @property
    def coordinates(self) -> dict[str, Any]:
        """Latitude and longitude exactly as received (possibly missing)."""
        if isinstance(self.value, Mapping):
            return {"latitude": self.value.get("latitude"), "longitude": self.value.get("longitude")}
        return {"latitude": None, "longitude": None}


def source_id_of(source_ref: str | None, source: Mapping[str, Any] | None) -> str | None:
    """Resolve the ``$source`` identifier of an update.

    Servers normally send ``$source``; older deltas only carry the
    ``source`` object, from which the ``label.src`` form is rebuilt.
    """
    if source_ref:
        return source_ref
    if not source:
        return None
    label = safe_str(source.get("label"))
    if label is None:
        return None
    src = safe_str(source.get("src"))
    return f"{label}.{src}" if src is not None else label


def extract_position_updates(delta: Mapping[str, Any], *, path: str = POSITION_PATH) -> list[PositionUpdate]:
    """Flatten a delta into the position updates it carries.

    Values for other paths are skipped.  A delta without an ``updates``
    list yields nothing; a single broken update is skipped without
    affecting its siblings.
    """
    try:
        envelope = _DeltaEnvelope.model_validate(delta)
    except ValidationError:
        return []

    context = envelope.context or SELF_CONTEXT
    result: list[PositionUpdate] = []
    for raw_update in envelope.updates:
        try:
            update = _DeltaUpdate.model_validate(raw_update)
        except ValidationError:
            _logger.debug("Skipping malformed delta update: %s", raw_update, exc_info=True)
            continue

        source_id = source_id_of(update.source_ref, update.source)
        for item in update.values:
            if item.path != path:
                continue
            result.append(
                PositionUpdate(
                    context=context,
                    source_id=source_id,
                    source=update.source,
                    timestamp=update.timestamp,
                    path=item.path,
                    value=item.value,
                )
            )
    return result


def build_forward_delta(update: PositionUpdate, source_label: str) -> dict[str, Any]:
    """Build the delta that re-emits an accepted position.

    Value and timestamp are carried over unchanged.  ``$source`` is
    prefixed with *source_label* so the stream client recognises its own
    output when the server echoes it back.
    """
    forwarded: dict[str, Any] = {"path": update.path, "value": update.value}
    entry: dict[str, Any] = {"values": [forwarded]}
    if update.timestamp is not None:
        entry["timestamp"] = update.timestamp
    if update.source is not None:
        entry["source"] = update.source
    entry["$source"] = f"{source_label}.{update.source_id}" if update.source_id else source_label
    return {"context": update.context, "updates": [entry]}


def is_own_update(source_id: str | None, source_label: str) -> bool:
    """Whether *source_id* belongs to positions this filter re-emitted."""
    if not source_id:
        return False
    return source_id == source_label or source_id.startswith(f"{source_label}.")


def subscription_message(
    context: str = SELF_CONTEXT,
    *,
    path: str = POSITION_PATH,
    period: int = SUBSCRIBE_PERIOD_MS,
    min_period: int = SUBSCRIBE_MIN_PERIOD_MS,
) -> dict[str, Any]:
    """Subscription request for the websocket stream."""
    return {
        "context": context,
        "subscribe": [{"path": path, "period": period, "minPeriod": min_period}],
    }
