"""Typed value models used by the filter."""

from gpsfilter.models.decision import Decision, FilterStats, ReasonCode, SpeedCheckResult, ZoneMatch
from gpsfilter.models.position import ExclusionZone, GeoPoint, PositionSample
from gpsfilter.models.scope import (
    AllSources,
    SingleSource,
    SourceSet,
    TargetScope,
    describe_scope,
    in_scope,
    resolve_target_scope,
)

__all__ = [
    "AllSources",
    "Decision",
    "ExclusionZone",
    "FilterStats",
    "GeoPoint",
    "PositionSample",
    "ReasonCode",
    "SingleSource",
    "SourceSet",
    "SpeedCheckResult",
    "TargetScope",
    "ZoneMatch",
    "describe_scope",
    "in_scope",
    "resolve_target_scope",
]
