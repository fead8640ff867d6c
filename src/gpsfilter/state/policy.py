"""Deterministic accept/reject policy.

This module contains *no* payload parsing.  The ingestion boundary is
responsible for producing typed :class:`PositionSample` values; everything
here is pure computation over those values and the current history.
"""

from __future__ import annotations

from collections.abc import Sequence

from gpsfilter._constants import CENTROID_MIN_HISTORY, MIN_TIME_DELTA_S, SPEED_REFERENCE_COUNT
from gpsfilter.geodesy import haversine_distance, implied_speed_knots
from gpsfilter.models.decision import ReasonCode, SpeedCheckResult, ZoneMatch
from gpsfilter.models.position import ExclusionZone, GeoPoint
from gpsfilter.state.history import PositionHistory

_NOT_EXCLUDED = ZoneMatch(excluded=False)


def match_exclusion_zone(
    point: GeoPoint,
    zones: Sequence[ExclusionZone],
    *,
    enabled: bool = True,
) -> ZoneMatch:
    """Return the first zone (in configured order) that contains *point*.

    The boundary is inclusive: a point exactly ``radius_meters`` from the
    centre is excluded.
    """
    if not enabled:
        return _NOT_EXCLUDED
    for zone in zones:
        distance = haversine_distance(point, zone.center)
        if distance <= zone.radius_meters:
            return ZoneMatch(excluded=True, matched_zone=zone, distance_meters=distance)
    return _NOT_EXCLUDED


def evaluate_speed(
    candidate: GeoPoint,
    at_millis: int,
    history: PositionHistory,
    *,
    max_speed_knots: float,
    timeout_seconds: float,
) -> SpeedCheckResult:
    """Check that *candidate* is reachable from the accepted history.

    Policy:
    - No history: accept as the first position.
    - Gap to the latest fix above ``timeout_seconds``: accept, the old fix
      is too stale to bound speed.
    - Gap of 0.1 s or less (including negative gaps): reject.
    - Otherwise the implied speed from each of the last five fixes, and
      from the history centroid once three fixes exist, must not exceed
      ``max_speed_knots``.
    """
    latest = history.latest()
    if latest is None:
        return SpeedCheckResult(valid=True, reason=ReasonCode.FIRST_POSITION)

    time_diff = (at_millis - latest.timestamp_millis) / 1000.0

    if time_diff > timeout_seconds:
        return SpeedCheckResult(valid=True, reason=ReasonCode.TIMEOUT_OVERRIDE, time_diff_seconds=time_diff)

    if time_diff <= MIN_TIME_DELTA_S:
        return SpeedCheckResult(valid=False, reason=ReasonCode.TIME_DELTA_TOO_SMALL, time_diff_seconds=time_diff)

    max_speed = 0.0
    for reference in history.recent(SPEED_REFERENCE_COUNT):
        elapsed = (at_millis - reference.timestamp_millis) / 1000.0
        if elapsed <= MIN_TIME_DELTA_S:
            continue
        distance = haversine_distance(reference.point, candidate)
        max_speed = max(max_speed, implied_speed_knots(distance, elapsed))

    if len(history) >= CENTROID_MIN_HISTORY:
        centroid = history.centroid()
        assert centroid is not None  # noqa: S101
        # Measured over the gap to the latest fix, not the centroid's age.
        distance = haversine_distance(centroid, candidate)
        max_speed = max(max_speed, implied_speed_knots(distance, time_diff))

    valid = max_speed <= max_speed_knots
    return SpeedCheckResult(
        valid=valid,
        reason=ReasonCode.SPEED_OK if valid else ReasonCode.SPEED_TOO_HIGH,
        max_observed_speed_knots=max_speed,
        time_diff_seconds=time_diff,
    )
