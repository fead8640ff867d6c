"""Decision, check-result and statistics models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from gpsfilter.models.position import ExclusionZone


class ReasonCode(StrEnum):
    FIRST_POSITION = "first_position"
    TIMEOUT_OVERRIDE = "timeout_override"
    SPEED_OK = "speed_ok"
    SPEED_TOO_HIGH = "speed_too_high"
    TIME_DELTA_TOO_SMALL = "time_delta_too_small"
    EXCLUDED_ZONE = "excluded_zone"
    MALFORMED_INPUT = "malformed_input"

    @property
    def label(self) -> str:
        """Log-friendly wording, e.g. ``"Speed too high"``."""
        return _REASON_LABELS[self]


_REASON_LABELS: dict[ReasonCode, str] = {
    ReasonCode.FIRST_POSITION: "First position",
    ReasonCode.TIMEOUT_OVERRIDE: "Timeout exceeded",
    ReasonCode.SPEED_OK: "Speed check passed",
    ReasonCode.SPEED_TOO_HIGH: "Speed too high",
    ReasonCode.TIME_DELTA_TOO_SMALL: "Time difference too small",
    ReasonCode.EXCLUDED_ZONE: "Invalid coordinate",
    ReasonCode.MALFORMED_INPUT: "Invalid position data structure",
}


class ZoneMatch(BaseModel):
    """Result of testing a point against the exclusion zones."""

    model_config = ConfigDict(frozen=True)

    excluded: bool
    matched_zone: ExclusionZone | None = None
    distance_meters: float | None = None


class SpeedCheckResult(BaseModel):
    """Outcome of the multi-reference speed check.

    ``max_observed_speed_knots`` is only set when speeds were actually
    computed; ``time_diff_seconds`` is the gap to the latest accepted fix.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    reason: ReasonCode
    max_observed_speed_knots: float | None = None
    time_diff_seconds: float | None = None


class Decision(BaseModel):
    """Accept/reject verdict for one candidate."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    reason: ReasonCode
    computed_speed_knots: float | None = None
    time_diff_seconds: float | None = None
    matched_zone: ExclusionZone | None = None
    zone_distance_meters: float | None = None

    @classmethod
    def from_speed_check(cls, result: SpeedCheckResult) -> Decision:
        return cls(
            accepted=result.valid,
            reason=result.reason,
            computed_speed_knots=result.max_observed_speed_knots,
            time_diff_seconds=result.time_diff_seconds,
        )

    @classmethod
    def from_zone_match(cls, match: ZoneMatch) -> Decision:
        return cls(
            accepted=False,
            reason=ReasonCode.EXCLUDED_ZONE,
            matched_zone=match.matched_zone,
            zone_distance_meters=match.distance_meters,
        )


class FilterStats(BaseModel):
    """Running counters of one filter instance.

    ``received_count`` counts in-scope, well-formed candidates and always
    equals ``allowed_count + dropped_count``.  Malformed input is tracked
    separately in ``malformed_count``.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    received_count: int = 0
    allowed_count: int = 0
    dropped_count: int = 0
    malformed_count: int = 0
    last_accepted_at_millis: int | None = None

    def snapshot(self) -> FilterStats:
        """Detached copy safe to hand to observers."""
        return self.model_copy()
