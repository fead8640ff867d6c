"""Structured decision events.

The engine reports every verdict as a :class:`DecisionEvent`.  Observers
decide what to do with them (log, count, publish); they never influence the
decision itself.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from gpsfilter.models.decision import Decision, FilterStats, ReasonCode
from gpsfilter.models.position import PositionSample


class DecisionEvent(BaseModel):
    """One decision together with the context it was made in."""

    model_config = ConfigDict(frozen=True)

    decision: Decision
    stats: FilterStats
    history_length: int
    sample: PositionSample | None = None
    source_id: str | None = None
    distance_from_last_meters: float | None = None
    raw: dict[str, Any] = Field(default_factory=dict, description="Boundary input, set for malformed candidates")


class DecisionObserver(Protocol):
    """Receives decision events from a :class:`~gpsfilter.engine.PositionFilter`."""

    def on_decision(self, event: DecisionEvent) -> None: ...


class LoggingObserver:
    """Render decision events as log lines.

    Verbose lines are emitted at DEBUG and only when *verbose* is set, which
    mirrors the ``enableLogging`` option.
    """

    def __init__(self, *, verbose: bool = False, logger: logging.Logger | None = None) -> None:
        self._verbose = verbose
        self._logger = logger or logging.getLogger("gpsfilter.decisions")

    def on_decision(self, event: DecisionEvent) -> None:
        if not self._verbose:
            return
        decision = event.decision
        if decision.reason == ReasonCode.MALFORMED_INPUT:
            self._logger.debug(
                "GPS Filter: %s - lat: %s, lon: %s",
                decision.reason.label,
                type(event.raw.get("latitude")).__name__,
                type(event.raw.get("longitude")).__name__,
            )
            return

        sample = event.sample
        if sample is not None:
            distance_text = (
                f"{event.distance_from_last_meters:.2f}m"
                if event.distance_from_last_meters is not None
                else "N/A (first)"
            )
            self._logger.debug(
                "GPS Filter: NEW POSITION from %s: %.7f, %.7f (distance: %s) [%d]",
                sample.source_id,
                sample.latitude,
                sample.longitude,
                distance_text,
                event.stats.received_count,
            )

        if decision.accepted:
            self._logger.debug(
                "GPS Filter: ALLOWED - %s (history: %d)",
                decision.reason.label,
                event.history_length,
            )
        elif decision.reason == ReasonCode.EXCLUDED_ZONE and decision.matched_zone is not None:
            self._logger.debug(
                "GPS Filter: DROPPED - Invalid coordinate (%.2fm from %s, %s)",
                decision.zone_distance_meters or 0.0,
                decision.matched_zone.center.latitude,
                decision.matched_zone.center.longitude,
            )
        elif decision.computed_speed_knots is not None:
            self._logger.debug(
                "GPS Filter: DROPPED - %s (%.2f knots)",
                decision.reason.label,
                decision.computed_speed_knots,
            )
        else:
            self._logger.debug("GPS Filter: DROPPED - %s", decision.reason.label)
