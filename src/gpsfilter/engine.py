"""Position decision engine.

:class:`PositionFilter` owns one filtering scope: its configuration, the
bounded history of accepted fixes and the running statistics.  Each
candidate is evaluated against that state and, when accepted, appended to
the history and handed to the output sink.

The engine is synchronous and not re-entrant.  Callers delivering
candidates from several threads must serialize calls to :meth:`decide`
and :meth:`submit` themselves.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from pydantic import ValidationError

from gpsfilter.config import FilterConfig
from gpsfilter.geodesy import haversine_distance
from gpsfilter.ingestion.normalize import coordinate_value, parse_timestamp_millis
from gpsfilter.models.decision import Decision, FilterStats, ReasonCode
from gpsfilter.models.position import GeoPoint, PositionSample
from gpsfilter.models.scope import AllSources, SingleSource, describe_scope, in_scope
from gpsfilter.state.events import DecisionEvent, DecisionObserver, LoggingObserver
from gpsfilter.state.history import PositionHistory
from gpsfilter.state.policy import evaluate_speed, match_exclusion_zone

_logger = logging.getLogger(__name__)

#: Called once with every accepted sample, unchanged.
PositionSink = Callable[[PositionSample], None]

# Ignored-source debug lines are only logged while fewer candidates than
# this have been received.
_IGNORED_SOURCE_LOG_LIMIT = 5


def _now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


def describe_status(decision: Decision, stats: FilterStats) -> str | None:
    """Status line after *decision*, or ``None`` to keep the current one."""
    if decision.reason == ReasonCode.MALFORMED_INPUT:
        return None
    if decision.accepted:
        return f"GPS filtering active ({stats.allowed_count} allowed, {stats.dropped_count} dropped)"
    if decision.reason == ReasonCode.EXCLUDED_ZONE:
        return f"Dropped invalid coordinate ({stats.dropped_count} total dropped)"
    return f"Dropped high-speed position ({stats.dropped_count} total dropped)"


class PositionFilter:
    """Accept/reject engine for one filtering scope.

    Usage::

        engine = PositionFilter(FilterConfig.from_options(options), sink=forward)
        decision = engine.submit("n2k.177", 52.1, 4.3, "2024-05-01T10:00:00Z")
    """

    def __init__(
        self,
        config: FilterConfig | None = None,
        *,
        sink: PositionSink | None = None,
        observers: Iterable[DecisionObserver] = (),
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._config = config if config is not None else FilterConfig()
        self._sink = sink
        self._clock = clock
        self._observers: list[DecisionObserver] = [LoggingObserver(verbose=self._config.enable_logging)]
        self._observers.extend(observers)
        self._history = PositionHistory(self._config.history_size)
        self._stats = FilterStats()
        self._status = ""
        self._log_start()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def config(self) -> FilterConfig:
        return self._config

    @property
    def history(self) -> PositionHistory:
        """Accepted fixes, oldest first.  Mutated only by this engine."""
        return self._history

    @property
    def stats(self) -> FilterStats:
        """Snapshot of the running counters."""
        return self._stats.snapshot()

    @property
    def status(self) -> str:
        """Human-readable status line, as a host would display it."""
        return self._status

    def add_observer(self, observer: DecisionObserver) -> None:
        self._observers.append(observer)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def submit(
        self,
        source_id: str | None,
        latitude: Any,
        longitude: Any,
        timestamp: Any = None,
    ) -> Decision | None:
        """Validate raw boundary input and run it through :meth:`decide`.

        Out-of-scope sources are ignored (``None``).  Coordinates that are
        missing, not numbers, not finite or out of range, and timestamps
        that cannot be parsed, produce a ``malformed_input`` rejection that
        leaves history and the received/allowed/dropped counters alone.
        A missing timestamp means "now".
        """
        if not in_scope(source_id, self._config.target_scope):
            self._log_ignored(source_id)
            return None

        sample = self._build_sample(source_id or "", latitude, longitude, timestamp)
        if sample is None:
            decision = Decision(accepted=False, reason=ReasonCode.MALFORMED_INPUT)
            self._stats.malformed_count += 1
            self._notify(
                DecisionEvent(
                    decision=decision,
                    stats=self._stats.snapshot(),
                    history_length=len(self._history),
                    source_id=source_id,
                    raw={"latitude": latitude, "longitude": longitude, "timestamp": timestamp},
                )
            )
            return decision
        return self.decide(sample)

    def decide(self, sample: PositionSample) -> Decision | None:
        """Accept or reject *sample*.

        Returns ``None`` when the sample's source is outside the configured
        scope; nothing is recorded in that case.  Otherwise the sample is
        counted as received, checked against the exclusion zones and then
        against the speed policy.  Only accepted samples enter the history
        and reach the sink.
        """
        if not in_scope(sample.source_id, self._config.target_scope):
            self._log_ignored(sample.source_id)
            return None

        self._stats.received_count += 1
        latest = self._history.latest()
        distance_from_last = haversine_distance(latest.point, sample.point) if latest is not None else None

        zone_match = match_exclusion_zone(
            sample.point,
            self._config.exclusion_zones,
            enabled=self._config.enable_invalid_coordinate_filter,
        )
        if zone_match.excluded:
            decision = Decision.from_zone_match(zone_match)
        else:
            decision = Decision.from_speed_check(
                evaluate_speed(
                    sample.point,
                    sample.timestamp_millis,
                    self._history,
                    max_speed_knots=self._config.max_speed_knots,
                    timeout_seconds=self._config.timeout_seconds,
                )
            )

        if decision.accepted:
            self._history.append(sample)
            self._stats.allowed_count += 1
            self._stats.last_accepted_at_millis = self._clock()
        else:
            self._stats.dropped_count += 1

        status = describe_status(decision, self._stats)
        if status is not None:
            self._status = status

        self._notify(
            DecisionEvent(
                decision=decision,
                stats=self._stats.snapshot(),
                history_length=len(self._history),
                sample=sample,
                source_id=sample.source_id,
                distance_from_last_meters=distance_from_last,
            )
        )

        if decision.accepted:
            self._forward(sample)
        return decision

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Forget all accepted fixes and zero the counters."""
        self._history.clear()
        self._stats = FilterStats()
        self._status = f"GPS filter active - monitoring {describe_scope(self._config.target_scope)}"

    def stop(self) -> None:
        """Reset state and mark the filter as stopped."""
        self._history.clear()
        self._stats = FilterStats()
        self._status = "GPS filter stopped"
        _logger.info("GPS Filter stopped")

    def heartbeat_line(self) -> str:
        """One-line summary of counters and history, for periodic logging."""
        stats = self._stats
        if stats.last_accepted_at_millis is None:
            since_last = "never"
        else:
            since_last = f"{round((self._clock() - stats.last_accepted_at_millis) / 1000)}s ago"
        return (
            f"GPS Filter: Heartbeat - Received: {stats.received_count}, "
            f"Allowed: {stats.allowed_count}, Dropped: {stats.dropped_count}, "
            f"Last: {since_last}, History: {len(self._history)}"
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build_sample(
        self,
        source_id: str,
        latitude: Any,
        longitude: Any,
        timestamp: Any,
    ) -> PositionSample | None:
        lat = coordinate_value(latitude)
        lon = coordinate_value(longitude)
        if lat is None or lon is None:
            return None
        if timestamp is None:
            timestamp_ms: int | None = self._clock()
        else:
            timestamp_ms = parse_timestamp_millis(timestamp)
        if timestamp_ms is None:
            return None
        try:
            point = GeoPoint(latitude=lat, longitude=lon)
        except ValidationError:
            return None
        return PositionSample(point=point, timestamp_millis=timestamp_ms, source_id=source_id)

    def _forward(self, sample: PositionSample) -> None:
        if self._sink is None:
            return
        try:
            self._sink(sample)
        except Exception:
            _logger.warning("Position sink failed for sample from %s", sample.source_id, exc_info=True)

    def _notify(self, event: DecisionEvent) -> None:
        for observer in self._observers:
            try:
                observer.on_decision(event)
            except Exception:
                _logger.warning("Decision observer %r failed", observer, exc_info=True)

    def _log_ignored(self, source_id: str | None) -> None:
        if self._config.enable_logging and self._stats.received_count < _IGNORED_SOURCE_LOG_LIMIT:
            _logger.debug("GPS Filter: Ignoring source '%s' (not in target list)", source_id)

    def _log_start(self) -> None:
        config = self._config
        scope = config.target_scope
        if isinstance(scope, AllSources):
            _logger.info("Target sources: ALL GPS sources")
        elif isinstance(scope, SingleSource):
            _logger.info("Target source: '%s'", scope.source_id)
        else:
            _logger.info("Target sources: [%s]", ", ".join(sorted(scope.source_ids)))
        _logger.info("Max speed: %s knots", config.max_speed_knots)
        _logger.info("History size: %d positions", config.history_size)
        _logger.info("Invalid coordinate filter: %s", config.enable_invalid_coordinate_filter)
        self._status = f"GPS filter active - monitoring {describe_scope(scope)}"
