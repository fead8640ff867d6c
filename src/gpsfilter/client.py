"""High-level async client that filters a Signal K position stream."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import aiohttp

from gpsfilter._constants import POSITION_PATH
from gpsfilter._stream import SignalKStream
from gpsfilter.config import FilterConfig, SignalKConfig
from gpsfilter.engine import PositionFilter
from gpsfilter.exceptions import GpsFilterError, GpsFilterTransportError
from gpsfilter.ingestion.delta import (
    PositionUpdate,
    build_forward_delta,
    extract_position_updates,
    is_own_update,
    subscription_message,
)
from gpsfilter.models.decision import Decision, FilterStats
from gpsfilter.models.position import PositionSample
from gpsfilter.models.scope import AllSources, SingleSource
from gpsfilter.state.events import DecisionObserver

_logger = logging.getLogger(__name__)


class GpsFilterClient:
    """Async client filtering ``navigation.position`` on a Signal K server.

    Every position update from a targeted source is run through a
    :class:`~gpsfilter.engine.PositionFilter`; accepted ones are re-emitted
    on the same websocket, unchanged apart from their ``$source`` label.

    Usage::

        async with GpsFilterClient(FilterConfig.from_env(), SignalKConfig.from_env()) as client:
            await client.run()
    """

    def __init__(
        self,
        filter_config: FilterConfig | None = None,
        stream_config: SignalKConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        observers: Iterable[DecisionObserver] = (),
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._filter_config = filter_config if filter_config is not None else FilterConfig()
        self._stream_config = stream_config if stream_config is not None else SignalKConfig()
        self._external_session = session is not None
        self._http_session = session
        self._stream: SignalKStream | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._outbox: list[dict[str, Any]] = []
        self._current: PositionUpdate | None = None

        engine_kwargs: dict[str, Any] = {"sink": self._on_accepted, "observers": observers}
        if clock is not None:
            engine_kwargs["clock"] = clock
        self._engine = PositionFilter(self._filter_config, **engine_kwargs)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> GpsFilterClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._stream = SignalKStream(self._stream_config, self._http_session)
        self._engine.reset()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        _logger.info("GPS Filter started")
        return self

    async def __aexit__(self, *exc: Any) -> None:
        task = self._heartbeat_task
        self._heartbeat_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._stream is not None:
            await self._stream.close()
            self._stream = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._engine.stop()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def engine(self) -> PositionFilter:
        return self._engine

    @property
    def stats(self) -> FilterStats:
        return self._engine.stats

    @property
    def status(self) -> str:
        return self._engine.status

    async def run(self, *, reconnect: bool = True) -> None:
        """Stream, filter and forward until cancelled.

        Transport failures are logged and followed by a reconnect after
        ``reconnect_delay`` seconds.  History is kept across reconnects; a
        long outage simply ends in a timeout override.  With
        ``reconnect=False`` the first failure is raised instead.
        """
        while True:
            try:
                await self._run_once()
            except GpsFilterTransportError as exc:
                if not reconnect:
                    raise
                _logger.warning(
                    "GPS Filter subscription error: %s; reconnecting in %.1fs",
                    exc,
                    self._stream_config.reconnect_delay,
                )
            await asyncio.sleep(self._stream_config.reconnect_delay)

    async def handle_delta(self, delta: Mapping[str, Any]) -> list[Decision]:
        """Filter the position updates of one delta and forward accepted ones.

        Returns the decisions made, in order.  Ignored sources and the
        filter's own re-emitted positions produce no decision.
        """
        decisions: list[Decision] = []
        for update in extract_position_updates(delta):
            if is_own_update(update.source_id, self._stream_config.forward_source_label):
                continue
            self._current = update
            try:
                coordinates = update.coordinates
                decision = self._engine.submit(
                    update.source_id,
                    coordinates["latitude"],
                    coordinates["longitude"],
                    update.timestamp,
                )
            finally:
                self._current = None
            if decision is not None:
                decisions.append(decision)
        await self._flush_outbox()
        return decisions

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_once(self) -> None:
        stream = self._require_stream()
        await stream.connect()
        try:
            await stream.send_json(subscription_message(self._stream_config.context, path=POSITION_PATH))
            self._log_subscription()
            async for message in stream.messages():
                await self.handle_delta(message)
        finally:
            await stream.close()

    def _on_accepted(self, sample: PositionSample) -> None:
        """Engine sink: queue the re-emission of the update being processed."""
        update = self._current
        if update is None:
            return
        self._outbox.append(build_forward_delta(update, self._stream_config.forward_source_label))

    async def _flush_outbox(self) -> None:
        if not self._outbox:
            return
        pending = self._outbox
        self._outbox = []
        stream = self._stream
        if stream is None or not stream.is_connected:
            _logger.debug("Dropping %d forward deltas, stream not connected", len(pending))
            return
        for delta in pending:
            await stream.send_json(delta)

    async def _heartbeat_loop(self) -> None:
        interval = self._filter_config.heartbeat_seconds
        while True:
            await asyncio.sleep(interval)
            _logger.debug("%s", self._engine.heartbeat_line())

    def _log_subscription(self) -> None:
        scope = self._filter_config.target_scope
        if isinstance(scope, AllSources):
            _logger.info("GPS Filter: Subscribed to %s from ALL sources", POSITION_PATH)
        elif isinstance(scope, SingleSource):
            _logger.info("GPS Filter: Subscribed to %s from source '%s'", POSITION_PATH, scope.source_id)
        else:
            _logger.info(
                "GPS Filter: Subscribed to %s from sources: [%s]",
                POSITION_PATH,
                ", ".join(sorted(scope.source_ids)),
            )

    def _require_stream(self) -> SignalKStream:
        if self._stream is None:
            raise GpsFilterError("Client not initialized. Use 'async with GpsFilterClient(...) as client:'")
        return self._stream
