"""Websocket transport for the Signal K delta stream."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

import aiohttp

from gpsfilter._constants import STREAM_ENDPOINT
from gpsfilter._redact import redact_for_log
from gpsfilter.config import SignalKConfig
from gpsfilter.exceptions import GpsFilterStreamClosedError, GpsFilterTransportError

_logger = logging.getLogger(__name__)


def build_stream_url(server_url: str) -> str:
    """Websocket URL of the delta stream, without the default subscription.

    ``subscribe=none`` keeps the server from sending every path of the
    vessel; the client subscribes explicitly after connecting.
    """
    base = server_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://") :]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://") :]
    return f"{base}{STREAM_ENDPOINT}?subscribe=none"


class SignalKStream:
    """Thin wrapper around an aiohttp websocket to a Signal K server."""

    def __init__(self, config: SignalKConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def url(self) -> str:
        return build_stream_url(self._config.server_url)

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        """Open the websocket.  Raises :class:`GpsFilterTransportError` on failure."""
        headers: dict[str, str] = {}
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"

        url = self.url
        _logger.debug("Connecting to %s headers=%s", url, redact_for_log(headers))
        try:
            self._ws = await self._http.ws_connect(url, headers=headers, heartbeat=30.0)
        except aiohttp.WSServerHandshakeError as exc:
            raise GpsFilterTransportError(
                f"Websocket handshake with {url} failed: HTTP {exc.status}",
                status_code=exc.status,
                url=url,
            ) from exc
        except aiohttp.ClientError as exc:
            raise GpsFilterTransportError(f"Connection to {url} failed: {exc}", url=url) from exc
        _logger.info("Connected to Signal K stream at %s", url)

    async def send_json(self, payload: Mapping[str, Any]) -> None:
        ws = self._require_ws()
        _logger.debug("Sending frame %s", redact_for_log(payload))
        try:
            await ws.send_str(json.dumps(payload, separators=(",", ":")))
        except (aiohttp.ClientError, ConnectionResetError) as exc:
            raise GpsFilterTransportError(f"Sending to {self.url} failed: {exc}", url=self.url) from exc

    async def messages(self) -> AsyncIterator[dict[str, Any]]:
        """Yield JSON objects received on the stream.

        Non-JSON text frames are skipped.  Raises
        :class:`GpsFilterStreamClosedError` once the server closes the socket.
        """
        ws = self._require_ws()
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    payload = json.loads(msg.data)
                except json.JSONDecodeError:
                    _logger.debug("Skipping non-JSON frame: %s", redact_for_log(msg.data, max_string=64))
                    continue
                if not isinstance(payload, dict):
                    continue
                _logger.debug("Received frame %s", redact_for_log(payload))
                yield payload
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise GpsFilterTransportError(f"Websocket error on {self.url}: {ws.exception()}", url=self.url)
        raise GpsFilterStreamClosedError(
            f"Signal K server closed the stream (code={ws.close_code})",
            url=self.url,
        )

    async def close(self) -> None:
        ws = self._ws
        self._ws = None
        if ws is not None and not ws.closed:
            await ws.close()

    def _require_ws(self) -> aiohttp.ClientWebSocketResponse:
        if self._ws is None:
            raise GpsFilterTransportError("Stream not connected. Call connect() first.", url=self.url)
        return self._ws
