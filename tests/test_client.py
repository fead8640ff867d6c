from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from gpsfilter._stream import build_stream_url
from gpsfilter.client import GpsFilterClient
from gpsfilter.config import FilterConfig, SignalKConfig
from gpsfilter.exceptions import GpsFilterError, GpsFilterStreamClosedError, GpsFilterTransportError
from gpsfilter.models.decision import ReasonCode

_CONTEXT = "vessels.urn:mrn:imo:mmsi:244000000"
Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _delta(source: str, lat: float, lon: float, timestamp: str) -> dict[str, Any]:
    return {
        "context": _CONTEXT,
        "updates": [
            {
                "$source": source,
                "timestamp": timestamp,
                "values": [{"path": "navigation.position", "value": {"latitude": lat, "longitude": lon}}],
            }
        ],
    }


@pytest_asyncio.fixture
async def serve() -> AsyncIterator[Callable[[Handler], Awaitable[str]]]:
    servers: list[test_utils.TestServer] = []

    async def _serve(handler: Handler) -> str:
        app = web.Application()
        app.router.add_get("/signalk/v1/stream", handler)
        server = test_utils.TestServer(app, host="127.0.0.1")
        await server.start_server()
        servers.append(server)
        return f"http://{server.host}:{server.port}"

    yield _serve
    for server in servers:
        await server.close()


@pytest.mark.parametrize(
    ("server_url", "expected"),
    [
        ("http://localhost:3000", "ws://localhost:3000/signalk/v1/stream?subscribe=none"),
        ("https://boat.local/", "wss://boat.local/signalk/v1/stream?subscribe=none"),
        ("ws://10.0.0.2:3000", "ws://10.0.0.2:3000/signalk/v1/stream?subscribe=none"),
    ],
)
def test_build_stream_url(server_url: str, expected: str) -> None:
    assert build_stream_url(server_url) == expected


@pytest.mark.asyncio
async def test_handle_delta_without_stream() -> None:
    client = GpsFilterClient(FilterConfig(target_scope="n2k.177"))  # type: ignore[arg-type]

    decisions = await client.handle_delta(
        {
            "updates": [
                {
                    "$source": "n2k.177",
                    "timestamp": "2026-01-01T00:00:00Z",
                    "values": [{"path": "navigation.position", "value": {"latitude": 52.0, "longitude": 4.0}}],
                },
                {
                    "$source": "gps-speed-filter.n2k.177",
                    "timestamp": "2026-01-01T00:00:01Z",
                    "values": [{"path": "navigation.position", "value": {"latitude": 60.0, "longitude": 4.0}}],
                },
                {
                    "$source": "n2k.3",
                    "timestamp": "2026-01-01T00:00:01Z",
                    "values": [{"path": "navigation.position", "value": {"latitude": 60.0, "longitude": 4.0}}],
                },
                {
                    "$source": "n2k.177",
                    "timestamp": "2026-01-01T00:00:02Z",
                    "values": [{"path": "navigation.position", "value": {"latitude": "52.0", "longitude": 4.0}}],
                },
            ]
        }
    )

    assert [d.reason for d in decisions] == [ReasonCode.FIRST_POSITION, ReasonCode.MALFORMED_INPUT]
    stats = client.stats
    assert (stats.received_count, stats.allowed_count, stats.dropped_count) == (1, 1, 0)
    assert stats.malformed_count == 1


@pytest.mark.asyncio
async def test_run_requires_context_manager() -> None:
    client = GpsFilterClient()
    with pytest.raises(GpsFilterError):
        await client.run(reconnect=False)


@pytest.mark.asyncio
async def test_stream_filters_and_forwards(serve: Callable[[Handler], Awaitable[str]]) -> None:
    seen: dict[str, Any] = {}

    async def handler(request: web.Request) -> web.WebSocketResponse:
        seen["authorization"] = request.headers.get("Authorization")
        seen["query"] = request.query_string
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        await ws.send_json({"name": "signalk-server", "version": "2.8.0", "self": _CONTEXT})
        seen["subscription"] = await ws.receive_json()
        await ws.send_json(_delta("n2k.177", 52.0, 4.0, "2026-01-01T00:00:00.000Z"))
        seen["forwarded"] = await ws.receive_json()
        # One degree of latitude in ten seconds.
        await ws.send_json(_delta("n2k.177", 53.0, 4.0, "2026-01-01T00:00:10.000Z"))
        await ws.close()
        return ws

    url = await serve(handler)
    async with GpsFilterClient(
        FilterConfig(max_speed_knots=50.0),
        SignalKConfig(server_url=url, token="secret", reconnect_delay=0.0),
    ) as client:
        with pytest.raises(GpsFilterStreamClosedError):
            await client.run(reconnect=False)
        stats = client.stats
        status = client.status

    assert (stats.received_count, stats.allowed_count, stats.dropped_count) == (2, 1, 1)
    assert status == "Dropped high-speed position (1 total dropped)"
    assert client.status == "GPS filter stopped"

    assert seen["authorization"] == "Bearer secret"
    assert seen["query"] == "subscribe=none"
    assert seen["subscription"] == {
        "context": "vessels.self",
        "subscribe": [{"path": "navigation.position", "period": 1000, "minPeriod": 100}],
    }
    forwarded = seen["forwarded"]
    assert forwarded["context"] == _CONTEXT
    assert forwarded["updates"][0]["$source"] == "gps-speed-filter.n2k.177"
    assert forwarded["updates"][0]["timestamp"] == "2026-01-01T00:00:00.000Z"
    assert forwarded["updates"][0]["values"] == [
        {"path": "navigation.position", "value": {"latitude": 52.0, "longitude": 4.0}}
    ]


@pytest.mark.asyncio
async def test_handshake_rejection_maps_to_transport_error(serve: Callable[[Handler], Awaitable[str]]) -> None:
    async def handler(request: web.Request) -> web.Response:
        return web.Response(status=401, text="unauthorized")

    url = await serve(handler)
    async with GpsFilterClient(stream_config=SignalKConfig(server_url=url)) as client:
        with pytest.raises(GpsFilterTransportError) as excinfo:
            await client.run(reconnect=False)

    assert excinfo.value.status_code == 401
    assert excinfo.value.url.endswith("/signalk/v1/stream?subscribe=none")


@pytest.mark.asyncio
async def test_connection_refused_maps_to_transport_error() -> None:
    async with GpsFilterClient(stream_config=SignalKConfig(server_url="http://127.0.0.1:1")) as client:
        with pytest.raises(GpsFilterTransportError):
            await client.run(reconnect=False)


@pytest.mark.asyncio
async def test_run_reconnects_after_failures(serve: Callable[[Handler], Awaitable[str]]) -> None:
    attempts = 0

    async def handler(request: web.Request) -> web.Response:
        nonlocal attempts
        attempts += 1
        return web.Response(status=503)

    url = await serve(handler)
    async with GpsFilterClient(stream_config=SignalKConfig(server_url=url, reconnect_delay=0.01)) as client:
        with pytest.raises(TimeoutError):
            await asyncio.wait_for(client.run(), timeout=0.5)

    assert attempts >= 2
