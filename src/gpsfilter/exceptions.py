"""Custom exception hierarchy for gpsfilter."""

from __future__ import annotations


class GpsFilterError(Exception):
    """Base exception for all gpsfilter errors."""


class GpsFilterConfigError(GpsFilterError):
    """Invalid or missing configuration.

    Raised once, when the filter is constructed.  The filter refuses to
    start rather than running with clamped or guessed values.
    """


class GpsFilterTransportError(GpsFilterError):
    """Websocket-level failure talking to the Signal K server."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class GpsFilterStreamClosedError(GpsFilterTransportError):
    """The Signal K server closed the delta stream."""
