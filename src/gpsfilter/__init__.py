"""gpsfilter - Speed and invalid-coordinate filter for GPS position streams."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("gps-speed-filter")
except PackageNotFoundError:
    __version__ = "0+local"
from gpsfilter.client import GpsFilterClient
from gpsfilter.config import FilterConfig, SignalKConfig
from gpsfilter.engine import PositionFilter, PositionSink
from gpsfilter.exceptions import (
    GpsFilterConfigError,
    GpsFilterError,
    GpsFilterStreamClosedError,
    GpsFilterTransportError,
)
from gpsfilter.geodesy import haversine_distance
from gpsfilter.models import (
    AllSources,
    Decision,
    ExclusionZone,
    FilterStats,
    GeoPoint,
    PositionSample,
    ReasonCode,
    SingleSource,
    SourceSet,
    SpeedCheckResult,
    TargetScope,
    ZoneMatch,
)
from gpsfilter.state.events import DecisionEvent, DecisionObserver, LoggingObserver
from gpsfilter.state.history import PositionHistory

__all__ = [
    "__version__",
    "AllSources",
    "Decision",
    "DecisionEvent",
    "DecisionObserver",
    "ExclusionZone",
    "FilterConfig",
    "FilterStats",
    "GeoPoint",
    "GpsFilterClient",
    "GpsFilterConfigError",
    "GpsFilterError",
    "GpsFilterStreamClosedError",
    "GpsFilterTransportError",
    "LoggingObserver",
    "PositionFilter",
    "PositionHistory",
    "PositionSample",
    "PositionSink",
    "ReasonCode",
    "SignalKConfig",
    "SingleSource",
    "SourceSet",
    "SpeedCheckResult",
    "TargetScope",
    "ZoneMatch",
    "haversine_distance",
]
