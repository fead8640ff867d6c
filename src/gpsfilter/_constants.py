"""Internal constants shared across the library."""

#: Mean Earth radius used by the Haversine formula, in metres.
EARTH_RADIUS_M = 6_371_000.0

#: One knot expressed in metres per second.
METERS_PER_SECOND_PER_KNOT = 0.514444

# ------------------------------------------------------------------
# Speed check tuning
# ------------------------------------------------------------------

#: Gaps at or below this many seconds are too small to estimate a speed.
MIN_TIME_DELTA_S = 0.1

#: Number of most recent history samples used as speed references.
SPEED_REFERENCE_COUNT = 5

#: History length from which the centroid cross-check is applied.
CENTROID_MIN_HISTORY = 3

# ------------------------------------------------------------------
# Signal K
# ------------------------------------------------------------------

POSITION_PATH = "navigation.position"
SELF_CONTEXT = "vessels.self"
STREAM_ENDPOINT = "/signalk/v1/stream"

#: Label used as ``$source`` for re-emitted positions.
FORWARD_SOURCE_LABEL = "gps-speed-filter"

#: Sentinel ``targetSource`` values meaning "every source".
ALL_SOURCES_SENTINELS: frozenset[str] = frozenset({"ALL", "*"})

#: Subscription rates requested from the server, in milliseconds.
SUBSCRIBE_PERIOD_MS = 1000
SUBSCRIBE_MIN_PERIOD_MS = 100
