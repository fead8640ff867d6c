"""Filter and stream configuration for gpsfilter."""

from __future__ import annotations

import dataclasses
import json
import os
from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from gpsfilter._constants import FORWARD_SOURCE_LABEL, SELF_CONTEXT
from gpsfilter.exceptions import GpsFilterConfigError
from gpsfilter.models.position import ExclusionZone, GeoPoint
from gpsfilter.models.scope import AllSources, TargetScope, resolve_target_scope

HISTORY_SIZE_MIN = 2
HISTORY_SIZE_MAX = 100


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _default_zones() -> tuple[ExclusionZone, ...]:
    return (ExclusionZone(center=GeoPoint(latitude=0.0, longitude=0.0), radius_meters=1000.0),)


class _InvalidCoordinateOption(BaseModel):
    """One entry of the ``invalidCoordinates`` option."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    tolerance: float = Field(
        default=1000.0,
        ge=0.0,
        validation_alias=AliasChoices("tolerance", "toleranceMeters", "tolerance_meters"),
    )

    def to_zone(self) -> ExclusionZone:
        return ExclusionZone(
            center=GeoPoint(latitude=self.latitude, longitude=self.longitude),
            radius_meters=self.tolerance,
        )


class _FilterOptions(BaseModel):
    """Plugin-style options, keyed in camelCase as the Signal K schema has them."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    target_source: str | list[str] | None = "ALL"
    max_speed_knots: float = Field(default=250.0, ge=1.0)
    timeout_seconds: float = Field(default=30.0, ge=1.0)
    history_size: int = Field(default=10, ge=HISTORY_SIZE_MIN, le=HISTORY_SIZE_MAX)
    invalid_coordinates: list[_InvalidCoordinateOption] | None = None
    enable_invalid_coordinate_filter: bool = True
    enable_logging: bool = False
    heartbeat_seconds: float = Field(default=30.0, gt=0.0)


@dataclasses.dataclass(frozen=True)
class FilterConfig:
    """Validated filter configuration.

    Parameters
    ----------
    target_scope : TargetScope
        Sources whose positions are validated.  Raw ``targetSource`` values
        (``"ALL"``, ``"*"``, a source id, or a list of ids) are resolved on
        construction.
    max_speed_knots : float
        Speed ceiling between accepted fixes.  Must be at least 1.
    timeout_seconds : float
        Gap after which a fix is accepted regardless of speed.  Must be at
        least 1.
    history_size : int
        Number of accepted fixes kept as speed references (2-100).
    exclusion_zones : tuple of ExclusionZone
        Circular regions that are always rejected.  Defaults to a 1 km
        circle around (0, 0).
    enable_invalid_coordinate_filter : bool
        Toggles the exclusion zone check.
    enable_logging : bool
        Verbose per-decision logging.  Has no effect on decisions.
    heartbeat_seconds : float
        Interval of the statistics heartbeat in the stream client.
    """

    target_scope: TargetScope = dataclasses.field(default_factory=AllSources)
    max_speed_knots: float = 250.0
    timeout_seconds: float = 30.0
    history_size: int = 10
    exclusion_zones: tuple[ExclusionZone, ...] = dataclasses.field(default_factory=_default_zones)
    enable_invalid_coordinate_filter: bool = True
    enable_logging: bool = False
    heartbeat_seconds: float = 30.0

    def __post_init__(self) -> None:
        try:
            scope = resolve_target_scope(self.target_scope)
        except ValueError as exc:
            raise GpsFilterConfigError(f"Invalid targetSource: {exc}") from exc
        object.__setattr__(self, "target_scope", scope)
        object.__setattr__(self, "exclusion_zones", tuple(self.exclusion_zones))

        if isinstance(self.history_size, bool) or not isinstance(self.history_size, int):
            raise GpsFilterConfigError(f"historySize must be an integer, got {self.history_size!r}")
        if not HISTORY_SIZE_MIN <= self.history_size <= HISTORY_SIZE_MAX:
            raise GpsFilterConfigError(
                f"historySize must be between {HISTORY_SIZE_MIN} and {HISTORY_SIZE_MAX}, got {self.history_size}"
            )
        if not self.max_speed_knots >= 1:
            raise GpsFilterConfigError(f"maxSpeedKnots must be at least 1, got {self.max_speed_knots}")
        if not self.timeout_seconds >= 1:
            raise GpsFilterConfigError(f"timeoutSeconds must be at least 1, got {self.timeout_seconds}")
        if not self.heartbeat_seconds > 0:
            raise GpsFilterConfigError(f"heartbeatSeconds must be positive, got {self.heartbeat_seconds}")
        for zone in self.exclusion_zones:
            if not isinstance(zone, ExclusionZone):
                raise GpsFilterConfigError(f"exclusion zones must be ExclusionZone instances, got {zone!r}")

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None = None) -> FilterConfig:
        """Build a configuration from plugin-style options.

        Keys follow the Signal K plugin schema (``targetSource``,
        ``maxSpeedKnots``, ``invalidCoordinates`` ...); snake_case names are
        accepted as well.  Missing keys take their defaults.

        Raises
        ------
        GpsFilterConfigError
            If any option is missing a required part or out of range.
        """
        try:
            parsed = _FilterOptions.model_validate(dict(options or {}))
        except ValidationError as exc:
            raise GpsFilterConfigError(f"Invalid filter options: {exc}") from exc

        zones = (
            tuple(item.to_zone() for item in parsed.invalid_coordinates)
            if parsed.invalid_coordinates is not None
            else _default_zones()
        )
        return cls(
            target_scope=parsed.target_source,  # type: ignore[arg-type]
            max_speed_knots=parsed.max_speed_knots,
            timeout_seconds=parsed.timeout_seconds,
            history_size=parsed.history_size,
            exclusion_zones=zones,
            enable_invalid_coordinate_filter=parsed.enable_invalid_coordinate_filter,
            enable_logging=parsed.enable_logging,
            heartbeat_seconds=parsed.heartbeat_seconds,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> FilterConfig:
        """Create configuration from ``GPSFILTER_*`` environment variables.

        ``GPSFILTER_TARGET_SOURCE`` takes a comma-separated list of source
        ids (or ``ALL``); ``GPSFILTER_INVALID_COORDINATES`` takes the JSON
        form of the ``invalidCoordinates`` option.  Explicit keyword
        arguments (camelCase option names) override environment values.
        """
        env = os.environ
        options: dict[str, Any] = {}

        target = env.get("GPSFILTER_TARGET_SOURCE")
        if target is not None:
            ids = [part.strip() for part in target.split(",") if part.strip()]
            options["targetSource"] = ids[0] if len(ids) == 1 else ids

        _ENV_NUMERIC_MAP = {
            "GPSFILTER_MAX_SPEED_KNOTS": "maxSpeedKnots",
            "GPSFILTER_TIMEOUT_SECONDS": "timeoutSeconds",
            "GPSFILTER_HISTORY_SIZE": "historySize",
            "GPSFILTER_HEARTBEAT_SECONDS": "heartbeatSeconds",
        }
        for env_key, option in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None:
                options[option] = val

        zones_env = env.get("GPSFILTER_INVALID_COORDINATES")
        if zones_env is not None:
            try:
                options["invalidCoordinates"] = json.loads(zones_env)
            except json.JSONDecodeError as exc:
                raise GpsFilterConfigError("GPSFILTER_INVALID_COORDINATES is not valid JSON") from exc

        options["enableInvalidCoordinateFilter"] = _env_bool(
            env.get("GPSFILTER_ENABLE_INVALID_COORDINATE_FILTER"),
            True,
        )
        options["enableLogging"] = _env_bool(env.get("GPSFILTER_ENABLE_LOGGING"), False)

        options.update(overrides)
        return cls.from_options(options)


@dataclasses.dataclass(frozen=True)
class SignalKConfig:
    """Connection settings for the Signal K delta stream.

    Parameters
    ----------
    server_url : str
        Base URL of the Signal K server (``http``/``https``; the websocket
        scheme is derived from it).
    token : str or None
        Optional access token sent as a bearer ``Authorization`` header.
    context : str
        Subscription context.
    forward_source_label : str
        ``$source`` label put on re-emitted positions.  Updates carrying
        this label are never filtered again.
    reconnect_delay : float
        Seconds to wait before reconnecting after a transport failure.
    """

    server_url: str = "http://localhost:3000"
    token: str | None = None
    context: str = SELF_CONTEXT
    forward_source_label: str = FORWARD_SOURCE_LABEL
    reconnect_delay: float = 5.0

    def __post_init__(self) -> None:
        if not self.server_url.startswith(("http://", "https://", "ws://", "wss://")):
            raise GpsFilterConfigError(f"server_url must be an http(s) or ws(s) URL, got {self.server_url!r}")
        if self.reconnect_delay < 0:
            raise GpsFilterConfigError(f"reconnect_delay must not be negative, got {self.reconnect_delay}")

    @classmethod
    def from_env(cls, **overrides: Any) -> SignalKConfig:
        """Create configuration from ``GPSFILTER_SIGNALK_*`` environment variables."""
        env = os.environ
        kwargs: dict[str, Any] = {}

        _ENV_CONFIG_MAP = {
            "GPSFILTER_SIGNALK_URL": "server_url",
            "GPSFILTER_SIGNALK_TOKEN": "token",
            "GPSFILTER_SIGNALK_CONTEXT": "context",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                kwargs[field_name] = val

        delay_env = env.get("GPSFILTER_RECONNECT_DELAY")
        if delay_env is not None and "reconnect_delay" not in overrides:
            try:
                kwargs["reconnect_delay"] = float(delay_env)
            except ValueError as exc:
                raise GpsFilterConfigError(f"GPSFILTER_RECONNECT_DELAY is not a number: {delay_env!r}") from exc

        kwargs.update(overrides)
        return cls(**kwargs)
