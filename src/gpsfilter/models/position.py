"""Position value types."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    """A latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    latitude: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    longitude: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)

    @classmethod
    def of(cls, latitude: float, longitude: float) -> GeoPoint:
        """Shorthand for positional construction."""
        return cls(latitude=latitude, longitude=longitude)


class PositionSample(BaseModel):
    """An accepted (or candidate) position fix.

    Parameters
    ----------
    point : GeoPoint
        Reported position.
    timestamp_millis : int
        Epoch milliseconds of the fix.
    source_id : str
        Opaque identifier of the reporting source (Signal K ``$source``).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    point: GeoPoint
    timestamp_millis: int
    source_id: str = ""

    @property
    def latitude(self) -> float:
        return self.point.latitude

    @property
    def longitude(self) -> float:
        return self.point.longitude


class ExclusionZone(BaseModel):
    """Circular region whose positions are always rejected."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    center: GeoPoint
    radius_meters: float = Field(default=1000.0, ge=0.0, allow_inf_nan=False)
