"""Bounded in-memory history of accepted positions."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator

from gpsfilter.models.position import GeoPoint, PositionSample


class PositionHistory:
    """FIFO buffer of the most recently accepted samples, oldest first.

    The buffer does no validation of its own.  Timestamp ordering is the
    engine's responsibility: it only appends samples that passed the speed
    check, which rejects anything not strictly newer than the latest entry.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 2:
            raise ValueError(f"history capacity must be at least 2, got {capacity}")
        self._samples: deque[PositionSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[PositionSample]:
        return iter(self._samples)

    def __bool__(self) -> bool:
        return bool(self._samples)

    def append(self, sample: PositionSample) -> None:
        """Push *sample* to the tail, evicting the oldest entry at capacity."""
        self._samples.append(sample)

    def latest(self) -> PositionSample | None:
        return self._samples[-1] if self._samples else None

    def recent(self, n: int) -> list[PositionSample]:
        """Last ``min(n, len)`` samples, most recent last."""
        if n <= 0:
            return []
        return list(self._samples)[-n:]

    def centroid(self) -> GeoPoint | None:
        """Arithmetic mean of latitude and longitude over all samples.

        This is a planar average and is inaccurate near the poles and across
        the antimeridian.
        """
        count = len(self._samples)
        if count == 0:
            return None
        lat_sum = 0.0
        lon_sum = 0.0
        for sample in self._samples:
            lat_sum += sample.point.latitude
            lon_sum += sample.point.longitude
        return GeoPoint(latitude=lat_sum / count, longitude=lon_sum / count)

    def clear(self) -> None:
        self._samples.clear()
