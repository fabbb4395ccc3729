from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class BBox:
    """
    WGS84 bounding box in lon/lat degrees.

    Convention used throughout this repo:
    - minLon, minLat, maxLon, maxLat
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def is_valid(self) -> bool:
        vals = (self.min_lon, self.min_lat, self.max_lon, self.max_lat)
        if not all(math.isfinite(v) for v in vals):
            return False
        return self.min_lon <= self.max_lon and self.min_lat <= self.max_lat

    def overlaps(self, other: "BBox") -> bool:
        """
        Axis-aligned overlap test. Touching edges count as overlap.

        Only used as a cheap rejection test: it may say "overlaps" for shapes that
        don't intersect, but never the other way round.
        """
        if not self.is_valid() or not other.is_valid():
            return False
        return not (
            self.max_lon < other.min_lon
            or self.min_lon > other.max_lon
            or self.max_lat < other.min_lat
            or self.min_lat > other.max_lat
        )

    def as_list(self) -> list[float]:
        # GeoJSON bbox order, also what map fitBounds() expects.
        return [self.min_lon, self.min_lat, self.max_lon, self.max_lat]
