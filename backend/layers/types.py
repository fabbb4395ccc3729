from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


AreaGeometryType = Literal["Polygon", "MultiPolygon"]


@dataclass(frozen=True)
class AreaFeature:
    """
    A named sub-area of a region (community, neighbourhood, ...).

    `geometry` is the GeoJSON geometry mapping as loaded (Polygon or MultiPolygon,
    lon/lat degrees). Treated as immutable: matching never modifies it.
    """

    id: str
    geometry: dict[str, Any]
    props: dict[str, Any]


@dataclass(frozen=True)
class AreaLayer:
    """
    The static candidate set for one region, loaded once and reused for every match.
    """

    id: str
    title: str
    features: list[AreaFeature]
    # Attribute keys tried (in order) when resolving a display name.
    name_keys: tuple[str, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.features)
