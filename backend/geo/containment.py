from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Any, Sequence

from shapely.geometry import MultiPolygon, Polygon

from geo.ops import bounding_box, boxes_overlap, centroid, point_in_region, union_fragments
from layers.names import resolve_area_name
from layers.types import AreaFeature


@dataclass(frozen=True)
class MatchResult:
    name: str
    mode: str


@dataclass
class MatchStats:
    """
    Counters for one matching run; `prefiltered_out` counts areas the bbox check
    rejected before any centroid test.
    """

    candidates: int = 0
    prefiltered_out: int = 0
    centroid_tests: int = 0
    matched: int = 0
    duplicates: int = 0


def format_mode_label(mode: str) -> str:
    # "driving+public_transport" -> "driving+public transport"
    return (mode or "").replace("_", " ")


def match_areas(
    catchment: Any,
    candidates: Sequence[AreaFeature] | None,
    mode_label: str,
    *,
    name_keys: Sequence[str] | None = None,
    stats: MatchStats | None = None,
) -> list[MatchResult]:
    """
    Areas whose centroid falls inside the catchment.

    `catchment` is the raw provider response (FeatureCollection / Feature / geometry);
    all of its fragments are dissolved into one region first so a multi-part
    catchment is matched as a whole.

    Never raises: malformed geometry just means "no match".
    """
    if not catchment or not candidates:
        return []

    region = union_fragments(catchment)
    return match_region(
        region, candidates, mode_label, name_keys=name_keys, stats=stats
    )


def match_region(
    region: Polygon | MultiPolygon,
    candidates: Sequence[AreaFeature] | None,
    mode_label: str,
    *,
    name_keys: Sequence[str] | None = None,
    stats: MatchStats | None = None,
) -> list[MatchResult]:
    """
    Same as `match_areas`, for a region that was already reduced by `union_fragments`.
    """
    st = stats if stats is not None else MatchStats()
    if region is None or region.is_empty or not candidates:
        return []

    region_box = bounding_box(region)
    if region_box is None:
        return []

    by_name: dict[str, MatchResult] = {}
    for area in candidates:
        st.candidates += 1

        area_box = bounding_box(area.geometry)
        if not boxes_overlap(area_box, region_box):
            st.prefiltered_out += 1
            continue

        st.centroid_tests += 1
        try:
            c = centroid(area.geometry)
            inside = c is not None and point_in_region(c, region)
        except Exception:
            inside = False
        if not inside:
            continue

        st.matched += 1
        name = resolve_area_name(area.props, name_keys)
        if name in by_name:
            st.duplicates += 1
            continue
        by_name[name] = MatchResult(name=name, mode=mode_label)

    return sorted(by_name.values(), key=lambda m: _name_sort_key(m.name))


def _name_sort_key(name: str) -> tuple[str, str]:
    # "École" sorts with "Eastern", not after "Zeta"; raw name breaks ties.
    decomposed = unicodedata.normalize("NFKD", name)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return folded.casefold(), name
