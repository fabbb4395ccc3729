from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from typing import Any

from api.schemas import ApiCatchmentResponse, ApiMatch
from catchment import config
from catchment.cache import TTLCache
from catchment.query import CatchmentQuery, fingerprint, to_isochrone_request
from geo.containment import MatchStats, format_mode_label, match_region
from geo.ops import bounding_box, region_to_geojson, union_fragments
from layers.types import AreaLayer
from traveltime.client import TravelTimeClient

logger = logging.getLogger(__name__)


@dataclass
class IsochroneService:
    """
    Server-side isochrone proxy: credentials check, fingerprint cache, provider call.

    Failed calls are never cached, so the next request simply retries.
    """

    client: TravelTimeClient
    cache: TTLCache[dict[str, Any]] = field(
        default_factory=lambda: TTLCache(
            ttl_s=config.cache_ttl_s(), max_items=config.cache_max_items()
        )
    )

    async def isochrone(self, query: CatchmentQuery) -> tuple[dict[str, Any], bool]:
        self.client.settings.require_credentials()

        key = fingerprint(query)
        hit = self.cache.get(key)
        if hit is not None:
            return hit, True

        data = await self.client.fetch(to_isochrone_request(query))
        self.cache.put(key, data)
        return data, False


@lru_cache(maxsize=1)
def get_service() -> IsochroneService:
    return IsochroneService(client=TravelTimeClient())


def build_catchment_response(
    raw: Any, areas: AreaLayer, mode: str, *, from_cache: bool
) -> ApiCatchmentResponse:
    region = union_fragments(raw)
    stats = MatchStats()
    matches = match_region(
        region,
        areas.features,
        format_mode_label(mode),
        name_keys=areas.name_keys or None,
        stats=stats,
    )
    bounds = bounding_box(region)
    logger.info(
        "Catchment matched %d/%d areas (%d prefiltered, %d centroid tests)",
        len(matches),
        stats.candidates,
        stats.prefiltered_out,
        stats.centroid_tests,
    )
    return ApiCatchmentResponse(
        region=region_to_geojson(region),
        bounds=bounds.as_list() if bounds is not None else None,
        within=[ApiMatch(name=m.name, mode=m.mode) for m in matches],
        count=len(matches),
        fromCache=from_cache,
        stats=asdict(stats),
    )
