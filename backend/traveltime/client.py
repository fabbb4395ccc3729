from __future__ import annotations

import logging
import math
from typing import Any

import httpx

from catchment.query import IsochroneRequest
from traveltime.config import TravelTimeSettings, settings_from_env
from traveltime.errors import TravelTimeUpstreamError

logger = logging.getLogger(__name__)

TIME_MAP_FAST_PATH = "/v4/time-map/fast"
_DETAIL_MAX_CHARS = 2000


def build_payload(request: IsochroneRequest) -> dict[str, Any]:
    """
    Arrival search for the "fast" time-map endpoint.

    The fast endpoint only knows arrival time periods, not exact timestamps, so
    `arrive_by_iso` is part of the cache key but not of the payload.
    """
    return {
        "arrival_searches": {
            "many_to_one": [
                {
                    "id": "isochrone_1",
                    "coords": {"lat": request.lat, "lng": request.lng},
                    "transportation": {"type": request.mode},
                    "arrival_time_period": "weekday_morning",
                    "travel_time": int(request.travel_time_s),
                    "level_of_detail": {"scale_type": "simple", "level": "medium"},
                }
            ]
        }
    }


class TravelTimeClient:
    """
    Async isochrone fetcher. `fetch` is what a `CatchmentCoordinator` calls; cancelling
    the awaiting task aborts the underlying HTTP request.
    """

    def __init__(
        self,
        settings: TravelTimeSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or settings_from_env()
        self._http = http_client
        self._owns_http = http_client is None

    async def __aenter__(self) -> "TravelTimeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def fetch(self, request: IsochroneRequest) -> dict[str, Any]:
        self.settings.require_credentials()

        url = f"{self.settings.base_url}{TIME_MAP_FAST_PATH}"
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/geo+json",
            "X-Application-Id": self.settings.app_id,
            "X-Api-Key": self.settings.api_key,
        }
        try:
            resp = await self._client().post(
                url, json=build_payload(request), headers=headers
            )
        except httpx.TimeoutException as e:
            raise TravelTimeUpstreamError("TravelTime request timed out") from e
        except httpx.HTTPError as e:
            raise TravelTimeUpstreamError(f"TravelTime request failed: {e}") from e

        content_type = resp.headers.get("content-type", "")
        if not resp.is_success:
            logger.warning("TravelTime returned HTTP %s", resp.status_code)
            raise TravelTimeUpstreamError(
                "TravelTime request failed",
                status=resp.status_code,
                detail=resp.text[:_DETAIL_MAX_CHARS],
            )

        try:
            data = resp.json()
        except ValueError as e:
            # Content-type can lie; protect the caller either way.
            raise TravelTimeUpstreamError(
                f"TravelTime returned non-JSON response ({content_type or 'no content-type'})",
                status=resp.status_code,
                detail=resp.text[:_DETAIL_MAX_CHARS],
            ) from e

        return normalize_isochrone(data)

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.settings.timeout_s)
            self._owns_http = True
        return self._http


def normalize_isochrone(data: Any) -> dict[str, Any]:
    """
    Provider response -> GeoJSON FeatureCollection.

    Accepts GeoJSON (FeatureCollection, Feature, bare Polygon/MultiPolygon) or the
    provider's plain JSON shape (`results[].shapes[].shell/holes` of {lat, lng}).
    """
    if not isinstance(data, dict):
        raise TravelTimeUpstreamError("Unexpected TravelTime response shape")

    gtype = data.get("type")
    if gtype == "FeatureCollection":
        return data
    if gtype == "Feature":
        return {"type": "FeatureCollection", "features": [data]}
    if gtype in ("Polygon", "MultiPolygon"):
        return {
            "type": "FeatureCollection",
            "features": [{"type": "Feature", "properties": {}, "geometry": data}],
        }

    results = data.get("results")
    if isinstance(results, list):
        features: list[dict[str, Any]] = []
        for r in results:
            if not isinstance(r, dict):
                continue
            polys = []
            for s in r.get("shapes") or []:
                if not isinstance(s, dict):
                    continue
                shell = _ring(s.get("shell"))
                if len(shell) < 4:
                    continue
                holes = [_ring(h) for h in s.get("holes") or []]
                polys.append([shell, *[h for h in holes if len(h) >= 4]])
            if not polys:
                continue
            features.append(
                {
                    "type": "Feature",
                    "properties": {"search_id": r.get("search_id")},
                    "geometry": {"type": "MultiPolygon", "coordinates": polys},
                }
            )
        return {"type": "FeatureCollection", "features": features}

    raise TravelTimeUpstreamError("Unexpected TravelTime response shape")


def _ring(points: Any) -> list[list[float]]:
    out: list[list[float]] = []
    for p in points or []:
        if not isinstance(p, dict):
            continue
        try:
            lat = float(p["lat"])
            lng = float(p["lng"])
        except (KeyError, TypeError, ValueError):
            continue
        if not (math.isfinite(lat) and math.isfinite(lng)):
            continue
        out.append([lng, lat])
    if out and out[0] != out[-1]:
        out.append(list(out[0]))
    return out
