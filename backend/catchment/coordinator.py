from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence

from shapely.geometry import MultiPolygon, Polygon

from catchment import config
from catchment.cache import TTLCache
from catchment.query import CatchmentQuery, IsochroneRequest, fingerprint, to_isochrone_request
from geo.aoi import BBox
from geo.containment import MatchResult, MatchStats, format_mode_label, match_region
from geo.ops import bounding_box, region_to_geojson, union_fragments
from layers.types import AreaFeature

logger = logging.getLogger(__name__)

Fetcher = Callable[[IsochroneRequest], Awaitable[Any]]
ResultCallback = Callable[["CatchmentResult"], None]
ErrorCallback = Callable[[CatchmentQuery, Exception], None]


class CoordinatorState(str, Enum):
    idle = "idle"
    debouncing = "debouncing"
    fetching = "fetching"
    success = "success"
    error = "error"


@dataclass(frozen=True)
class CatchmentResult:
    """
    What gets published to the rendering side for one settled query.
    """

    query: CatchmentQuery
    fingerprint: str
    region: Polygon | MultiPolygon
    region_geojson: dict[str, Any]
    bounds: BBox | None
    matches: list[MatchResult]
    from_cache: bool
    stats: MatchStats


class CatchmentCoordinator:
    """
    One interactive catchment session.

    State machine: idle -> debouncing -> fetching -> success | error.

    - Every `update()` (re)starts the debounce window; a burst of edits produces a
      single fetch for the final input.
    - When the window elapses the previous in-flight fetch is cancelled before the
      next one starts, so at most one fetch runs and a slow, superseded response can
      never overwrite a newer one.
    - Successful responses are cached per fingerprint for `ttl_s`; failures are not.

    Must be driven from a running asyncio event loop.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        areas: Sequence[AreaFeature] = (),
        *,
        debounce_s: float | None = None,
        ttl_s: float | None = None,
        cache: TTLCache[Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
        name_keys: Sequence[str] | None = None,
        on_result: ResultCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._areas = list(areas)
        self._name_keys = tuple(name_keys) if name_keys else None
        self.debounce_s = config.debounce_s() if debounce_s is None else float(debounce_s)
        self.cache: TTLCache[Any] = cache if cache is not None else TTLCache(
            ttl_s=config.cache_ttl_s() if ttl_s is None else float(ttl_s),
            max_items=config.cache_max_items(),
            clock=clock,
        )
        self._on_result = on_result
        self._on_error = on_error

        self.state = CoordinatorState.idle
        self.latest: CatchmentResult | None = None
        self.last_error: Exception | None = None
        self.fetch_count = 0
        self.cache_hits = 0

        self._debounce_task: asyncio.Task | None = None
        self._fetch_task: asyncio.Task | None = None
        self._closed = False

    async def __aenter__(self) -> "CatchmentCoordinator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def update(self, query: CatchmentQuery) -> None:
        """
        Input changed: restart the debounce window for `query`.
        """
        if self._closed:
            raise RuntimeError("CatchmentCoordinator is closed")

        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()

        self.state = CoordinatorState.debouncing
        loop = asyncio.get_running_loop()
        self._debounce_task = loop.create_task(self._debounce(query))

    async def wait_settled(self) -> CatchmentResult | None:
        """
        Wait for the current debounce + fetch cycle to finish.

        Returns the published result, or None if the cycle ended in an error (see
        `last_error`) or nothing was ever requested.
        """
        while True:
            pending = [
                t
                for t in (self._debounce_task, self._fetch_task)
                if t is not None and not t.done()
            ]
            if not pending:
                break
            await asyncio.wait(pending)

        for t in (self._debounce_task, self._fetch_task):
            if t is not None and t.done() and not t.cancelled():
                exc = t.exception()
                if exc is not None:
                    raise exc

        if self.state == CoordinatorState.success:
            return self.latest
        return None

    async def close(self) -> None:
        self._closed = True
        tasks = [t for t in (self._debounce_task, self._fetch_task) if t is not None]
        for t in tasks:
            if not t.done():
                t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._debounce_task = None
        self._fetch_task = None
        self.state = CoordinatorState.idle

    async def _debounce(self, query: CatchmentQuery) -> None:
        await asyncio.sleep(self.debounce_s)
        self._settle(query)

    def _settle(self, query: CatchmentQuery) -> None:
        # Cancel before start: the superseded call is abandoned, not just ignored.
        if self._fetch_task is not None and not self._fetch_task.done():
            logger.debug("Cancelling superseded catchment fetch")
            self._fetch_task.cancel()
        self._fetch_task = None

        key = fingerprint(query)
        cached = self.cache.get(key)
        if cached is not None:
            self.cache_hits += 1
            logger.debug("Catchment cache hit: %s", key)
            self._publish(query, key, cached, from_cache=True)
            return

        self.state = CoordinatorState.fetching
        loop = asyncio.get_running_loop()
        self._fetch_task = loop.create_task(self._fetch(query, key))

    async def _fetch(self, query: CatchmentQuery, key: str) -> None:
        request = to_isochrone_request(query)
        self.fetch_count += 1
        t0 = time.perf_counter()
        try:
            raw = await self._fetcher(request)
        except asyncio.CancelledError:
            logger.debug("Catchment fetch superseded: %s", key)
            raise
        except Exception as e:
            logger.warning("Catchment fetch failed for %s: %s", key, e)
            if not self._debounce_pending():
                self.state = CoordinatorState.error
            self.last_error = e
            if self._on_error is not None:
                self._on_error(query, e)
            return

        logger.info(
            "Catchment fetched %s in %.1f ms",
            key,
            (time.perf_counter() - t0) * 1000.0,
        )
        self.cache.put(key, raw)
        self._publish(query, key, raw, from_cache=False)

    def _publish(self, query: CatchmentQuery, key: str, raw: Any, *, from_cache: bool) -> None:
        region = union_fragments(raw)
        stats = MatchStats()
        matches = match_region(
            region,
            self._areas,
            format_mode_label(query.mode),
            name_keys=self._name_keys,
            stats=stats,
        )
        result = CatchmentResult(
            query=query,
            fingerprint=key,
            region=region,
            region_geojson=region_to_geojson(region),
            bounds=bounding_box(region),
            matches=matches,
            from_cache=from_cache,
            stats=stats,
        )
        self.latest = result
        self.last_error = None
        if not self._debounce_pending():
            self.state = CoordinatorState.success
        if self._on_result is not None:
            self._on_result(result)

    def _debounce_pending(self) -> bool:
        # A newer input is still settling; keep reporting "debouncing".
        t = self._debounce_task
        return t is not None and not t.done() and t is not asyncio.current_task()
