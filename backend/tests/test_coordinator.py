from __future__ import annotations

import asyncio

import pytest

from catchment.cache import TTLCache
from catchment.coordinator import CatchmentCoordinator, CoordinatorState
from catchment.query import CatchmentQuery, IsochroneRequest
from layers.types import AreaFeature
from traveltime.errors import TravelTimeUpstreamError

ARRIVE = "2026-01-05T08:30:00-04:00"


def _ring(x0: float, y0: float, x1: float, y1: float) -> list[list[float]]:
    return [[x0, y0], [x1, y0], [x1, y1], [x0, y1], [x0, y0]]


def _square_fc(lat: float, lng: float, half: float = 0.005) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [_ring(lng - half, lat - half, lng + half, lat + half)],
                },
            }
        ],
    }


AREAS = [
    AreaFeature(
        id="downtown",
        geometry={"type": "Polygon", "coordinates": [_ring(-63.5847, 44.6491, -63.5807, 44.6531)]},
        props={"GSA_NAME": "Downtown"},
    ),
    AreaFeature(
        id="bedford",
        geometry={"type": "Polygon", "coordinates": [_ring(-63.70, 44.71, -63.64, 44.75)]},
        props={"GSA_NAME": "Bedford"},
    ),
]


def _q(lat: float = 44.6511, lng: float = -63.5827, minutes: int = 30) -> CatchmentQuery:
    return CatchmentQuery(lat=lat, lng=lng, arrive_by_iso=ARRIVE, minutes=minutes, mode="public_transport")


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeFetcher:
    def __init__(self, delays: list[float] | None = None, fail: Exception | None = None) -> None:
        self.delays = list(delays or [])
        self.fail = fail
        self.calls: list[IsochroneRequest] = []
        self.cancelled = 0

    async def __call__(self, request: IsochroneRequest) -> dict:
        self.calls.append(request)
        delay = self.delays.pop(0) if self.delays else 0.0
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if self.fail is not None:
            raise self.fail
        return _square_fc(request.lat, request.lng)


def test_burst_of_updates_issues_single_fetch_for_last_input():
    fetcher = FakeFetcher()

    async def run():
        async with CatchmentCoordinator(fetcher, AREAS, debounce_s=0.05, ttl_s=600) as coord:
            coord.update(_q(minutes=20))
            await asyncio.sleep(0.01)
            coord.update(_q(minutes=25))
            coord.update(_q(minutes=30))
            assert coord.state == CoordinatorState.debouncing
            return await coord.wait_settled()

    result = asyncio.run(run())
    assert len(fetcher.calls) == 1
    assert fetcher.calls[0].travel_time_s == 1800
    assert result is not None
    assert result.from_cache is False
    assert [m.name for m in result.matches] == ["Downtown"]
    assert result.matches[0].mode == "public transport"
    assert result.bounds is not None
    assert len(result.region_geojson["features"]) == 1


def test_repeat_query_is_served_from_cache():
    fetcher = FakeFetcher()

    async def run():
        async with CatchmentCoordinator(fetcher, AREAS, debounce_s=0.0, ttl_s=600) as coord:
            first = await _settle(coord, _q())
            # sub-precision click noise maps to the same fingerprint
            second = await _settle(coord, _q(lat=44.6511000004))
            return coord, first, second

    coord, first, second = asyncio.run(run())
    assert len(fetcher.calls) == 1
    assert first.from_cache is False
    assert second.from_cache is True
    assert second.fingerprint == first.fingerprint
    assert second.matches == first.matches
    assert coord.cache_hits == 1


def test_expired_cache_entry_triggers_new_fetch():
    fetcher = FakeFetcher()
    clock = FakeClock()

    async def run():
        async with CatchmentCoordinator(fetcher, AREAS, debounce_s=0.0, ttl_s=600, clock=clock) as coord:
            await _settle(coord, _q())
            clock.now = 599.0
            hit = await _settle(coord, _q())
            clock.now = 601.0
            miss = await _settle(coord, _q())
            return hit, miss

    hit, miss = asyncio.run(run())
    assert hit.from_cache is True
    assert miss.from_cache is False
    assert len(fetcher.calls) == 2


def test_superseded_fetch_is_cancelled_and_never_published():
    fetcher = FakeFetcher(delays=[0.5, 0.0])
    published = []

    async def run():
        coord = CatchmentCoordinator(
            fetcher, AREAS, debounce_s=0.01, ttl_s=600, on_result=published.append
        )
        coord.update(_q(minutes=20))
        await asyncio.sleep(0.1)
        assert coord.state == CoordinatorState.fetching
        coord.update(_q(minutes=40))
        result = await coord.wait_settled()
        await coord.close()
        return coord, result

    coord, result = asyncio.run(run())
    assert fetcher.cancelled == 1
    assert coord.fetch_count == 2
    assert [r.query.minutes for r in published] == [40]
    assert result is not None and result.query.minutes == 40
    # the abandoned response was never cached either
    assert len(coord.cache) == 1


def test_failed_fetch_is_reported_once_not_cached_and_retried():
    fetcher = FakeFetcher(fail=TravelTimeUpstreamError("boom", status=503))
    errors = []

    async def run():
        coord = CatchmentCoordinator(
            fetcher,
            AREAS,
            debounce_s=0.0,
            ttl_s=600,
            on_error=lambda q, e: errors.append((q, e)),
        )
        failed = await _settle_raw(coord, _q())
        state_after_failure = coord.state
        cached_after_failure = len(coord.cache)

        fetcher.fail = None
        ok = await _settle_raw(coord, _q())
        await coord.close()
        return failed, state_after_failure, cached_after_failure, ok

    failed, state, cached, ok = asyncio.run(run())
    assert failed is None
    assert state == CoordinatorState.error
    assert cached == 0
    assert len(errors) == 1
    assert isinstance(errors[0][1], TravelTimeUpstreamError)
    assert ok is not None
    assert len(fetcher.calls) == 2


def test_injected_empty_cache_is_used_and_shared():
    fetcher = FakeFetcher()
    shared: TTLCache = TTLCache(ttl_s=5)

    async def run():
        first = CatchmentCoordinator(fetcher, AREAS, debounce_s=0.0, cache=shared)
        assert first.cache is shared
        await _settle(first, _q())
        await first.close()

        second = CatchmentCoordinator(fetcher, AREAS, debounce_s=0.0, cache=shared)
        result = await _settle(second, _q())
        await second.close()
        return result

    result = asyncio.run(run())
    assert result.from_cache is True
    assert len(fetcher.calls) == 1
    assert len(shared) == 1


@pytest.mark.parametrize("minutes, seconds", [(1000, 10800), (0, 60)])
def test_duration_is_clamped_before_fetch(minutes, seconds):
    fetcher = FakeFetcher()

    async def run():
        async with CatchmentCoordinator(fetcher, AREAS, debounce_s=0.0, ttl_s=600) as coord:
            await _settle(coord, _q(minutes=minutes))

    asyncio.run(run())
    assert [c.travel_time_s for c in fetcher.calls] == [seconds]


def test_close_cancels_in_flight_fetch():
    fetcher = FakeFetcher(delays=[5.0])

    async def run():
        coord = CatchmentCoordinator(fetcher, AREAS, debounce_s=0.0, ttl_s=600)
        coord.update(_q())
        await asyncio.sleep(0.05)
        await coord.close()
        with pytest.raises(RuntimeError):
            coord.update(_q())
        return coord

    coord = asyncio.run(run())
    assert fetcher.cancelled == 1
    assert coord.state == CoordinatorState.idle
    assert coord.latest is None


async def _settle_raw(coord: CatchmentCoordinator, query: CatchmentQuery):
    coord.update(query)
    return await coord.wait_settled()


async def _settle(coord: CatchmentCoordinator, query: CatchmentQuery):
    result = await _settle_raw(coord, query)
    assert result is not None
    return result
