from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Literal, get_args

TravelMode = Literal[
    "public_transport",
    "driving+public_transport",
    "walking+ferry",
    "cycling+ferry",
]
TRAVEL_MODES: tuple[str, ...] = get_args(TravelMode)

MIN_TRAVEL_TIME_S = 60
MAX_TRAVEL_TIME_S = 3 * 60 * 60

# 5 decimals is ~1m: successive clicks on the same pixel share a cache entry.
FINGERPRINT_DECIMALS = 5


@dataclass(frozen=True)
class CatchmentQuery:
    """
    Everything that defines one catchment: where, arriving when, within how long, how.
    """

    lat: float
    lng: float
    arrive_by_iso: str
    minutes: int
    mode: str = "public_transport"


@dataclass(frozen=True)
class IsochroneRequest:
    """
    What goes to the travel-time provider. Duration is already clamped and in seconds.
    """

    lat: float
    lng: float
    arrive_by_iso: str
    travel_time_s: int
    mode: str


def fingerprint(query: CatchmentQuery, *, decimals: int = FINGERPRINT_DECIMALS) -> str:
    lat = _fixed(query.lat, decimals)
    lng = _fixed(query.lng, decimals)
    return f"{lat},{lng}|{query.arrive_by_iso}|{int(query.minutes)}|{query.mode}"


def clamp_travel_time_s(minutes: float) -> int:
    try:
        seconds = int(round(float(minutes) * 60.0))
    except (TypeError, ValueError):
        return MIN_TRAVEL_TIME_S
    return max(MIN_TRAVEL_TIME_S, min(seconds, MAX_TRAVEL_TIME_S))


def to_isochrone_request(query: CatchmentQuery) -> IsochroneRequest:
    return IsochroneRequest(
        lat=float(query.lat),
        lng=float(query.lng),
        arrive_by_iso=query.arrive_by_iso,
        travel_time_s=clamp_travel_time_s(query.minutes),
        mode=query.mode,
    )


def _fixed(v: float, decimals: int) -> str:
    s = f"{float(v):.{decimals}f}"
    # -0.00000 and 0.00000 are the same place.
    if float(s) == 0.0:
        return f"{0.0:.{decimals}f}"
    return s


def next_weekday_arrival_iso(
    hhmm: str, utc_offset: str = "-04:00", *, today: date | None = None
) -> str:
    """
    "08:30" -> "2026-01-05T08:30:00-04:00" on the next weekday (today if it is one).

    The offset is passed through verbatim; the provider needs it explicit.
    """
    hh, mm = (int(p) for p in hhmm.strip().split(":", 1))
    if not (0 <= hh <= 23 and 0 <= mm <= 59):
        raise ValueError(f"Invalid arrival time: {hhmm!r}")

    d = today or date.today()
    while d.weekday() >= 5:
        d += timedelta(days=1)
    return f"{d.isoformat()}T{hh:02d}:{mm:02d}:00{utc_offset}"
