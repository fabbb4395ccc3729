from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from catchment.query import CatchmentQuery, TravelMode, next_weekday_arrival_iso


class ApiCatchmentRequest(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    # Either a full timestamp with offset, or a wall-clock "HH:MM" that is placed on
    # the next weekday in the region's UTC offset.
    arriveByISO: str | None = None
    arriveBy: str | None = Field(default=None, pattern=r"^\d{1,2}:\d{2}$")
    # Clamped to the provider's travel-time range downstream, not rejected here.
    minutes: int
    mode: TravelMode = "public_transport"
    regionId: str | None = None

    @field_validator("arriveByISO")
    @classmethod
    def _explicit_offset(cls, v: str | None) -> str | None:
        if v is None:
            return None
        try:
            ts = datetime.fromisoformat(v.strip())
        except ValueError as e:
            raise ValueError(f"arriveByISO is not ISO-8601: {v!r}") from e
        if ts.tzinfo is None:
            raise ValueError("arriveByISO must carry an explicit UTC offset")
        return v.strip()

    @field_validator("arriveBy")
    @classmethod
    def _wall_clock(cls, v: str | None) -> str | None:
        if v is None:
            return None
        hh, mm = (int(p) for p in v.split(":", 1))
        if not (0 <= hh <= 23 and 0 <= mm <= 59):
            raise ValueError(f"arriveBy is not a valid time of day: {v!r}")
        return v

    @model_validator(mode="after")
    def _arrival_given(self) -> "ApiCatchmentRequest":
        if self.arriveByISO is None and self.arriveBy is None:
            raise ValueError("one of arriveByISO or arriveBy is required")
        return self

    def arrival_iso(self, utc_offset: str) -> str:
        if self.arriveByISO is not None:
            return self.arriveByISO
        return next_weekday_arrival_iso(self.arriveBy or "", utc_offset)

    def to_query(self, utc_offset: str = "+00:00") -> CatchmentQuery:
        return CatchmentQuery(
            lat=self.lat,
            lng=self.lng,
            arrive_by_iso=self.arrival_iso(utc_offset),
            minutes=self.minutes,
            mode=self.mode,
        )


class ApiMatch(BaseModel):
    name: str
    mode: str


class ApiCatchmentResponse(BaseModel):
    region: dict
    # [minLon, minLat, maxLon, maxLat] for fitting the map; None when empty.
    bounds: list[float] | None
    within: list[ApiMatch]
    count: int
    fromCache: bool
    stats: dict[str, int] = Field(default_factory=dict)
