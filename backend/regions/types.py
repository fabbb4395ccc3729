from __future__ import annotations

from pydantic import BaseModel, Field

from layers.names import DEFAULT_NAME_KEYS


class RegionCenter(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class RegionDefaultView(BaseModel):
    center: RegionCenter
    zoom: float = Field(default=12.0, ge=0.0, le=24.0)


class RegionPreset(BaseModel):
    """
    A named destination offered as a one-click shortcut in the UI.
    """

    name: str
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class RegionAreas(BaseModel):
    # Repo-relative path to a GeoJSON FeatureCollection of area polygons.
    path: str
    title: str = "Areas"
    # Attribute keys tried in order when naming an area.
    nameKeys: list[str] = Field(default_factory=lambda: list(DEFAULT_NAME_KEYS))


class RegionConfig(BaseModel):
    id: str
    title: str
    enabled: bool = True
    # Arrival timestamps are sent with this explicit UTC offset.
    timezoneOffset: str = Field(default="+00:00", pattern=r"^[+-]\d{2}:\d{2}$")
    defaultView: RegionDefaultView
    areas: RegionAreas
    presets: list[RegionPreset] = Field(default_factory=list)
