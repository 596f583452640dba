from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple
from urllib.parse import urlencode


class TravelMode(str, Enum):
    DIRECT = "direct"
    DRIVING = "driving"
    WALKING = "walking"
    BICYCLING = "bicycling"
    TRANSIT = "transit"

    @property
    def accepts_strategy(self) -> bool:
        return self in (TravelMode.DRIVING, TravelMode.TRANSIT)


def _format_coordinate(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class LocationValue:
    """Location cell value as stored by the host table."""

    location: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    cityname: Optional[str] = None
    address: Optional[str] = None
    adname: Optional[str] = None
    name: Optional[str] = None
    pname: Optional[str] = None

    @classmethod
    def from_cell(cls, cell: Any) -> Optional["LocationValue"]:
        """Build a value from a raw cell, or ``None`` if the cell is not a location."""

        if not isinstance(cell, Mapping):
            return None
        location = cell.get("location")
        if not isinstance(location, str):
            return None
        return cls(
            location=location,
            lat=cell.get("lat"),
            lon=cell.get("lon"),
            cityname=cell.get("cityname"),
            address=cell.get("address"),
            adname=cell.get("adname"),
            name=cell.get("name"),
            pname=cell.get("pname"),
        )

    @property
    def is_usable(self) -> bool:
        return bool(self.location)

    def as_query_param(self) -> str:
        """``"lon,lat"`` when both coordinates are known, else the raw address text."""

        if self.lon is not None and self.lat is not None:
            return f"{_format_coordinate(self.lon)},{_format_coordinate(self.lat)}"
        return self.location


@dataclass(frozen=True)
class DistanceResult:
    distance_km: Optional[float] = None
    duration_min: Optional[float] = None
    no_route: bool = False

    @property
    def is_empty(self) -> bool:
        return self.distance_km is None and self.duration_min is None

    @classmethod
    def empty(cls, *, no_route: bool = False) -> "DistanceResult":
        return cls(distance_km=None, duration_min=None, no_route=no_route)


@dataclass(frozen=True)
class RequestDescriptor:
    """A fully built provider GET request."""

    mode: Optional[TravelMode]
    base_url: str
    params: Tuple[Tuple[str, str], ...]

    def _query(self, redact: bool) -> str:
        pairs = [
            (key, "***" if redact and key == "key" else value)
            for key, value in self.params
        ]
        # commas stay literal so "lon,lat" pairs are sent exactly as built
        return urlencode(pairs, safe=",*")

    @property
    def url(self) -> str:
        return f"{self.base_url}?{self._query(redact=False)}"

    @property
    def redacted_url(self) -> str:
        return f"{self.base_url}?{self._query(redact=True)}"

    def param(self, name: str) -> Optional[str]:
        for key, value in self.params:
            if key == name:
                return value
        return None
