from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import httpx

from amap_distance.services.amap_client import AmapClient
from amap_distance.services.table import FieldDescriptor, FieldKind, InMemoryTable, Record

BASE_URL = "https://restapi.amap.com"

ORIGIN = "fldOrigin"
DESTINATION = "fldDestination"
DISTANCE = "fldDistance"
DURATION = "fldDuration"
NOTE = "fldNote"

FIELDS = [
    FieldDescriptor(ORIGIN, "Start", FieldKind.LOCATION),
    FieldDescriptor(DESTINATION, "End", FieldKind.LOCATION),
    FieldDescriptor(DISTANCE, "Distance (km)", FieldKind.NUMBER),
    FieldDescriptor(DURATION, "Duration (min)", FieldKind.NUMBER),
    FieldDescriptor(NOTE, "Note", FieldKind.TEXT),
]


def location(
    text: str = "北京市朝阳区阜通东大街6号",
    lon: Optional[float] = None,
    lat: Optional[float] = None,
    cityname: Optional[str] = None,
) -> Dict[str, Any]:
    cell: Dict[str, Any] = {"location": text}
    if lon is not None:
        cell["lon"] = lon
    if lat is not None:
        cell["lat"] = lat
    if cityname is not None:
        cell["cityname"] = cityname
    return cell


def make_table(count: int, invalid: Sequence[int] = (), cityname: Optional[str] = None) -> InMemoryTable:
    """Table of ``count`` records; 1-based indexes in ``invalid`` get a blank origin."""

    records = []
    for index in range(1, count + 1):
        origin = location("", cityname=cityname) if index in invalid else location(
            f"起点 {index}", lon=round(116.48 + index / 1000, 6), lat=39.99, cityname=cityname
        )
        records.append(
            Record(
                record_id=f"rec{index:03d}",
                fields={ORIGIN: origin, DESTINATION: location("终点", lon=116.434446, lat=39.90816, cityname=cityname)},
            )
        )
    return InMemoryTable(name="Trips", fields=FIELDS, records=records, table_id="tblTrips")


def path_payload(distance: Any = "1500", duration: Any = "600") -> Dict[str, Any]:
    return {
        "status": "1",
        "info": "OK",
        "infocode": "10000",
        "count": "1",
        "route": {
            "origin": "116.481028,39.989643",
            "destination": "116.434446,39.90816",
            "paths": [{"distance": distance, "cost": {"duration": duration}}],
        },
    }


def transit_payload(distance: Any = "12000", duration: Any = "2400") -> Dict[str, Any]:
    return {
        "status": "1",
        "info": "OK",
        "infocode": "10000",
        "count": "1",
        "route": {
            "origin": "116.481028,39.989643",
            "destination": "116.434446,39.90816",
            "transits": [{"distance": distance, "cost": {"duration": duration}, "segments": []}],
        },
    }


def geocode_payload(citycode: Any = "010") -> Dict[str, Any]:
    return {
        "status": "1",
        "info": "OK",
        "infocode": "10000",
        "count": "1",
        "geocodes": [{"formatted_address": "北京市", "city": "北京市", "citycode": citycode, "adcode": "110000"}],
    }


Responder = Union[Dict[str, Any], httpx.Response, Callable[[httpx.Request], Any]]


class FakeAmap:
    """Routes mocked AMap requests by URL path and records every call."""

    def __init__(self) -> None:
        self.routes: Dict[str, Responder] = {}
        self.requests: List[httpx.Request] = []

    def on(self, path: str, responder: Responder) -> None:
        self.routes[path] = responder

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get(request.url.path)
        if responder is None:
            return httpx.Response(404, json={"status": "0", "info": "NOT_FOUND"})
        if callable(responder):
            responder = responder(request)
        if isinstance(responder, httpx.Response):
            return responder
        return httpx.Response(200, json=responder)

    def client(self) -> AmapClient:
        return AmapClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)))


