"""Reduce the three AMap response schemas to one :class:`DistanceResult`.

* v3 distance (``direct``): ``{"status", "info", "infocode", "results": [...]}``
* v5 direction (``driving``/``walking``/``bicycling``): ``route.paths[...]``
* v5 integrated transit (``transit``): ``route.transits[...]``

Distances arrive in meters and durations in seconds, often as strings.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from amap_distance.models.location import DistanceResult, TravelMode
from amap_distance.services.exceptions import ProviderError

logger = logging.getLogger(__name__)

STATUS_OK = "1"
INFOCODE_OK = "10000"
# ROUTE_FAIL: no connected route between the two points
INFOCODE_NO_ROUTE = "20802"


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            return None
    return None


def meters_to_km(value: Any) -> Optional[float]:
    number = _to_number(value)
    return number / 1000 if number is not None else None


def seconds_to_minutes(value: Any) -> Optional[float]:
    number = _to_number(value)
    return number / 60 if number is not None else None


def _provider_error(label: str, payload: Mapping[str, Any]) -> ProviderError:
    info = payload.get("info") or "unknown error"
    infocode = payload.get("infocode")
    return ProviderError(
        f"AMap {label} error: {info} (infocode: {infocode})",
        info=payload.get("info"),
        infocode=infocode,
        status=payload.get("status"),
    )


def _check_two_tier(label: str, payload: Mapping[str, Any]) -> bool:
    """Return False on the soft no-route code, raise on any other failure."""

    if payload.get("status") == STATUS_OK and payload.get("infocode") == INFOCODE_OK:
        return True
    if payload.get("infocode") == INFOCODE_NO_ROUTE:
        logger.info("AMap %s reported no route (infocode %s)", label, INFOCODE_NO_ROUTE)
        return False
    raise _provider_error(label, payload)


def _first(items: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(items, list) and items and isinstance(items[0], Mapping):
        return items[0]
    return None


def _cost_duration(entry: Mapping[str, Any]) -> Any:
    cost = entry.get("cost")
    if isinstance(cost, Mapping) and cost.get("duration") not in (None, ""):
        return cost.get("duration")
    return entry.get("duration")


def normalize_direct(payload: Mapping[str, Any]) -> DistanceResult:
    results = payload.get("results")
    if payload.get("status") != STATUS_OK or not results:
        raise _provider_error("v3 distance", payload)

    first = _first(results) or {}
    return DistanceResult(
        distance_km=meters_to_km(first.get("distance")),
        duration_min=seconds_to_minutes(first.get("duration")),
    )


def _normalize_path(label: str, payload: Mapping[str, Any]) -> DistanceResult:
    if not _check_two_tier(label, payload):
        return DistanceResult.empty(no_route=True)

    route = payload.get("route") or {}
    path = _first(route.get("paths") if isinstance(route, Mapping) else None)
    if path is None:
        logger.warning("AMap %s returned no paths", label)
        return DistanceResult.empty(no_route=True)

    return DistanceResult(
        distance_km=meters_to_km(path.get("distance")),
        duration_min=seconds_to_minutes(_cost_duration(path)),
    )


def normalize_driving(payload: Mapping[str, Any]) -> DistanceResult:
    return _normalize_path("v5 driving", payload)


def normalize_walking(payload: Mapping[str, Any]) -> DistanceResult:
    return _normalize_path("v5 walking", payload)


def normalize_bicycling(payload: Mapping[str, Any]) -> DistanceResult:
    return _normalize_path("v5 bicycling", payload)


def normalize_transit(payload: Mapping[str, Any]) -> DistanceResult:
    if not _check_two_tier("v5 transit", payload):
        return DistanceResult.empty(no_route=True)

    route = payload.get("route") or {}
    transit = _first(route.get("transits") if isinstance(route, Mapping) else None)
    if transit is None:
        logger.warning("AMap v5 transit returned no transits")
        return DistanceResult.empty(no_route=True)

    return DistanceResult(
        distance_km=meters_to_km(transit.get("distance")),
        duration_min=seconds_to_minutes(_cost_duration(transit)),
    )


NORMALIZERS: Dict[TravelMode, Callable[[Mapping[str, Any]], DistanceResult]] = {
    TravelMode.DIRECT: normalize_direct,
    TravelMode.DRIVING: normalize_driving,
    TravelMode.WALKING: normalize_walking,
    TravelMode.BICYCLING: normalize_bicycling,
    TravelMode.TRANSIT: normalize_transit,
}


def normalize(mode: TravelMode, payload: Mapping[str, Any]) -> DistanceResult:
    return NORMALIZERS[TravelMode(mode)](payload)
