from __future__ import annotations

import logging
from typing import Optional

from amap_distance.models.location import DistanceResult, LocationValue, TravelMode
from amap_distance.services.amap_client import AmapClient
from amap_distance.services.citycode import CitycodeCache, CitycodeResolver
from amap_distance.services.exceptions import InvalidInputError
from amap_distance.services.normalizer import normalize
from amap_distance.services.request_builder import ModeRequestBuilder

logger = logging.getLogger(__name__)


class DistanceCalculator:
    """Computes one origin/destination pair for a given travel mode.

    Build one per run: the citycode cache lives inside its resolver.
    """

    def __init__(
        self,
        client: AmapClient,
        api_key: str,
        base_url: str,
        resolver: Optional[CitycodeResolver] = None,
    ) -> None:
        self.client = client
        self.builder = ModeRequestBuilder(api_key=api_key, base_url=base_url)
        self.resolver = resolver or CitycodeResolver(
            client, api_key=api_key, base_url=base_url, cache=CitycodeCache()
        )

    @staticmethod
    def _require_usable(label: str, value: Optional[LocationValue]) -> LocationValue:
        if value is None:
            raise InvalidInputError(f"{label} is not a location value")
        if not value.is_usable:
            raise InvalidInputError(f"{label} has an empty location")
        return value

    async def compute(
        self,
        loc_a: Optional[LocationValue],
        loc_b: Optional[LocationValue],
        mode: TravelMode,
        strategy: Optional[str] = None,
    ) -> DistanceResult:
        origin = self._require_usable("Origin", loc_a)
        destination = self._require_usable("Destination", loc_b)
        mode = TravelMode(mode)

        request = await self.builder.build(
            origin.as_query_param(),
            destination.as_query_param(),
            origin.cityname,
            destination.cityname,
            mode,
            strategy if mode.accepts_strategy else None,
            self.resolver,
        )
        payload = await self.client.get_json(request)
        result = normalize(mode, payload)
        logger.debug(
            "%s %s -> %s: distance_km=%s duration_min=%s",
            mode.value,
            request.param("origin") or request.param("origins"),
            request.param("destination"),
            result.distance_km,
            result.duration_min,
        )
        return result
