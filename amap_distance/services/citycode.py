from __future__ import annotations

import logging
from typing import Dict, Optional

from amap_distance.models.location import RequestDescriptor
from amap_distance.services.amap_client import AmapClient
from amap_distance.services.exceptions import DistanceError

logger = logging.getLogger(__name__)

GEOCODE_PATH = "/v3/geocode/geo"


class CitycodeCache:
    """City name -> citycode mapping for the lifetime of one run."""

    def __init__(self) -> None:
        self._codes: Dict[str, str] = {}

    def get(self, city_name: str) -> Optional[str]:
        return self._codes.get(city_name)

    def put(self, city_name: str, citycode: str) -> None:
        self._codes[city_name] = citycode

    def __contains__(self, city_name: object) -> bool:
        return city_name in self._codes

    def __len__(self) -> int:
        return len(self._codes)


class CitycodeResolver:
    """Resolves free-text city names to AMap citycodes via the geocoder.

    Soft-fails: every failure path returns ``None``. Only successful
    resolutions are cached.
    """

    def __init__(
        self,
        client: AmapClient,
        api_key: str,
        base_url: str,
        cache: Optional[CitycodeCache] = None,
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.base_url = base_url
        self.cache = cache if cache is not None else CitycodeCache()

    def _request(self, city_name: str) -> RequestDescriptor:
        return RequestDescriptor(
            mode=None,
            base_url=f"{self.base_url}{GEOCODE_PATH}",
            params=(("address", city_name), ("key", self.api_key)),
        )

    async def resolve(self, city_name: Optional[str]) -> Optional[str]:
        if not city_name or not city_name.strip():
            return None

        cached = self.cache.get(city_name)
        if cached:
            return cached

        try:
            data = await self.client.get_json(self._request(city_name))
        except DistanceError as exc:
            logger.warning("Citycode lookup for %r failed: %s", city_name, exc)
            return None

        if data.get("status") != "1":
            logger.warning(
                "Citycode lookup for %r rejected: %s (infocode: %s)",
                city_name,
                data.get("info"),
                data.get("infocode"),
            )
            return None

        geocodes = data.get("geocodes") or []
        first = geocodes[0] if isinstance(geocodes, list) and geocodes else None
        citycode = first.get("citycode") if isinstance(first, dict) else None
        if not isinstance(citycode, str) or not citycode:
            logger.warning("No citycode returned for %r", city_name)
            return None

        self.cache.put(city_name, citycode)
        logger.debug("Resolved city %r -> %s", city_name, citycode)
        return citycode
