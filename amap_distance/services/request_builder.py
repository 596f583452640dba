from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

from amap_distance.models.location import RequestDescriptor, TravelMode
from amap_distance.services.citycode import CitycodeResolver
from amap_distance.services.exceptions import CitycodeResolutionError


class ModeRequestBuilder:
    """Builds one AMap request per travel mode.

    ``direct`` goes to the v3 distance API, the path-finding modes to the v5
    direction APIs, and ``transit`` to the v5 integrated transit API, which
    needs provider citycodes for both ends.
    """

    PATHS = {
        TravelMode.DIRECT: "/v3/distance",
        TravelMode.DRIVING: "/v5/direction/driving",
        TravelMode.WALKING: "/v5/direction/walking",
        TravelMode.BICYCLING: "/v5/direction/bicycling",
        TravelMode.TRANSIT: "/v5/direction/transit/integrated",
    }

    def __init__(self, api_key: str, base_url: str) -> None:
        self.api_key = api_key
        self.base_url = base_url

    def _descriptor(self, mode: TravelMode, params: List[Tuple[str, str]]) -> RequestDescriptor:
        return RequestDescriptor(
            mode=mode,
            base_url=f"{self.base_url}{self.PATHS[mode]}",
            params=tuple(params),
        )

    async def build(
        self,
        origin: str,
        destination: str,
        origin_city: Optional[str],
        destination_city: Optional[str],
        mode: TravelMode,
        strategy: Optional[str],
        citycode_resolver: CitycodeResolver,
    ) -> RequestDescriptor:
        mode = TravelMode(mode)

        if mode is TravelMode.DIRECT:
            return self._descriptor(
                mode,
                [
                    ("type", "0"),
                    ("origins", origin),
                    ("destination", destination),
                    ("key", self.api_key),
                ],
            )

        if mode is TravelMode.TRANSIT:
            return await self._build_transit(
                origin, destination, origin_city, destination_city, strategy, citycode_resolver
            )

        params = [
            ("origin", origin),
            ("destination", destination),
            ("key", self.api_key),
            ("show_fields", "cost"),
        ]
        if mode is TravelMode.DRIVING and strategy:
            params.append(("strategy", strategy))
        return self._descriptor(mode, params)

    async def _build_transit(
        self,
        origin: str,
        destination: str,
        origin_city: Optional[str],
        destination_city: Optional[str],
        strategy: Optional[str],
        citycode_resolver: CitycodeResolver,
    ) -> RequestDescriptor:
        missing = [
            label
            for label, value in (("origin city", origin_city), ("destination city", destination_city))
            if not value or not value.strip()
        ]
        if missing:
            raise CitycodeResolutionError(
                f"Transit mode requires city names; empty: {', '.join(missing)}"
            )

        origin_code, destination_code = await asyncio.gather(
            citycode_resolver.resolve(origin_city),
            citycode_resolver.resolve(destination_city),
        )

        unresolved = [
            f"{label} {name!r}"
            for label, name, code in (
                ("origin city", origin_city, origin_code),
                ("destination city", destination_city, destination_code),
            )
            if not code
        ]
        if unresolved:
            raise CitycodeResolutionError(f"Could not resolve citycode for {', '.join(unresolved)}")

        params = [
            ("origin", origin),
            ("destination", destination),
            ("city1", origin_code),
            ("city2", destination_code),
            ("key", self.api_key),
            ("show_fields", "cost"),
        ]
        if strategy:
            params.append(("strategy", strategy))
        return self._descriptor(TravelMode.TRANSIT, params)
