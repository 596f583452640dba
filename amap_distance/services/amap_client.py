from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from amap_distance.core.config import settings
from amap_distance.models.location import RequestDescriptor
from amap_distance.services.exceptions import TransportError

logger = logging.getLogger(__name__)


class AmapClient:
    """Thin async transport for the AMap web-service API.

    One instance (and one underlying ``httpx.AsyncClient``) is used per run.
    Failures below the provider protocol surface as :class:`TransportError`;
    provider-level status codes are left to the normalizers.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._timeout = timeout if timeout is not None else settings.AMAP_REQUEST_TIMEOUT
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "AmapClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def get_json(self, request: RequestDescriptor) -> Dict[str, Any]:
        client = self._ensure_client()
        logger.debug("AMap request: %s", request.redacted_url)

        try:
            response = await client.get(request.url)
        except httpx.HTTPError as exc:
            logger.error("AMap request failed: %s (%s)", request.redacted_url, type(exc).__name__)
            raise TransportError(
                f"Request to {request.base_url} failed: {type(exc).__name__}: {exc}"
            ) from exc

        if response.status_code != 200:
            logger.error("AMap HTTP error %s: %s", response.status_code, request.redacted_url)
            raise TransportError(
                f"HTTP error {response.status_code} from {request.base_url}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(f"Invalid JSON from {request.base_url}") from exc

        if not isinstance(data, dict):
            raise TransportError(f"Unexpected payload type from {request.base_url}: {type(data).__name__}")
        return data
