import logging

from fastapi import APIRouter, HTTPException

from amap_distance.core.config import settings
from amap_distance.models.location import LocationValue
from amap_distance.models.schemas import DistanceRequest, DistanceResponse
from amap_distance.services.distance import DistanceCalculator
from amap_distance.services.exceptions import (
    CitycodeResolutionError,
    InvalidInputError,
    ProviderError,
    TransportError,
)
from amap_distance.services.run_registry import run_registry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=DistanceResponse)
async def compute_distance(request: DistanceRequest) -> DistanceResponse:
    """Compute a single origin/destination pair without touching a table."""

    api_key = request.api_key or settings.AMAP_API_KEY
    if not api_key:
        raise HTTPException(status_code=422, detail="AMap API key is not configured")

    origin = LocationValue.from_cell(request.origin.model_dump())
    destination = LocationValue.from_cell(request.destination.model_dump())

    try:
        async with run_registry.client_factory() as client:
            calculator = DistanceCalculator(client, api_key=api_key, base_url=settings.AMAP_BASE_URL)
            result = await calculator.compute(origin, destination, request.mode, request.strategy)
    except (InvalidInputError, CitycodeResolutionError) as exc:
        raise HTTPException(status_code=422, detail=exc.message)
    except (ProviderError, TransportError) as exc:
        logger.warning("Distance lookup failed: %s", exc.message)
        raise HTTPException(status_code=502, detail=exc.message)

    return DistanceResponse(
        mode=request.mode,
        distance_km=result.distance_km,
        duration_min=result.duration_min,
        no_route=result.no_route,
    )
