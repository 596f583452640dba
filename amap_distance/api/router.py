from fastapi import APIRouter

from amap_distance.api.endpoints import distance, runs, tables

api_router = APIRouter()
api_router.include_router(tables.router, prefix="/tables", tags=["tables"])
api_router.include_router(runs.router, prefix="/runs", tags=["runs"])
api_router.include_router(distance.router, prefix="/distance", tags=["distance"])
