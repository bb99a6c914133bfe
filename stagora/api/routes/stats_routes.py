"""
Stats Routes

GET /stats - Dashboard aggregates (admin)
GET /stats/public - Landing page counters
"""

from fastapi import APIRouter, Depends

from stagora.core.auth import get_current_admin
from stagora.services.stats_service import StatsService, get_stats_service
from stagora.schemas.schemas import PublicStatsResponse, StatsResponse

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("", response_model=StatsResponse)
async def get_stats(admin: dict = Depends(get_current_admin), service: StatsService = Depends(get_stats_service)):
    return service.get_stats()


@router.get("/public", response_model=PublicStatsResponse)
async def get_public_stats(service: StatsService = Depends(get_stats_service)):
    return service.get_public_stats()
