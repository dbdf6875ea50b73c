from typing import Any, List

from fastapi import APIRouter, Depends, Query

from ...schemas.usage import AppUsageSchema, TotalUsageSchema
from ...services.network_usage import NetworkUsageService
from ..deps import get_usage_service

router = APIRouter()


@router.get("/apps", response_model=List[AppUsageSchema])
def read_app_usage(
    period: str = Query(..., description="hour, day, week or month"),
    count: int = Query(1, description="Number of periods to look back"),
    service: NetworkUsageService = Depends(get_usage_service),
) -> Any:
    """Per-app usage ranked by total bytes, tethering included."""
    return service.get_app_network_usage(period, count)


@router.get("/total", response_model=TotalUsageSchema)
def read_total_usage(
    period: str = Query(..., description="hour, day, week or month"),
    count: int = Query(1, description="Number of periods to look back"),
    service: NetworkUsageService = Depends(get_usage_service),
) -> Any:
    """Device-wide usage for the window."""
    return service.get_total_network_usage(period, count)
