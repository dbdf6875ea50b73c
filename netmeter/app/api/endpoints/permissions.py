from fastapi import APIRouter, Depends, status

from ...schemas.usage import PermissionStatusResponse, SettingsScreenResponse
from ...services.network_usage import NetworkUsageService
from ..deps import get_usage_service

router = APIRouter()


@router.get("/usage-access", response_model=PermissionStatusResponse)
def read_usage_access(service: NetworkUsageService = Depends(get_usage_service)) -> PermissionStatusResponse:
    return PermissionStatusResponse(granted=service.has_usage_access_permission())


@router.post("/usage-access/open", response_model=SettingsScreenResponse, status_code=status.HTTP_202_ACCEPTED)
def open_usage_access(service: NetworkUsageService = Depends(get_usage_service)) -> SettingsScreenResponse:
    service.open_usage_access_settings_screen()
    return SettingsScreenResponse(status="requested")
