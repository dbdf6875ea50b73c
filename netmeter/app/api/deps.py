from fastapi import HTTPException, status

from ..core.config import settings
from ..services.network_usage import NetworkUsageService


def get_usage_service() -> NetworkUsageService:
    """Dependency building a fresh service per request from the configured snapshot."""
    if settings.snapshot_path is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No device snapshot configured (set NETMETER_SNAPSHOT)",
        )
    return NetworkUsageService.from_snapshot(settings.snapshot_path)
