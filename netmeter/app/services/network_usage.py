"""Request-level operations: validate, resolve the window, collect, format."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Callable, List, Optional

from netmeter.app.core.config import settings
from netmeter.app.schemas.usage import AppUsageSchema, TotalUsageSchema
from netmeter.app.services.aggregator import UsageAggregator
from netmeter.app.services.platform import AppCatalog, IconEncoder, PermissionGate, StatsProvider
from netmeter.app.services.ranking import format_report, format_summary
from netmeter.app.services.snapshot_platform import SnapshotPlatform
from netmeter.app.services.time_window import TimeWindow, resolve_window

logger = logging.getLogger(__name__)


class NetworkUsageService:
    def __init__(
        self,
        stats: StatsProvider,
        catalog: AppCatalog,
        permissions: PermissionGate,
        icons: Optional[IconEncoder] = None,
        *,
        max_workers: Optional[int] = None,
        query_timeout: Optional[float] = None,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.permissions = permissions
        self.aggregator = UsageAggregator(
            stats,
            catalog,
            icons,
            permissions,
            max_workers=max_workers,
            query_timeout=query_timeout,
        )
        self.tz = tz
        self.clock = clock

    @classmethod
    def from_snapshot(cls, path: str | Path, **kwargs: Any) -> "NetworkUsageService":
        platform = SnapshotPlatform.from_file(path, icon_size=settings.icon_size)
        return cls(platform.stats, platform.catalog, platform.permissions, platform.icons, **kwargs)

    def resolve(self, period: Any, count: Any) -> TimeWindow:
        now = self.clock() if self.clock is not None else None
        return resolve_window(period, count, now=now, tz=self.tz)

    def get_app_network_usage(self, period: Any, count: Any) -> List[AppUsageSchema]:
        window = self.resolve(period, count)
        return format_report(self.aggregator.collect_per_app(window))

    def get_total_network_usage(self, period: Any, count: Any) -> TotalUsageSchema:
        window = self.resolve(period, count)
        return format_summary(self.aggregator.collect_total(window))

    def has_usage_access_permission(self) -> bool:
        return bool(self.permissions.has_usage_access())

    def open_usage_access_settings_screen(self) -> None:
        try:
            self.permissions.open_usage_access_settings()
        except Exception:
            logger.exception("Failed to open usage access settings")
