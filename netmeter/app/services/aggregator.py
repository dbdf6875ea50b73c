"""Per-application and device-wide usage collection."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional

from netmeter.app.core import metrics
from netmeter.app.core.config import settings
from netmeter.app.core.errors import StatsUnavailableError
from netmeter.app.core.metrics import CollectionMetrics
from netmeter.app.services.platform import AppCatalog, IconEncoder, PermissionGate, StatsProvider
from netmeter.app.services.ranking import rank_records
from netmeter.app.services.time_window import TimeWindow
from netmeter.app.services.usage_types import (
    TETHERING_OWNER_ID,
    ZERO,
    AppUsageRecord,
    CatalogEntry,
    Counters,
    EntryOutcome,
    TotalUsageSummary,
    Transport,
    TransportUsage,
)

logger = logging.getLogger(__name__)


class QueryTimeoutError(TimeoutError):
    pass


def sum_buckets(buckets: Iterable[Counters]) -> Counters:
    total = ZERO
    for bucket in buckets:
        total = total + Counters(rx=int(bucket.rx), tx=int(bucket.tx))
    return total


class DeadlineRunner:
    """
    Runs each provider call on its own daemon thread and stops waiting at the deadline.

    An abandoned call keeps running until the provider returns, but it holds
    no shared worker slot, so later calls never queue behind it, and as a
    daemon thread it never delays interpreter exit.
    """

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout

    def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        result: dict[str, Any] = {}

        def target() -> None:
            try:
                result["value"] = fn(*args)
            except Exception as exc:
                result["error"] = exc

        thread = threading.Thread(target=target, name="netmeter-query", daemon=True)
        thread.start()
        thread.join(self.timeout)
        if thread.is_alive():
            raise QueryTimeoutError(f"Query exceeded {self.timeout:g}s deadline")
        if "error" in result:
            raise result["error"]
        return result.get("value")


class UsageAggregator:
    def __init__(
        self,
        stats: StatsProvider,
        catalog: AppCatalog,
        icons: Optional[IconEncoder] = None,
        permissions: Optional[PermissionGate] = None,
        *,
        max_workers: Optional[int] = None,
        query_timeout: Optional[float] = None,
    ) -> None:
        self.stats = stats
        self.catalog = catalog
        self.icons = icons
        self.permissions = permissions
        # Bounds concurrent entries only; each entry waits on one query at a time.
        self.max_workers = max_workers or settings.max_concurrent_queries
        self.deadline = DeadlineRunner(query_timeout or settings.query_timeout_seconds)

    # --- Per-app ---

    def _query_detail(self, transport: Transport, window: TimeWindow, owner_id: int) -> Counters:
        return sum_buckets(self.stats.query_entity(transport, None, window, owner_id))

    def _icon_for(self, entry: CatalogEntry) -> Optional[str]:
        if self.icons is None:
            return None
        try:
            return self.icons.encode(entry.package_id)
        except Exception as exc:
            logger.warning(
                "Error getting icon for %s: %s", entry.package_id, exc, extra={"package": entry.package_id}
            )
            return None

    def _collect_entry(self, window: TimeWindow, index: int, entry: CatalogEntry) -> EntryOutcome:
        try:
            wifi = self.deadline.call(self._query_detail, Transport.WIFI, window, entry.owner_id)
            mobile = self.deadline.call(self._query_detail, Transport.MOBILE, window, entry.owner_id)
        except Exception as exc:
            # One entry's failure never aborts the batch.
            logger.warning(
                "Error processing app %s: %s",
                entry.package_id,
                exc,
                extra={"package": entry.package_id, "owner_id": entry.owner_id},
            )
            return EntryOutcome(
                index=index,
                entry=entry,
                error=str(exc) or type(exc).__name__,
                timed_out=isinstance(exc, QueryTimeoutError),
            )

        usage = TransportUsage(wifi=wifi, mobile=mobile)
        # Icons are only worth decoding for entries that will be reported.
        icon = self._icon_for(entry) if usage.total > 0 else None
        return EntryOutcome(index=index, entry=entry, usage=usage, icon=icon)

    def collect_outcomes(self, window: TimeWindow, stats: Optional[CollectionMetrics] = None) -> List[EntryOutcome]:
        """
        Query every collectable catalog entry and return one outcome per entry.

        Outcomes are in catalog enumeration order regardless of completion order.
        When ``stats`` is given, the catalog size and filter counts are recorded on it.
        """
        try:
            entries = list(self.catalog.list_installed())
        except Exception as exc:
            logger.error("Installed applications could not be listed: %s", exc)
            raise StatsUnavailableError("Installed applications could not be listed") from exc

        candidates = [(index, entry) for index, entry in enumerate(entries) if entry.is_collectable]
        if stats is not None:
            stats.seen = len(entries)
            stats.skipped = len(entries) - len(candidates)
            stats.queried = len(candidates)
        if not candidates:
            return []

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="netmeter-entry") as pool:
            return list(pool.map(lambda item: self._collect_entry(window, *item), candidates))

    def _tethering_counters(self, transport: Transport, window: TimeWindow) -> Counters:
        try:
            return self.deadline.call(self._query_detail, transport, window, TETHERING_OWNER_ID)
        except Exception as exc:
            logger.warning(
                "Error querying %s tethering: %s", transport.value, exc, extra={"transport": transport.value}
            )
            return ZERO

    def collect_tethering(self, window: TimeWindow) -> Optional[AppUsageRecord]:
        usage = TransportUsage(
            wifi=self._tethering_counters(Transport.WIFI, window),
            mobile=self._tethering_counters(Transport.MOBILE, window),
        )
        if usage.total <= 0:
            return None
        return AppUsageRecord(
            package_id=settings.tethering_package_id,
            display_name=settings.tethering_display_name,
            owner_id=TETHERING_OWNER_ID,
            usage=usage,
            icon=None,
        )

    def collect_per_app(self, window: TimeWindow) -> List[AppUsageRecord]:
        """Ranked per-app usage for ``window``, tethering included as a regular record."""
        stats = CollectionMetrics.for_window("per_app", window)
        with stats.stage("entries"):
            outcomes = self.collect_outcomes(window, stats)
        with stats.stage("tethering"):
            tethering = self.collect_tethering(window)

        records = [outcome.to_record() for outcome in outcomes if outcome.reportable]
        if tethering is not None:
            records.append(tethering)
        ranked = rank_records(records)

        stats.failed = sum(1 for outcome in outcomes if not outcome.ok)
        stats.timed_out = sum(1 for outcome in outcomes if outcome.timed_out)
        stats.reported = len(ranked)
        stats.tethering_reported = tethering is not None
        metrics.emit(stats)
        return ranked

    # --- Device-wide ---

    def _mobile_subscriber_id(self) -> Optional[str]:
        if self.permissions is None:
            return None
        try:
            if not self.permissions.has_phone_state_access():
                logger.info("Phone-state access not granted; mobile totals reported as zero")
                return None
            return self.permissions.resolve_mobile_owner_id() or None
        except Exception as exc:
            logger.warning("Mobile subscriber id could not be resolved: %s", exc)
            return None

    def _summary(self, transport: Transport, subscriber_id: Optional[str], window: TimeWindow) -> Counters:
        try:
            result = self.deadline.call(self.stats.query_summary, transport, subscriber_id, window)
        except Exception as exc:
            logger.error(
                "%s summary query failed: %s", transport.value, exc, extra={"transport": transport.value}
            )
            raise StatsUnavailableError(f"Network statistics unavailable for {transport.value}") from exc
        return result if result is not None else ZERO

    def collect_total(self, window: TimeWindow) -> TotalUsageSummary:
        """
        Device-wide totals from summary queries, independent of per-app records.

        Mobile counters need a subscriber id; without one they are zero while
        Wi-Fi is still reported.
        """
        stats = CollectionMetrics.for_window("total", window)
        with stats.stage("summary"):
            wifi = self._summary(Transport.WIFI, None, window)
            subscriber_id = self._mobile_subscriber_id()
            if subscriber_id is None:
                mobile = ZERO
            else:
                mobile = self._summary(Transport.MOBILE, subscriber_id, window)

        stats.mobile_available = subscriber_id is not None
        metrics.emit(stats)
        return TotalUsageSummary(wifi=wifi, mobile=mobile)
