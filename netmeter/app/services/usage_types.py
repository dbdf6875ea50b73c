"""Shared types for network usage collection."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional

TETHERING_OWNER_ID = -1


class Transport(StrEnum):
    WIFI = "wifi"
    MOBILE = "mobile"


@dataclass(frozen=True)
class Counters:
    rx: int = 0
    tx: int = 0

    def __post_init__(self) -> None:
        if self.rx < 0 or self.tx < 0:
            raise ValueError(f"Byte counters must be non-negative (rx={self.rx}, tx={self.tx})")

    @property
    def total(self) -> int:
        return self.rx + self.tx

    def __add__(self, other: "Counters") -> "Counters":
        return Counters(rx=self.rx + other.rx, tx=self.tx + other.tx)


ZERO = Counters()


@dataclass(frozen=True)
class TransportUsage:
    wifi: Counters = ZERO
    mobile: Counters = ZERO

    @property
    def total(self) -> int:
        return self.wifi.total + self.mobile.total


@dataclass(frozen=True)
class CatalogEntry:
    package_id: str
    owner_id: int
    display_name: str
    is_system: bool = False
    is_updated_system: bool = False
    has_launcher: bool = True

    @property
    def is_collectable(self) -> bool:
        """
        Launcher-less system apps are skipped.

        Background system services without a launcher are therefore never
        counted even when they generate traffic.
        """
        return not ((self.is_system or self.is_updated_system) and not self.has_launcher)


@dataclass(frozen=True)
class AppUsageRecord:
    package_id: str
    display_name: str
    owner_id: int
    usage: TransportUsage
    icon: Optional[str] = None

    @property
    def total_bytes(self) -> int:
        return self.usage.total

    @property
    def is_tethering(self) -> bool:
        return self.owner_id == TETHERING_OWNER_ID


@dataclass(frozen=True)
class TotalUsageSummary:
    wifi: Counters = ZERO
    mobile: Counters = ZERO

    @property
    def total_bytes(self) -> int:
        return self.wifi.total + self.mobile.total


@dataclass(frozen=True)
class EntryOutcome:
    """Result of collecting one catalog entry: usage on success, a reason on failure."""

    index: int
    entry: CatalogEntry
    usage: Optional[TransportUsage] = None
    error: Optional[str] = None
    timed_out: bool = False
    icon: Optional[str] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.error is None and self.usage is not None

    @property
    def reportable(self) -> bool:
        return self.ok and self.usage.total > 0

    def to_record(self) -> AppUsageRecord:
        return AppUsageRecord(
            package_id=self.entry.package_id,
            display_name=self.entry.display_name,
            owner_id=self.entry.owner_id,
            usage=self.usage,
            icon=self.icon,
        )
