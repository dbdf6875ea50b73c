from abc import ABC, abstractmethod
from typing import Iterable, Optional, Sequence

from netmeter.app.services.time_window import TimeWindow
from netmeter.app.services.usage_types import CatalogEntry, Counters, Transport


class StatsProvider(ABC):
    """
    Abstract base class for the platform's network statistics subsystem.
    """

    @abstractmethod
    def query_entity(
        self,
        transport: Transport,
        subscriber_id: Optional[str],
        window: TimeWindow,
        owner_id: int,
    ) -> Iterable[Counters]:
        """
        Detail query for a single owner id.

        Args:
            transport: Wi-Fi or mobile.
            subscriber_id: Mobile subscriber identifier, or None when not required.
            window: Resolved time window.
            owner_id: Application owner id, or the tethering sentinel (-1).

        Returns:
            Iterable[Counters]: Bucketed counters; the caller sums them.
        """
        pass

    @abstractmethod
    def query_summary(
        self,
        transport: Transport,
        subscriber_id: Optional[str],
        window: TimeWindow,
    ) -> Counters:
        """Summary query returning pre-aggregated device counters for one transport."""
        pass


class AppCatalog(ABC):
    @abstractmethod
    def list_installed(self) -> Sequence[CatalogEntry]:
        """List installed applications in enumeration order."""
        pass


class IconEncoder(ABC):
    @abstractmethod
    def encode(self, package_id: str) -> Optional[str]:
        """Return a data-URI encoded thumbnail for the package, or None."""
        pass


class PermissionGate(ABC):
    @abstractmethod
    def has_usage_access(self) -> bool:
        pass

    @abstractmethod
    def has_phone_state_access(self) -> bool:
        pass

    @abstractmethod
    def resolve_mobile_owner_id(self) -> Optional[str]:
        """Mobile subscriber id; None when phone-state access is missing or unsupported."""
        pass

    @abstractmethod
    def open_usage_access_settings(self) -> None:
        pass
