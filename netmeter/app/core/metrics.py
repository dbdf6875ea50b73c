"""Per-collection metrics rows, appended to a local JSONL file when enabled."""

from __future__ import annotations

import json
import os
import socket
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from netmeter.app.core.config import settings

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_flag(name: str) -> Optional[bool]:
    raw = os.getenv(name, "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return None


def metrics_enabled() -> bool:
    """
    NETMETER_METRICS wins when set to a recognizable flag. Otherwise rows are
    written in dev, never while pytest is running a test.
    """
    flag = _env_flag("NETMETER_METRICS")
    if flag is not None:
        return flag
    if "PYTEST_CURRENT_TEST" in os.environ:
        return False
    return settings.is_dev


def metrics_path() -> Path:
    explicit = os.getenv("NETMETER_METRICS_PATH")
    base = Path(explicit) if explicit else settings.project_root / "logs" / "collection_metrics.jsonl"
    return base.resolve()


@dataclass
class CollectionMetrics:
    """
    Counters for one collection call.

    ``seen`` is the catalog size, ``skipped`` the entries removed by the
    inclusion filter, ``queried`` the entries actually sent to the provider.
    ``timed_out`` is a subset of ``failed``.
    """

    kind: str
    window_start_ms: int
    window_end_ms: int
    seen: int = 0
    skipped: int = 0
    queried: int = 0
    failed: int = 0
    timed_out: int = 0
    reported: int = 0
    tethering_reported: bool = False
    mobile_available: Optional[bool] = None
    timings: dict[str, float] = field(default_factory=dict)

    @classmethod
    def for_window(cls, kind: str, window: Any) -> "CollectionMetrics":
        return cls(kind=kind, window_start_ms=window.start_ms, window_end_ms=window.end_ms)

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time a collection stage into ``timings["<name>_s"]``, also when it raises."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self.timings[f"{name}_s"] = round(time.perf_counter() - started, 6)

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["event"] = row.pop("kind")
        if self.mobile_available is None:
            row.pop("mobile_available")
        return row


def emit(metrics: CollectionMetrics) -> bool:
    """Append ``metrics`` as one JSONL row. Returns False when disabled or unwritable."""
    if not metrics_enabled():
        return False

    row = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "host": socket.gethostname(),
        "app_env": settings.app_env.value,
        **metrics.to_row(),
    }
    path = metrics_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(row, ensure_ascii=False) + "\n")
    except OSError:
        return False
    return True
