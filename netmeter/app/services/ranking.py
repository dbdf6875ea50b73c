"""Ranking and canonical output shaping for usage results."""

from __future__ import annotations

import json
from typing import Iterable, List

from netmeter.app.schemas.usage import AppUsageSchema, CountersSchema, TotalUsageSchema
from netmeter.app.services.usage_types import AppUsageRecord, Counters, TotalUsageSummary


def rank_records(records: Iterable[AppUsageRecord]) -> List[AppUsageRecord]:
    """
    Order records by total bytes, largest first, dropping zero-usage rows.

    ``sorted`` is stable, so equal totals keep their enumeration order.
    """
    return sorted(
        (record for record in records if record.total_bytes > 0),
        key=lambda record: record.total_bytes,
        reverse=True,
    )


def _counters(counters: Counters) -> CountersSchema:
    return CountersSchema(rx=counters.rx, tx=counters.tx, total=counters.total)


def format_record(record: AppUsageRecord) -> AppUsageSchema:
    return AppUsageSchema(
        package_name=record.package_id,
        app_name=record.display_name,
        icon=record.icon,
        uid=record.owner_id,
        wifi=_counters(record.usage.wifi),
        mobile=_counters(record.usage.mobile),
        total_bytes=record.total_bytes,
    )


def format_report(records: Iterable[AppUsageRecord]) -> List[AppUsageSchema]:
    return [format_record(record) for record in rank_records(records)]


def format_summary(summary: TotalUsageSummary) -> TotalUsageSchema:
    # A zero summary is still a valid result.
    return TotalUsageSchema(
        wifi=_counters(summary.wifi),
        mobile=_counters(summary.mobile),
        total_bytes=summary.total_bytes,
    )


def report_to_json(report: Iterable[AppUsageSchema], *, indent: int | None = None) -> str:
    return json.dumps([item.model_dump(by_alias=True) for item in report], indent=indent)


def summary_to_json(summary: TotalUsageSchema, *, indent: int | None = None) -> str:
    return json.dumps(summary.model_dump(by_alias=True), indent=indent)
