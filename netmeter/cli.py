from pathlib import Path
from typing import NoReturn

import typer

from netmeter.app.core.config import settings
from netmeter.app.core.errors import UsageError
from netmeter.app.services.network_usage import NetworkUsageService
from netmeter.app.services.ranking import report_to_json, summary_to_json

app = typer.Typer(help="Inspect per-app and device-wide network usage from a device snapshot.")

_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_bytes(value: int) -> str:
    size = float(value)
    for unit in _UNITS:
        if size < 1024 or unit == _UNITS[-1]:
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{value} B"  # pragma: no cover


def _snapshot_option() -> Path | None:
    return typer.Option(
        None,
        "--snapshot",
        "-s",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        help="Device snapshot JSON (defaults to NETMETER_SNAPSHOT).",
    )


def _build_service(snapshot: Path | None, workers: int | None, timeout: float | None) -> NetworkUsageService:
    path = snapshot or settings.snapshot_path
    if path is None:
        typer.echo("Error: no snapshot given (use --snapshot or NETMETER_SNAPSHOT)", err=True)
        raise typer.Exit(code=2)
    try:
        return NetworkUsageService.from_snapshot(path, max_workers=workers, query_timeout=timeout)
    except UsageError as exc:
        _fail(exc)


def _fail(exc: UsageError) -> NoReturn:
    typer.echo(f"Error [{exc.code}]: {exc.message}", err=True)
    raise typer.Exit(code=1)


@app.command("apps")
def apps(
    period: str = typer.Option("day", "--period", "-p", help="hour, day, week or month."),
    count: int = typer.Option(1, "--count", "-c", help="Number of periods to look back."),
    snapshot: Path | None = _snapshot_option(),
    as_json: bool = typer.Option(False, "--json", help="Print the canonical JSON report."),
    workers: int | None = typer.Option(None, "--workers", min=1, help="Concurrent entry queries."),
    timeout: float | None = typer.Option(None, "--timeout", min=0.001, help="Per-query deadline in seconds."),
) -> None:
    """Per-app usage ranked by total bytes."""
    service = _build_service(snapshot, workers, timeout)
    try:
        report = service.get_app_network_usage(period, count)
    except UsageError as exc:
        _fail(exc)

    if as_json:
        typer.echo(report_to_json(report, indent=2))
        return

    if not report:
        typer.echo("No network usage recorded for this period.")
        return

    for item in report:
        typer.echo(
            f"{item.app_name:<32} wifi {format_bytes(item.wifi.total):>10}  "
            f"mobile {format_bytes(item.mobile.total):>10}  total {format_bytes(item.total_bytes):>10}"
        )


@app.command("total")
def total(
    period: str = typer.Option("day", "--period", "-p", help="hour, day, week or month."),
    count: int = typer.Option(1, "--count", "-c", help="Number of periods to look back."),
    snapshot: Path | None = _snapshot_option(),
    as_json: bool = typer.Option(False, "--json", help="Print the canonical JSON summary."),
    timeout: float | None = typer.Option(None, "--timeout", min=0.001, help="Per-query deadline in seconds."),
) -> None:
    """Device-wide usage."""
    service = _build_service(snapshot, None, timeout)
    try:
        summary = service.get_total_network_usage(period, count)
    except UsageError as exc:
        _fail(exc)

    if as_json:
        typer.echo(summary_to_json(summary, indent=2))
        return

    typer.echo(f"Wi-Fi:  rx {format_bytes(summary.wifi.rx)}  tx {format_bytes(summary.wifi.tx)}")
    typer.echo(f"Mobile: rx {format_bytes(summary.mobile.rx)}  tx {format_bytes(summary.mobile.tx)}")
    typer.echo(f"Total:  {format_bytes(summary.total_bytes)}")


@app.command("permission")
def permission(
    snapshot: Path | None = _snapshot_option(),
    open_settings: bool = typer.Option(False, "--open", help="Open the usage access settings screen."),
) -> None:
    """Report whether usage access is granted."""
    service = _build_service(snapshot, None, None)
    if open_settings:
        service.open_usage_access_settings_screen()
    granted = service.has_usage_access_permission()
    typer.echo("Usage access: granted" if granted else "Usage access: not granted")
    if not granted:
        raise typer.Exit(code=3)


def main() -> None:
    """Entry point for the `netmeter` console script."""
    app()  # pragma: no cover


if __name__ == "__main__":
    main()  # pragma: no cover
