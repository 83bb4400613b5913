"""CLI entry point for order-monitor."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any

import typer

from order_monitor import __version__
from order_monitor.config import AppConfig, load_config
from order_monitor.data.client import ApiError
from order_monitor.data.models import format_status_label
from order_monitor.maintenance import TransitionState
from order_monitor.monitor import OpenOrdersMonitor

logger = logging.getLogger(__name__)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"order-monitor {__version__}")
        raise typer.Exit()


app = typer.Typer(name="order-monitor", help="Order Monitor: open-order polling and maintenance orchestration")


@app.callback()
def main(
    version: Annotated[
        bool, typer.Option("--version", "-V", help="Show version and exit", callback=_version_callback, is_eager=True)
    ] = False,
) -> None:
    """Order Monitor: open-order polling and maintenance orchestration."""


DEFAULT_CONFIG = Path("config.yaml")

ConfigOption = Annotated[Path, typer.Option("--config", "-c", help="Path to config.yaml")]


def _load_config(config_path: Path) -> AppConfig:
    """Load config from file, warning if the file does not exist."""
    if config_path.exists():
        return load_config(config_path)
    logger.warning("Config file %s not found, using defaults", config_path)
    return AppConfig()


def _build_monitor(cfg: AppConfig) -> OpenOrdersMonitor:
    return OpenOrdersMonitor(config=cfg)


def _setup_logging(cfg: AppConfig) -> None:
    """Configure logging based on monitoring config."""
    from order_monitor.monitoring.logging import (  # noqa: PLC0415
        parse_level,
        setup_plain_logging,
        setup_structured_logging,
    )

    level = parse_level(cfg.monitoring.log_level)
    if cfg.monitoring.structured_logging:
        log_file = Path(cfg.monitoring.log_file) if cfg.monitoring.log_file else None
        setup_structured_logging(log_file=log_file, level=level)
    else:
        setup_plain_logging(level)


def _format_summary(summary: dict[str, Any]) -> str:
    maintenance = "on" if summary["maintenance_enabled"] else "off"
    return (
        f"orders={summary['open_orders']} groups={summary['groups']} standalone={summary['standalone']} "
        f"watched={summary['watched']} unresolved={summary['unresolved']} maintenance={maintenance}"
    )


# ----------------------------------------------------------------------
# Async bodies
# ----------------------------------------------------------------------


async def _run_headless(monitor: OpenOrdersMonitor, interval: float, cycles: int | None) -> None:
    monitor.start()
    try:
        done = 0
        while cycles is None or done < cycles:
            await asyncio.sleep(interval)
            typer.echo(_format_summary(monitor.summary()))
            done += 1
    finally:
        await monitor.stop()


async def _print_status(monitor: OpenOrdersMonitor) -> None:
    try:
        await monitor.refresh_open_orders()
    finally:
        await monitor.stop()
    view = monitor.view()
    for group in view.grouped:
        parent = group.parent
        label = f"{parent.pair or '-'} {format_status_label(parent.status)}" if parent is not None else "(parent pending)"
        typer.echo(f"Group {group.parent_id}: {label}")
        for child in group.children:
            typer.echo(f"  - {child.id} {child.pair or '-'} {child.side or '-'} {format_status_label(child.status)}")
    for order in view.standalone:
        typer.echo(f"{order.id} {order.pair or '-'} {order.side or '-'} {format_status_label(order.status)}")
    if view.pending_parents:
        typer.echo("Awaiting children: " + ", ".join(o.id for o in view.pending_parents))
    if view.empty_message:
        typer.echo(view.empty_message)


async def _print_events(monitor: OpenOrdersMonitor) -> None:
    try:
        await monitor.refresh_maintenance()
    finally:
        await monitor.stop()
    typer.echo(f"Maintenance mode: {'ON' if monitor.maintenance.enabled else 'OFF'}")
    events = monitor.store.maintenance_events
    if not events:
        typer.echo("No maintenance events")
    for event in events:
        marker = "*" if event.is_active else " "
        minutes = event.duration_minutes
        duration = f"{minutes}m" if minutes is not None else "-"
        typer.echo(
            f"{marker} {event.id} enabled={event.enabled_at or '-'} disabled={event.disabled_at or '-'} "
            f"duration={duration} watched={event.watched_orders_count} resolved={event.resolved_orders_count}"
        )


async def _toggle_maintenance(monitor: OpenOrdersMonitor, enabled: bool, exchanges: list[str] | None) -> bool:
    try:
        if exchanges:
            monitor.maintenance.set_target_exchanges(exchanges)
        if enabled:
            await monitor.refresh_open_orders()
        await monitor.refresh_maintenance()
        transition = await monitor.toggle_maintenance(enabled)
    finally:
        await monitor.stop()
    if transition is None:
        return False
    if transition.notice is not None:
        typer.echo(transition.notice.message)
    return transition.state == TransitionState.COMMITTED


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


@app.command()
def run(
    config: ConfigOption = DEFAULT_CONFIG,
    cycles: Annotated[int | None, typer.Option("--cycles", help="Stop after this many summaries")] = None,
) -> None:
    """Poll continuously and print a summary every open-orders period."""
    cfg = _load_config(config)
    _setup_logging(cfg)
    monitor = _build_monitor(cfg)
    typer.echo(
        f"Monitoring {cfg.api.base_url} (open orders every {cfg.polling.open_orders_interval:g}s, "
        f"maintenance every {cfg.polling.maintenance_interval:g}s)"
    )
    try:
        asyncio.run(_run_headless(monitor, cfg.polling.open_orders_interval, cycles))
    except KeyboardInterrupt:
        typer.echo("\nStopped.")


@app.command()
def status(config: ConfigOption = DEFAULT_CONFIG) -> None:
    """Fetch open orders once and print them grouped."""
    cfg = _load_config(config)
    monitor = _build_monitor(cfg)
    try:
        asyncio.run(_print_status(monitor))
    except ApiError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from None


@app.command()
def events(config: ConfigOption = DEFAULT_CONFIG) -> None:
    """List maintenance events."""
    cfg = _load_config(config)
    monitor = _build_monitor(cfg)
    try:
        asyncio.run(_print_events(monitor))
    except ApiError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from None


@app.command()
def maintenance(
    enabled: Annotated[bool, typer.Option("--on/--off", help="Turn maintenance mode on or off")],
    config: ConfigOption = DEFAULT_CONFIG,
    exchange: Annotated[
        list[str] | None, typer.Option("--exchange", "-e", help="Target exchange (repeatable)")
    ] = None,
) -> None:
    """Turn maintenance mode on (scoped to every loaded open order) or off."""
    cfg = _load_config(config)
    _setup_logging(cfg)
    monitor = _build_monitor(cfg)
    try:
        committed = asyncio.run(_toggle_maintenance(monitor, enabled, exchange))
    except ApiError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from None
    if not committed:
        raise typer.Exit(code=1)


@app.command()
def dashboard(
    config: ConfigOption = DEFAULT_CONFIG,
    host: Annotated[str | None, typer.Option("--host", help="Dashboard bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", help="Dashboard port")] = None,
) -> None:
    """Serve the dashboard HTTP API with polling running in the background."""
    cfg = _load_config(config)
    _setup_logging(cfg)

    # Fall back to config values when CLI flags are not provided
    resolved_host = host if host is not None else cfg.monitoring.dashboard_host
    resolved_port = port if port is not None else cfg.monitoring.dashboard_port

    try:
        import uvicorn  # noqa: PLC0415

        from order_monitor.dashboard.api import create_app  # noqa: PLC0415
    except ImportError:
        typer.echo("Dashboard requires optional dependencies: pip install order-monitor[dashboard]")
        raise typer.Exit(code=1) from None

    fastapi_app = create_app(_build_monitor(cfg))
    typer.echo(f"Dashboard starting on http://{resolved_host}:{resolved_port}")
    uvicorn.run(fastapi_app, host=resolved_host, port=resolved_port, log_level=cfg.monitoring.log_level.lower())
