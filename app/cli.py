import asyncio

import structlog
import typer
from rich.console import Console
from rich.table import Table

console = Console()
cli_app = typer.Typer(name="uptime-admin", help="Uptime tracker administrative CLI")

# Keep service logs out of the tables
structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(30))

_STATUS_STYLE = {"up": "green", "down": "red", "degraded": "yellow"}


def _run_async(coro):
    """Run async code from sync CLI context."""
    return asyncio.run(coro)


async def _load_service():
    """Build a read-only tracking service and replay the event log into it."""
    import app.core.database as db_module
    from app.config import settings
    from app.services.event_log.sql_store import SqlEventLog
    from app.services.uptime.service import UptimeTrackingService

    await db_module.init_db()
    service = UptimeTrackingService.from_settings(SqlEventLog(db_module.async_session), {}, settings)
    for svc in service.services:
        await service.tailer.replay(svc)
    return service


async def _dispose():
    import app.core.database as db_module
    await db_module.close_db()


def _styled(status: str) -> str:
    style = _STATUS_STYLE.get(status, "white")
    return f"[{style}]{status}[/{style}]"


@cli_app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Run the HTTP API with uptime tracking."""
    import uvicorn

    uvicorn.run("app.main:app", host=host, port=port)


@cli_app.command("summary")
def summary(
    hours: float = typer.Option(24, "--hours", help="Window in hours (-1 for all time)"),
):
    """Show uptime per service, replayed from the event log."""
    from app.services.uptime.aggregator import format_period

    async def _summary():
        service = await _load_service()
        try:
            return service.get_all_service_uptime_summaries(hours)
        finally:
            await _dispose()

    summaries = _run_async(_summary())

    if not summaries:
        console.print("[dim]No uptime data recorded yet.[/dim]")
        return

    table = Table(title=f"Service Uptime ({format_period(hours)})")
    table.add_column("Service", style="cyan")
    table.add_column("Status")
    table.add_column("Uptime %", justify="right")
    table.add_column("Up")
    table.add_column("Down")
    table.add_column("Last Change")

    for s in summaries:
        table.add_row(
            s.service_name,
            _styled(s.current_status),
            f"{s.uptime_percentage:.2f}",
            s.total_uptime,
            s.total_downtime,
            s.last_status_change.strftime("%Y-%m-%d %H:%M:%S"),
        )

    console.print(table)


@cli_app.command("timeline")
def timeline(
    service_name: str = typer.Argument(help="Service name, e.g. 'http'"),
    hours: float = typer.Option(24, "--hours", help="Window in hours (-1 for all time)"),
):
    """Show the recorded status transitions for one service."""
    from app.services.uptime.aggregator import format_duration

    async def _timeline():
        service = await _load_service()
        try:
            return service.get_service_uptime_timeline(service_name, hours)
        finally:
            await _dispose()

    result = _run_async(_timeline())

    if result is None:
        console.print(f"[yellow]No timeline data found for service '{service_name}'.[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"{service_name}: {result.uptime_percentage:.2f}% up")
    table.add_column("Timestamp")
    table.add_column("Status")
    table.add_column("Duration")
    table.add_column("Details", style="dim")

    for record in result.records:
        duration = format_duration(record.duration) if record.duration is not None else "ongoing"
        details = record.metadata.get("error") or record.metadata.get("performance_grade") or record.metadata.get("reason") or ""
        table.add_row(
            record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            _styled(record.status),
            duration,
            str(details),
        )

    console.print(table)


@cli_app.command("stats")
def stats():
    """Show projection sizes after replaying the event log."""
    async def _stats():
        service = await _load_service()
        try:
            return service.get_memory_stats()
        finally:
            await _dispose()

    memory = _run_async(_stats())

    console.print(f"\n  Total records:   {memory['total_records']}")
    console.print(f"  Memory estimate: {memory['memory_estimate']}")
    for name, count in sorted(memory["records_per_service"].items()):
        console.print(f"    {name}: {count}")
    console.print()


def main():
    cli_app()


if __name__ == "__main__":
    main()
