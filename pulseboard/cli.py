import asyncio
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from pulseboard.core.exceptions import PulseError

console = Console()
cli_app = typer.Typer(name="pulseboard-admin", help="Pulseboard administrative CLI")


def _run_async(coro):
    """Run async code from sync CLI context."""
    try:
        return asyncio.run(coro)
    except PulseError as exc:
        console.print(f"[bold red]{exc.message}[/bold red]")
        raise typer.Exit(code=1)


async def _ensure_db():
    from pulseboard.core.database import init_db
    await init_db()


@cli_app.command("create-target")
def create_target(
    name: str = typer.Option(..., "--name", help="Display name for the target"),
    type: str = typer.Option("push", "--type", help="Check type, e.g. 'push' or 'http'"),
    url: str = typer.Option(None, "--url", help="Checked URL, if any"),
    max_retries: int = typer.Option(0, "--max-retries", help="Failures tolerated as PENDING before DOWN"),
    upside_down: bool = typer.Option(False, "--upside-down", help="Treat a failing check as UP"),
    resend_interval: int = typer.Option(0, "--resend-interval", help="Re-alert every N DOWN beats (0 = never)"),
):
    """Register a new target and print its push token."""
    async def _create():
        await _ensure_db()
        from pulseboard.services.targets import TargetService
        return await TargetService().create_target(
            name=name,
            type=type,
            url=url,
            max_retries=max_retries,
            upside_down=upside_down,
            resend_interval=resend_interval,
        )

    target = _run_async(_create())

    console.print(f"\n[bold green]Target created.[/bold green]\n")
    console.print(f"  ID:         {target.id}")
    console.print(f"  Name:       {target.name}")
    console.print(f"  Max retries: {target.max_retries}")
    console.print(f"\n  [bold yellow]Push URL: /api/push/{target.push_token}[/bold yellow]\n")


@cli_app.command("list-targets")
def list_targets(
    active_only: bool = typer.Option(False, "--active-only", help="Hide inactive targets"),
):
    """List registered targets."""
    async def _list():
        await _ensure_db()
        from pulseboard.services.targets import TargetService
        return await TargetService().list_targets(active_only=active_only)

    targets = _run_async(_list())

    if not targets:
        console.print("[dim]No targets found.[/dim]")
        return

    table = Table(title="Targets")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Active", style="green")
    table.add_column("Retries")
    table.add_column("Created")

    for target in targets:
        created = target.created_at.strftime("%Y-%m-%d %H:%M") if target.created_at else "-"
        table.add_row(
            str(target.id),
            target.name,
            target.type,
            "yes" if target.active else "no",
            str(target.max_retries),
            created,
        )

    console.print(table)


@cli_app.command("add-maintenance")
def add_maintenance(
    target_id: int = typer.Argument(help="Target to put under maintenance"),
    title: str = typer.Option("", "--title"),
    start: datetime = typer.Option(None, "--start", help="Start time (UTC); defaults to now"),
    end: datetime = typer.Option(None, "--end", help="End time (UTC); open-ended when omitted"),
):
    """Schedule a maintenance window for a target."""
    async def _add():
        await _ensure_db()
        from pulseboard.services.targets import TargetService
        return await TargetService().add_maintenance(target_id, start=start, end=end, title=title)

    window = _run_async(_add())

    until = window.end_time.strftime("%Y-%m-%d %H:%M") if window.end_time else "further notice"
    console.print(
        f"[bold green]Maintenance scheduled[/bold green] for target {target_id} "
        f"from {window.start_time:%Y-%m-%d %H:%M} until {until}."
    )


@cli_app.command("push")
def push(
    push_token: str = typer.Argument(help="Push token of the target"),
    status: str = typer.Option("up", "--status", help="'up' or 'down'"),
    msg: str = typer.Option("OK", "--msg"),
    ping: float = typer.Option(None, "--ping", help="Latency in milliseconds"),
):
    """Record a heartbeat for a push target, as the push endpoint would."""
    async def _push():
        await _ensure_db()
        from pulseboard.schemas.status import Status
        from pulseboard.services.aggregator import AggregatorRegistry
        from pulseboard.services.ingest import HeartbeatIngestor

        raw_signal = Status.up if status.strip().lower() == "up" else Status.down
        ingestor = HeartbeatIngestor(AggregatorRegistry())
        return await ingestor.push(push_token, raw_signal, ping=ping, msg=msg)

    result = _run_async(_push())

    console.print(
        f"Recorded [bold]{result.record.status}[/bold] (retries={result.record.retries}, "
        f"important={result.important}, notify={result.notify})"
    )


def main():
    cli_app()


if __name__ == "__main__":
    main()
