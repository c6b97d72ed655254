"""CLI commands for MediBook."""

import asyncio
import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from medibook.config import get_settings
from medibook.scheduling import SchedulingError, TimeSlot

app = typer.Typer(
    name="medibook",
    help="Doctor availability and appointment booking",
    add_completion=False,
)
console = Console()


async def load_slots(doctor_id: str, day: str) -> list[TimeSlot]:
    """Derive one doctor's slots for one day straight from the database."""
    from medibook.core.database import _get_session_factory, dispose_engine
    from medibook.core.sql_store import SqlSchedulingStore
    from medibook.scheduling import KeyedLock, SchedulingService

    try:
        async with _get_session_factory()() as session:
            service = SchedulingService(SqlSchedulingStore(session), KeyedLock())
            return await service.deriver.get_available_slots(doctor_id, day)
    finally:
        await dispose_engine()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"Starting MediBook API server on {host}:{port}")
    if settings.demo_mode:
        console.print("[yellow]Demo mode: data lives in memory and is lost on exit[/yellow]")
    uvicorn.run(
        "medibook.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command("init-db")
def init_db():
    """Create the database tables."""
    from medibook.core.database import dispose_engine, init_db as create_tables

    async def _run():
        try:
            await create_tables()
        finally:
            await dispose_engine()

    asyncio.run(_run())
    console.print("[green]Database initialized[/green]")


@app.command()
def slots(
    doctor_id: str = typer.Argument(..., help="Doctor ID"),
    day: str = typer.Argument(..., metavar="DATE", help="Date as YYYY-MM-DD"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show a doctor's slots for one day."""
    try:
        result = asyncio.run(load_slots(doctor_id, day))
    except SchedulingError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if output_json:
        console.print_json(json.dumps([s.model_dump(mode="json", by_alias=True) for s in result]))
        return

    if not result:
        console.print(f"[yellow]No schedule for doctor {doctor_id} on {day}[/yellow]")
        return

    table = Table(title=f"Slots for {doctor_id} on {day}")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Status")
    for s in result:
        status = "[green]open[/green]" if s.is_available else "[red]taken[/red]"
        table.add_row(f"{s.start_time:%H:%M}", f"{s.end_time:%H:%M}", status)
    console.print(table)

    free = sum(1 for s in result if s.is_available)
    console.print(f"{free}/{len(result)} slots open")


@app.command()
def version():
    """Show version information."""
    from medibook import __version__

    console.print(f"MediBook v{__version__}")
