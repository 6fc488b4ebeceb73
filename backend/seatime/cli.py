"""SeaTime CLI: sea service tracking from AIS movement history.

Commands:
  init-db        - create database tables
  serve          - run the HTTP API
  run-scheduler  - run the polling loop in the foreground
  run-due        - run one scheduler pass (for cron)
  check-vessel   - check one vessel's AIS now
  verify-tasks   - create/reactivate missing scheduled tasks
  pending        - list entries awaiting review
  confirm        - confirm a pending entry
  reject         - reject a pending entry
"""
from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.table import Table

from seatime.config import settings

app = typer.Typer(
    name="seatime",
    help="Sea service tracking from AIS movement history.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(level=logging.DEBUG if verbose else settings.LOG_LEVEL)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db_command():
    """Create database tables."""
    from seatime.database import init_db

    init_db()
    console.print("[green]Database ready.[/green]")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Run the HTTP API."""
    import uvicorn

    console.print(f"API running at [cyan]http://{host}:{port}[/cyan] - press Ctrl+C to stop")
    uvicorn.run("seatime.main:app", host=host, port=port)


@app.command("run-scheduler")
def run_scheduler(
    poll_seconds: int = typer.Option(None, "--poll-seconds", help="Seconds between due-task passes"),
):
    """Run the AIS polling loop until interrupted."""
    from seatime.database import init_db
    from seatime.modules.scheduler import SchedulerLoop

    init_db()
    loop = SchedulerLoop(poll_seconds=poll_seconds)
    console.print(f"Scheduler running every [cyan]{loop.poll_seconds}s[/cyan] - press Ctrl+C to stop")
    try:
        loop.run_forever()
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


@app.command("run-due")
def run_due():
    """Run every due task once, then exit."""
    from seatime.modules.scheduler import run_due_tasks

    result = run_due_tasks()
    if not result.results:
        console.print("[dim]No tasks due.[/dim]")
        return

    table = Table(title=f"Scheduler pass at {result.now:%Y-%m-%d %H:%M}")
    table.add_column("Task", justify="right")
    table.add_column("Vessel", justify="right")
    table.add_column("Status")
    table.add_column("Transition")
    table.add_column("Error", style="dim")
    for r in result.results:
        color = "green" if r.status == "ok" else "yellow"
        table.add_row(str(r.task_id), str(r.vessel_id), f"[{color}]{r.status}[/{color}]",
                      r.transition or "-", r.error or "")
    console.print(table)


@app.command("check-vessel")
def check_vessel(
    vessel_id: int = typer.Argument(..., help="Vessel id"),
    no_refresh: bool = typer.Option(False, "--no-refresh", help="Allow a cached sample"),
):
    """Check a vessel's AIS position now and apply the interval transition."""
    from seatime.database import SessionLocal
    from seatime.errors import SeaTimeError
    from seatime.modules.pipeline import check_vessel_ais

    db = SessionLocal()
    try:
        result = check_vessel_ais(db, vessel_id, force_refresh=not no_refresh, manual=True)
    except SeaTimeError as e:
        console.print(f"[red]{e.code}[/red]: {e}")
        raise typer.Exit(1)
    finally:
        db.close()

    if result.no_data:
        console.print("[yellow]Provider has no current data for this vessel.[/yellow]")
        return
    s = result.sample
    console.print(
        f"Speed [cyan]{s.speed_knots if s.speed_knots is not None else '?'}[/cyan] kn at "
        f"({s.latitude}, {s.longitude}) {s.timestamp:%Y-%m-%d %H:%M} UTC"
    )
    console.print(f"Verdict: [bold]{result.verdict.value}[/bold]  Transition: [bold]{result.transition.value}[/bold]")
    if result.validity is not None:
        flag = "[green]compliant[/green]" if result.validity.compliance and result.validity.compliance.value == "compliant" \
            else "[yellow]below 4h minimum[/yellow]"
        console.print(f"Entry {result.entry_id} closed: {flag}")


@app.command("verify-tasks")
def verify_tasks():
    """Create or reactivate the scheduled task of every active vessel."""
    from seatime.database import SessionLocal
    from seatime.modules.scheduler import reconcile_scheduled_tasks

    db = SessionLocal()
    try:
        summary = reconcile_scheduled_tasks(db)
    finally:
        db.close()
    console.print(
        f"Active vessels: {summary.total_active_vessels}  "
        f"[green]created {summary.created}[/green]  "
        f"[yellow]reactivated {summary.reactivated}[/yellow]  "
        f"[dim]already active {summary.already_active}[/dim]"
    )


@app.command("pending")
def pending(user_id: str = typer.Option(None, "--user", help="Only this user's entries")):
    """List closed entries awaiting confirmation."""
    from seatime.database import SessionLocal
    from seatime.modules.entries import get_pending_entries
    from seatime.modules.validity import evaluate_entry

    db = SessionLocal()
    try:
        rows = get_pending_entries(db, user_id=user_id)
        if not rows:
            console.print("[dim]Nothing pending.[/dim]")
            return
        table = Table(title="Pending sea time")
        table.add_column("Id", justify="right")
        table.add_column("Vessel", justify="right")
        table.add_column("Start")
        table.add_column("End")
        table.add_column("Hours", justify="right")
        table.add_column("MCA")
        for e in rows:
            v = evaluate_entry(e)
            if not v.confirmable:
                mca = "[red]missing position[/red]"
            elif e.mca_compliant:
                mca = "[green]yes[/green]"
            else:
                mca = "[yellow]under 4h[/yellow]"
            table.add_row(
                str(e.entry_id), str(e.vessel_id),
                f"{e.start_time:%Y-%m-%d %H:%M}", f"{e.end_time:%Y-%m-%d %H:%M}",
                f"{e.duration_hours:.2f}", mca,
            )
        console.print(table)
    finally:
        db.close()


@app.command("confirm")
def confirm(
    entry_id: int = typer.Argument(...),
    service_type: str = typer.Option("actual_sea_service", "--service-type"),
    notes: str = typer.Option(None, "--notes"),
):
    """Confirm a pending entry."""
    from seatime.database import SessionLocal
    from seatime.errors import SeaTimeError
    from seatime.modules.confirmation import confirm_entry

    db = SessionLocal()
    try:
        entry = confirm_entry(db, entry_id, service_type, notes=notes)
        console.print(f"[green]Entry {entry.entry_id} confirmed[/green] ({entry.service_type})")
    except (SeaTimeError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        db.close()


@app.command("reject")
def reject(
    entry_id: int = typer.Argument(...),
    notes: str = typer.Option(None, "--notes"),
):
    """Reject a pending entry."""
    from seatime.database import SessionLocal
    from seatime.errors import SeaTimeError
    from seatime.modules.confirmation import reject_entry

    db = SessionLocal()
    try:
        reject_entry(db, entry_id, notes=notes)
        console.print(f"[dim]Entry {entry_id} rejected.[/dim]")
    except SeaTimeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    app()
