"""Activity Tracker CLI — command-line front-end over the Application root."""

from __future__ import annotations

import asyncio
import logging
from functools import update_wrapper

import click
from rich.console import Console
from rich.live import Live
from rich.table import Table

from activity_tracker import __version__, config
from activity_tracker.app import Application
from activity_tracker.models import Bucket
from activity_tracker.timer import format_time

console = Console()

BUCKET_CHOICE = click.Choice(["day", "month", "year"], case_sensitive=False)


def _run_async(coro):
    """Helper to run async coroutines from sync CLI."""
    return asyncio.run(coro)


def with_app(func):
    """Open the Application for the command and always close it."""

    @click.pass_context
    def wrapper(ctx, *args, **kwargs):
        async def runner():
            app = await Application.create(ctx.obj.get("user"), db_path=ctx.obj.get("db"))
            try:
                return await func(app, *args, **kwargs)
            finally:
                await app.close()

        return _run_async(runner())

    return update_wrapper(wrapper, func)


# ─── Main Group ──────────────────────────────────────────────────


@click.group()
@click.version_option(__version__, prog_name="activity-tracker")
@click.option("--user", "-u", default=None, help="User whose activities to use")
@click.option("--db", default=None, help="Local database path")
@click.pass_context
def cli(ctx, user, db) -> None:
    """Activity Tracker — hours per activity by day, month and year."""
    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    ctx.ensure_object(dict)
    ctx.obj.update(user=user, db=db)


@cli.command("list")
@click.option("--bucket", "-b", type=BUCKET_CHOICE, default="day", help="Timeframe")
@with_app
async def list_cmd(app: Application, bucket) -> None:
    """Show every activity for one timeframe."""
    target = Bucket.parse(bucket)
    activities = await app.data.get_data()
    if not activities:
        console.print("[yellow]No activities yet.[/]")
        return
    table = Table(title=f"⏱ {app.data.username or 'default'} — {target.name.lower()}")
    table.add_column("Activity", style="bold")
    table.add_column("Current", style="cyan", justify="right")
    table.add_column("Previous", justify="right")
    table.add_column("Notes", justify="right")
    table.add_column("Timer")
    for activity in activities:
        frame = activity.timeframe(target)
        timer = ""
        if app.timers.has_timer(activity.title):
            state = "⏸" if app.timers.is_paused(activity.title) else "▶"
            timer = f"{state} {format_time(app.timers.elapsed(activity.title))}"
        table.add_row(
            activity.title, f"{frame.current:.2f}h", f"{frame.previous:.2f}h",
            str(len(frame.notes)), timer,
        )
    console.print(table)


@cli.command("add")
@click.argument("title")
@click.argument("hours", type=float)
@click.option("--bucket", "-b", type=BUCKET_CHOICE, default="day", help="Timeframe")
@click.option("--note", "-n", default=None, help="Note for this entry")
@with_app
async def add_cmd(app: Application, title, hours, bucket, note) -> None:
    """Add HOURS to an activity."""
    if hours <= 0:
        raise click.BadParameter("hours must be positive", param_hint="HOURS")
    if await app.add_time(title, hours, bucket, note):
        console.print(f"[green]✓[/] {hours} hrs added to [bold]{title}[/]")
    else:
        console.print(f"[red]✗[/] Could not add time to [bold]{title}[/]")
        raise click.exceptions.Exit(1)


@cli.command("create")
@click.argument("title")
@click.option("--color", default=None, help="CSS color, e.g. 'hsl(15, 100%, 70%)'")
@click.option("--icon", default=None, help="Icon file name")
@with_app
async def create_cmd(app: Application, title, color, icon) -> None:
    """Create a new activity."""
    result = await app.data.create_activity(title, color, icon)
    if not result:
        console.print(f"[red]✗[/] {result.message}")
        raise click.exceptions.Exit(1)
    console.print(f"[green]✓[/] Created [bold]{result.activity.title}[/]")


@cli.command("delete")
@click.argument("title")
@with_app
async def delete_cmd(app: Application, title) -> None:
    """Delete an activity."""
    result = await app.data.delete_activity(title)
    if not result:
        console.print(f"[red]✗[/] {result.message}")
        raise click.exceptions.Exit(1)
    console.print(f"[green]✓[/] Deleted [bold]{title}[/]")


@cli.command("reset")
@click.argument("title", required=False)
@click.option("--bucket", "-b", type=BUCKET_CHOICE, default=None, help="Only this timeframe")
@click.option("--yes", is_flag=True, help="Skip confirmation when resetting everything")
@with_app
async def reset_cmd(app: Application, title, bucket, yes) -> None:
    """Zero an activity's hours, or restore the default activities."""
    if title:
        if await app.data.reset_activity(title, bucket):
            console.print(f"[green]✓[/] Reset [bold]{title}[/]")
            return
        console.print(f"[red]✗[/] Activity not found: {title}")
        raise click.exceptions.Exit(1)
    if not yes and not click.confirm("Replace all activities with the defaults?"):
        return
    activities = await app.data.reset_data()
    console.print(f"[green]✓[/] Restored {len(activities)} default activities")


@cli.command("sessions")
@click.option("--activity", "-a", default=None, help="Filter by activity")
@click.option("--limit", "-l", default=20, help="How many to show")
@with_app
async def sessions_cmd(app: Application, activity, limit) -> None:
    """Show the most recent logged sessions."""
    sessions = await app.data.get_time_sessions(activity=activity)
    if not sessions:
        console.print("[yellow]No sessions logged yet.[/]")
        return
    table = Table(title="📒 Sessions")
    table.add_column("When")
    table.add_column("Activity", style="bold")
    table.add_column("Hours", style="cyan", justify="right")
    table.add_column("Note")
    for session in sessions[-limit:]:
        table.add_row(session.timestamp[:19], session.activity, f"{session.hours:.2f}", session.note or "")
    console.print(table)


# ─── Timers ──────────────────────────────────────────────────────


@cli.group()
def timer() -> None:
    """Live stopwatches per activity."""


@timer.command("start")
@click.argument("title")
@with_app
async def timer_start(app: Application, title) -> None:
    """Start (or resume) a timer."""
    if await app.data.get_activity(title) is None:
        console.print(f"[red]✗[/] Activity not found: {title}")
        raise click.exceptions.Exit(1)
    resumed = app.timers.is_paused(title)
    await app.timers.start(title)
    console.print(f"[green]▶[/] Timer {'resumed' if resumed else 'started'} for [bold]{title}[/]")


@timer.command("resume")
@click.argument("title")
@with_app
async def timer_resume(app: Application, title) -> None:
    """Resume a paused timer."""
    if not app.timers.is_paused(title):
        console.print(f"[yellow]No paused timer for {title}[/]")
        return
    await app.timers.start(title)
    console.print(f"[green]▶[/] Timer resumed for [bold]{title}[/]")


@timer.command("pause")
@click.argument("title")
@with_app
async def timer_pause(app: Application, title) -> None:
    """Pause a running timer."""
    if await app.timers.pause(title):
        console.print(f"[yellow]⏸[/] {title} paused at {format_time(app.timers.elapsed(title))}")
    else:
        console.print(f"[yellow]No running timer for {title}[/]")


@timer.command("stop")
@click.argument("title")
@click.option("--bucket", "-b", type=BUCKET_CHOICE, default="day", help="Timeframe to book into")
@click.option("--note", "-n", default=None, help="Note for the session")
@with_app
async def timer_stop(app: Application, title, bucket, note) -> None:
    """Stop a timer and add its hours."""
    hours = await app.stop_timer(title, bucket, note)
    if hours is None:
        console.print(f"[yellow]No timer for {title}[/]")
        return
    console.print(f"[green]⏹[/] Timer stopped: {hours:.2f} hrs saved to [bold]{title}[/]")


def _timer_table(elapsed: dict[str, int], app: Application) -> Table:
    table = Table(title="⏱ Timers")
    table.add_column("Activity", style="bold")
    table.add_column("Elapsed", style="cyan", justify="right")
    table.add_column("State")
    for title, ms in elapsed.items():
        table.add_row(title, format_time(ms), "paused" if app.timers.is_paused(title) else "running")
    return table


@timer.command("status")
@with_app
async def timer_status(app: Application) -> None:
    """Show all timers."""
    if not app.timers.active_timers():
        console.print("[yellow]No active timers.[/]")
        return
    console.print(_timer_table(app.timers.snapshot(), app))


@timer.command("watch")
@with_app
async def timer_watch(app: Application) -> None:
    """Live view of running timers (Ctrl+C to leave them running)."""
    if not app.timers.active_timers():
        console.print("[yellow]No active timers.[/]")
        return
    with Live(_timer_table(app.timers.snapshot(), app), console=console) as live:
        task = app.timers.start_ticker(lambda elapsed: live.update(_timer_table(elapsed, app)))
        try:
            await task
        except asyncio.CancelledError:
            pass


# ─── Users ───────────────────────────────────────────────────────


@cli.group()
def user() -> None:
    """Manage local users."""


@user.command("list")
@with_app
async def user_list(app: Application) -> None:
    current = await app.users.current_user()
    users = app.users.users()
    if not users:
        console.print("[yellow]No users yet.[/]")
        return
    for u in users:
        marker = "[green]●[/]" if u.name == current else " "
        console.print(f"{marker} {u.name}")


@user.command("create")
@click.argument("name")
@with_app
async def user_create(app: Application, name) -> None:
    result = await app.users.create_user(name)
    if not result:
        console.print(f"[red]✗[/] {result.message}")
        raise click.exceptions.Exit(1)
    console.print(f"[green]✓[/] Created user [bold]{result.user.name}[/]")


@user.command("delete")
@click.argument("name")
@with_app
async def user_delete(app: Application, name) -> None:
    """Forget a user (their activities are kept)."""
    if await app.users.delete_user(name):
        console.print(f"[green]✓[/] Removed user [bold]{name}[/]")
    else:
        console.print(f"[yellow]No user named {name}[/]")


@user.command("use")
@click.argument("name")
@with_app
async def user_use(app: Application, name) -> None:
    """Make NAME the active user."""
    await app.switch_user(name)
    console.print(f"[green]✓[/] Active user: [bold]{name}[/]")


if __name__ == "__main__":
    cli()
