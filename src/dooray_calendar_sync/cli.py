"""
Command-line interface for Dooray Calendar Sync.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from dooray_calendar_sync.calendars.apple import AppleCalendarClient
from dooray_calendar_sync.calendars.caldav_client import CalDAVCalendarClient
from dooray_calendar_sync.calendars.dooray import DoorayCalendarClient
from dooray_calendar_sync.cleanup import delete_candidates
from dooray_calendar_sync.cleanup import find_candidates
from dooray_calendar_sync.config import AppConfig
from dooray_calendar_sync.config import load_config
from dooray_calendar_sync.models import DEFAULT_CONFIG
from dooray_calendar_sync.models import DEFAULT_STORE
from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import CalendarSyncError
from dooray_calendar_sync.models import SyncResult
from dooray_calendar_sync.runner import MAX_LISTED_ERRORS
from dooray_calendar_sync.runner import initialize
from dooray_calendar_sync.runner import run_scheduled
from dooray_calendar_sync.store import SyncStore
from dooray_calendar_sync.sync.utils import get_visibility

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Three-way sync between a Dooray work calendar and Google/Apple personal calendars.",
)

console = Console()


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG)
    store_path: Path | None = None
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help=f"Config file path (default: {DEFAULT_CONFIG})"),
    ] = DEFAULT_CONFIG,
    store: Annotated[
        Path | None,
        typer.Option(
            "--store",
            help=f"Sync store path (default: [sync] store_path, else ./{DEFAULT_STORE})",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.store_path = store
    state.verbose = verbose
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=console)],
        force=True,
    )


def _load_config() -> AppConfig:
    try:
        return load_config(state.config_path)
    except CalendarSyncError as e:
        console.print(f"[bold red]Configuration error:[/] {e}")
        console.print(
            f"[dim]Set the values in {state.config_path} or via DOORAY_*/GOOGLE_*/APPLE_* "
            f"environment variables.[/dim]"
        )
        raise typer.Exit(1) from None


def _resolve_store_path(cfg: AppConfig) -> Path:
    return state.store_path or cfg.sync.store_path or Path.cwd() / DEFAULT_STORE


def _calendar_lines(cfg: AppConfig) -> Text:
    info = Text()
    info.append("  Dooray:    ", style="bold")
    info.append(f"{cfg.dooray.username} ({cfg.dooray.cloud})")
    if cfg.dooray.calendar_name:
        info.append(f" · {cfg.dooray.calendar_name}", style="dim")
    info.append("\n  Google:    ", style="bold")
    if cfg.google:
        info.append(cfg.google.calendar_id)
    else:
        info.append("not configured", style="dim")
    info.append("\n  Apple:     ", style="bold")
    if cfg.apple:
        info.append(cfg.apple.username)
        if cfg.apple.calendar_name:
            info.append(f" · {cfg.apple.calendar_name}", style="dim")
    else:
        info.append("not configured", style="dim")
    return info


def _print_results(result: SyncResult) -> None:
    results = Table.grid(padding=(0, 2))
    results.add_column(style="bold")
    results.add_column(justify="right")
    results.add_row("Created", str(result.created))
    results.add_row("Updated", str(result.updated))
    results.add_row("Deleted", str(result.deleted))
    error_val = Text(str(len(result.errors)))
    if not result.errors:
        error_val.append(" ✓", style="green")
    else:
        error_val.stylize("bold red")
    results.add_row("Errors", error_val)

    console.print(Panel(results, title="[bold]Results[/bold]", expand=False))

    if not result.errors:
        return

    errors = Table(show_header=True, header_style="bold red", box=None, padding=(0, 2))
    errors.add_column("Edge")
    errors.add_column("Event")
    errors.add_column("Message", overflow="fold")
    for err in result.errors[:MAX_LISTED_ERRORS]:
        errors.add_row(
            f"{err.source.value} → {err.target.value}", err.source_id or "—", err.message
        )
    console.print(errors)
    if len(result.errors) > MAX_LISTED_ERRORS:
        console.print(f"[dim]... and {len(result.errors) - MAX_LISTED_ERRORS} more[/dim]")


# ---------------------------------------------------------------------------
# Subcommand: sync
# ---------------------------------------------------------------------------


@app.command()
def sync(
    days_back: Annotated[
        int | None, typer.Option("--days-back", help="Days of history to sync (default: 7)")
    ] = None,
    days_forward: Annotated[
        int | None, typer.Option("--days-forward", help="Days ahead to sync (default: 90)")
    ] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Run one synchronization pass across all configured calendars."""
    from dooray_calendar_sync.preflight import run_preflight_checks

    cfg = _load_config()
    store_path = _resolve_store_path(cfg)
    if not run_preflight_checks(store_path, console):
        raise typer.Exit(1)

    back = days_back if days_back is not None else cfg.sync.days_back
    forward = days_forward if days_forward is not None else cfg.sync.days_forward

    # -- Info panel ----------------------------------------------------------
    info = _calendar_lines(cfg)
    info.append("\n  Window:    ", style="bold")
    info.append(f"-{back} / +{forward} days")
    info.append("\n  Store:     ", style="bold")
    info.append(str(store_path), style="dim")
    console.print(Panel(info, title="[bold]Dooray Calendar Sync[/bold]"))

    # -- Confirmation --------------------------------------------------------
    if not yes:
        typer.confirm("Proceed?", abort=True)

    # -- Run -----------------------------------------------------------------
    try:
        result = initialize(cfg, store_path).sync(back, forward)
    except CalendarSyncError as e:
        console.print(f"[bold red]Sync failed:[/] {e}")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted by user[/]")
        raise typer.Exit(130) from None

    _print_results(result)

    if result.errors:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Subcommand: status
# ---------------------------------------------------------------------------


@app.command()
def status() -> None:
    """Show connected calendars and what the sync store is tracking."""
    cfg = _load_config()
    store_path = _resolve_store_path(cfg)
    engine = initialize(cfg, store_path)

    info = _calendar_lines(cfg)
    info.append("\n\n")
    info.append(engine.get_status())
    info.append("\n  Store: ", style="bold")
    info.append(str(store_path), style="dim")
    console.print(Panel(info, title="[bold]Dooray Calendar Sync — Status[/bold]"))

    mappings = engine.store.all_mappings()
    if not mappings:
        if not store_path.exists():
            console.print(
                "[yellow]No sync store yet — run[/] "
                "[cyan]dooray-calendar-sync sync[/] "
                "[yellow]to create it.[/]"
            )
        else:
            console.print("[yellow]Sync store is empty — no events mirrored yet.[/]")
        return

    counts = Counter((m.source, m.target) for m in mappings)
    last_sync: dict[tuple[CalendarSource, CalendarSource], str] = {}
    for m in mappings:
        key = (m.source, m.target)
        last_sync[key] = max(last_sync.get(key, ""), m.last_synced_at)

    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("Edge")
    table.add_column("Visibility")
    table.add_column("Tracked", justify="right")
    table.add_column("Last sync")
    for (source, target), count in sorted(counts.items()):
        table.add_row(
            f"{source.value} → {target.value}",
            get_visibility(source).value,
            str(count),
            last_sync[(source, target)] or "—",
        )
    console.print(Panel(table, title="[bold]Mirrored events[/bold]", expand=False))


# ---------------------------------------------------------------------------
# Subcommand: watch
# ---------------------------------------------------------------------------


@app.command()
def watch(
    interval: Annotated[
        int | None,
        typer.Option("--interval", "-i", help="Minutes between runs (default: 15)"),
    ] = None,
) -> None:
    """Run a sync every INTERVAL minutes until interrupted."""
    from dooray_calendar_sync.preflight import run_preflight_checks

    cfg = _load_config()
    store_path = _resolve_store_path(cfg)
    if not run_preflight_checks(store_path, console):
        raise typer.Exit(1)

    minutes = interval or cfg.sync.interval_minutes
    console.print(
        f"[bold]Watching[/bold]: syncing every [cyan]{minutes}[/] minute(s). "
        f"Press Ctrl+C to stop."
    )
    try:
        run_scheduled(cfg, store_path, minutes)
    except KeyboardInterrupt:
        console.print("[yellow]Stopped[/]")
        raise typer.Exit(130) from None


# ---------------------------------------------------------------------------
# Subcommand: cleanup
# ---------------------------------------------------------------------------


class CleanupCalendar(str, Enum):
    dooray = "dooray"
    apple = "apple"


def _cleanup_client(cfg: AppConfig, calendar: CleanupCalendar) -> CalDAVCalendarClient:
    if calendar == CleanupCalendar.apple:
        if not cfg.apple:
            console.print("[bold red]Error:[/] Apple calendar is not configured.")
            raise typer.Exit(1)
        return AppleCalendarClient(
            username=cfg.apple.username,
            app_password=cfg.apple.app_password,
            calendar_name=cfg.apple.calendar_name,
        )
    return DoorayCalendarClient(
        username=cfg.dooray.username,
        password=cfg.dooray.password,
        cloud=cfg.dooray.cloud,
        tenant_id=cfg.dooray.tenant_id,
        calendar_name=cfg.dooray.calendar_name,
    )


@app.command()
def cleanup(
    calendar: Annotated[
        CleanupCalendar,
        typer.Option("--calendar", help="CalDAV calendar to clean"),
    ] = CleanupCalendar.dooray,
    delete: Annotated[
        bool, typer.Option("--delete", help="Actually delete (default is a preview)")
    ] = False,
    select_all: Annotated[
        bool, typer.Option("--all", help="Select every event in the calendar, not just strays")
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Find and remove broken or sync-created events from a CalDAV calendar.

    By default only [bold]previews[/bold] what would be removed: events dated
    before 2000, mirrors this tool created, and events tracked in the store.
    After a real delete the store forgets the mirrors it tracked in that
    calendar; mappings into the other calendars are kept.
    """
    cfg = _load_config()
    store = SyncStore(_resolve_store_path(cfg))
    client = _cleanup_client(cfg, calendar)
    source = client.name

    info = Text()
    info.append("  Calendar:  ", style="bold")
    info.append(client.describe())
    info.append("\n  Mode:      ", style="bold")
    if delete:
        info.append("DELETE", style="bold red")
    else:
        info.append("PREVIEW", style="bold magenta")
    info.append("\n  Scope:     ", style="bold")
    if select_all:
        info.append("ALL events", style="bold red")
    else:
        info.append("stray and sync-created events only")
    console.print(Panel(info, title="[bold]Calendar Cleanup[/bold]"))

    try:
        objects = client.list_objects()
    except CalendarSyncError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1) from None

    candidates = find_candidates(
        objects, store.get_synced_target_ids(source), select_all=select_all
    )
    console.print(
        f"[bold]{len(candidates)}[/] to remove, "
        f"[bold]{len(objects) - len(candidates)}[/] to keep "
        f"(of {len(objects)} event(s))"
    )
    if not candidates:
        console.print("[green]Nothing to clean up.[/]")
        return

    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Reason", style="yellow")
    for i, c in enumerate(candidates, 1):
        table.add_row(str(i), c.title, c.start, c.end, c.reason)
    console.print(table)

    if not delete:
        console.print(
            "\n[dim]Preview only. Re-run with[/] [cyan]--delete[/] [dim]to remove these events"
            " (add[/] [cyan]--all[/] [dim]to remove every event).[/dim]"
        )
        return

    if not yes:
        typer.confirm(f"Delete {len(candidates)} event(s)?", abort=True)

    deleted, failed = delete_candidates(client, candidates)
    console.print(f"\n[bold]Done:[/] deleted {deleted}, failed {failed}")

    removed = store.remove_mappings_by_target(source)
    console.print(
        f"[dim]Forgot {removed} mirror mapping(s) into {source.value} ({store.path})[/dim]"
    )

    if failed:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
