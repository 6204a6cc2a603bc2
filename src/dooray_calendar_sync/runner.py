"""
Entry points shared by the CLI and the scheduler: build an engine, run it,
and render results as plain text.
"""

import logging
import time
from collections.abc import Callable
from pathlib import Path

from dooray_calendar_sync.calendars.apple import AppleCalendarClient
from dooray_calendar_sync.calendars.dooray import DoorayCalendarClient
from dooray_calendar_sync.calendars.google import GoogleCalendarClient
from dooray_calendar_sync.config import AppConfig
from dooray_calendar_sync.models import CalendarSyncError
from dooray_calendar_sync.models import SyncResult
from dooray_calendar_sync.store import SyncStore
from dooray_calendar_sync.sync.engine import SyncEngine
from dooray_calendar_sync.sync.utils import utc_now_iso

logger = logging.getLogger(__name__)

MAX_LISTED_ERRORS = 5


def initialize(config: AppConfig, store_path: Path | None = None) -> SyncEngine:
    """Create a SyncEngine with Dooray and whichever personal calendars are configured."""
    store = SyncStore(store_path or config.sync.store_path)
    engine = SyncEngine(store)

    d = config.dooray
    engine.register_client(
        DoorayCalendarClient(
            username=d.username,
            password=d.password,
            cloud=d.cloud,
            tenant_id=d.tenant_id,
            calendar_name=d.calendar_name,
        )
    )
    logger.debug("Registered dooray calendar client")

    if config.google:
        g = config.google
        engine.register_client(
            GoogleCalendarClient(
                client_id=g.client_id,
                client_secret=g.client_secret,
                refresh_token=g.refresh_token,
                calendar_id=g.calendar_id,
                time_zone=g.time_zone,
            )
        )
        logger.debug("Registered google calendar client")

    if config.apple:
        a = config.apple
        engine.register_client(
            AppleCalendarClient(
                username=a.username,
                app_password=a.app_password,
                calendar_name=a.calendar_name,
            )
        )
        logger.debug("Registered apple calendar client")

    return engine


def format_sync_result(result: SyncResult) -> str:
    """Plain-text report: counts, then up to five error lines."""
    lines = [
        "Calendar sync complete",
        "",
        f"  Created: {result.created}",
        f"  Updated: {result.updated}",
        f"  Deleted: {result.deleted}",
    ]
    if result.errors:
        lines.append(f"  Errors:  {len(result.errors)}")
        for err in result.errors[:MAX_LISTED_ERRORS]:
            lines.append(f"    - [{err.source.value}→{err.target.value}] {err.message}")
        if len(result.errors) > MAX_LISTED_ERRORS:
            lines.append(f"    ... and {len(result.errors) - MAX_LISTED_ERRORS} more")
    lines += [
        "",
        "Sync rules:",
        "  • Dooray events → shown as public in the other calendars",
        "  • Apple/Google events → shown as private busy blocks",
    ]
    return "\n".join(lines)


def handle_calendar_sync(
    config: AppConfig,
    store_path: Path | None = None,
    days_back: int | None = None,
    days_forward: int | None = None,
) -> str:
    """Run one sync and return the formatted report (or the failure message)."""
    try:
        engine = initialize(config, store_path)
        result = engine.sync(
            days_back if days_back is not None else config.sync.days_back,
            days_forward if days_forward is not None else config.sync.days_forward,
        )
    except CalendarSyncError as e:
        return f"Calendar sync failed: {e}"
    return format_sync_result(result)


def handle_calendar_status(config: AppConfig, store_path: Path | None = None) -> str:
    try:
        return initialize(config, store_path).get_status()
    except CalendarSyncError as e:
        return f"Status check failed: {e}"


def handle_scheduled_sync(config: AppConfig, store_path: Path | None = None) -> SyncResult | None:
    """One scheduler tick: run a sync and log the report; never raises CalendarSyncError."""
    logger.info(f"[{utc_now_iso()}] Scheduled sync starting...")
    try:
        engine = initialize(config, store_path)
        result = engine.sync(config.sync.days_back, config.sync.days_forward)
    except CalendarSyncError as e:
        logger.error(f"Scheduled sync failed: {e}")
        return None
    logger.info(format_sync_result(result))
    return result


def run_scheduled(
    config: AppConfig,
    store_path: Path | None = None,
    interval_minutes: int | None = None,
    iterations: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Call handle_scheduled_sync every ``interval_minutes`` until interrupted.

    Runs are strictly sequential; the next one starts only after the previous
    one finished and the interval elapsed.  ``iterations`` bounds the loop
    (None = forever).  Returns the number of runs performed.
    """
    interval = interval_minutes or config.sync.interval_minutes
    runs = 0
    while iterations is None or runs < iterations:
        handle_scheduled_sync(config, store_path)
        runs += 1
        if iterations is not None and runs >= iterations:
            break
        logger.info(f"Next sync in {interval} minute(s)")
        sleep(interval * 60)
    return runs
