"""
Stateless helpers for the sync engine.
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone

from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import Visibility


def get_visibility(
    source: CalendarSource, workplace: CalendarSource = CalendarSource.DOORAY
) -> Visibility:
    """Workplace events are mirrored as public, every personal source as private."""
    return Visibility.PUBLIC if source == workplace else Visibility.PRIVATE


def sync_window(
    days_back: int, days_forward: int, now: datetime | None = None
) -> tuple[datetime, datetime]:
    """Return the UTC ``(start, end)`` range a sync run covers."""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=days_back), now + timedelta(days=days_forward)


def utc_now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
