"""
Bulk cleanup of stray or sync-created events in a CalDAV calendar.

Finds events that look broken (start year before 2000) or that this tool
wrote (lock-prefixed or ``[name] `` tagged titles, the private notice, our
PRODID, or a target id tracked in the mapping store).
"""

import logging
import re
from dataclasses import dataclass

from icalendar import Calendar

from dooray_calendar_sync.calendars.caldav_client import CalDAVCalendarClient
from dooray_calendar_sync.ical import MIN_VALID_YEAR
from dooray_calendar_sync.models import CalendarSyncError
from dooray_calendar_sync.sanitizer import LOCK_PREFIX
from dooray_calendar_sync.sanitizer import PRIVATE_NOTICE
from dooray_calendar_sync.sanitizer import PRODID
from dooray_calendar_sync.sanitizer import EventSanitizer
from dooray_calendar_sync.sanitizer import unfold

logger = logging.getLogger(__name__)

UNTITLED = "(untitled)"


@dataclass
class CleanupCandidate:
    url: str
    uid: str
    title: str
    start: str
    end: str
    reason: str = ""


def _describe(url: str, data: str) -> CleanupCandidate:
    """Pull UID, SUMMARY and raw DTSTART/DTEND out of a calendar object."""
    uid, title, start, end = "", UNTITLED, "", ""
    try:
        vevents = Calendar.from_ical(data).walk("VEVENT")
    except ValueError as e:
        logger.warning(f"Unparseable calendar object {url}: {e}")
        vevents = []
    if vevents:
        vevent = vevents[0]
        uid = str(vevent.get("UID", "")).strip()
        title = str(vevent.get("SUMMARY", "")).strip() or UNTITLED
        if vevent.get("DTSTART") is not None:
            start = vevent.get("DTSTART").to_ical().decode("utf-8")
        if vevent.get("DTEND") is not None:
            end = vevent.get("DTEND").to_ical().decode("utf-8")
    return CleanupCandidate(url=url, uid=uid, title=title, start=start, end=end)


def _start_year(raw: str) -> int:
    digits = re.sub(r"[^0-9]", "", raw)
    return int(digits[:4]) if len(digits) >= 4 else 0


def classify(
    candidate: CleanupCandidate, data: str, tracked_ids: set[str] | None = None
) -> str | None:
    """Return the reason an event should be removed, or None to keep it."""
    year = _start_year(candidate.start)
    if 0 < year < MIN_VALID_YEAR:
        return f"Invalid year ({year})"
    if candidate.title.startswith(LOCK_PREFIX.strip()):
        return "Sync mirror (🔒 private)"
    if EventSanitizer.is_managed_title(candidate.title):
        return "Sync mirror ([calendar] prefix)"
    data = unfold(data)
    if PRIVATE_NOTICE in data:
        return "Sync mirror (private notice)"
    if PRODID in data:
        return "Created by dooray-calendar-sync"
    if tracked_ids and candidate.uid in tracked_ids:
        return "Tracked in sync store"
    return None


def find_candidates(
    objects: list[tuple[str, str]],
    tracked_ids: set[str] | None = None,
    select_all: bool = False,
) -> list[CleanupCandidate]:
    """Classify ``(url, ical_data)`` pairs; ``select_all`` selects everything."""
    selected = []
    for url, data in objects:
        if not data:
            continue
        candidate = _describe(url, data)
        if select_all:
            candidate.reason = "Delete all"
        else:
            reason = classify(candidate, data, tracked_ids)
            if reason is None:
                continue
            candidate.reason = reason
        selected.append(candidate)
    return selected


def delete_candidates(
    client: CalDAVCalendarClient, candidates: list[CleanupCandidate]
) -> tuple[int, int]:
    """Delete every candidate; return ``(deleted, failed)``."""
    deleted = failed = 0
    for i, candidate in enumerate(candidates, 1):
        try:
            client.delete_object(candidate.url)
        except CalendarSyncError as e:
            failed += 1
            logger.error(f"  {i}/{len(candidates)} failed: {candidate.title!r}: {e}")
            continue
        deleted += 1
        logger.info(f"  {i}/{len(candidates)} deleted: {candidate.title!r}")
    return deleted, failed
