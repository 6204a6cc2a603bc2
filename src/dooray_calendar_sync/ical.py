"""
iCalendar (RFC 5545) parsing and building for the CalDAV adapters.
"""

import logging
import re
from datetime import date
from datetime import datetime
from datetime import timezone

from icalendar import Calendar
from icalendar import Event
from icalendar import vRecur

from dooray_calendar_sync.models import CalendarEvent
from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import Visibility
from dooray_calendar_sync.sanitizer import PRODID
from dooray_calendar_sync.sanitizer import unfold

logger = logging.getLogger(__name__)

# Events starting before this year are corrupt imports, not real appointments.
MIN_VALID_YEAR = 2000

_VEVENT_BLOCK = re.compile(r"^BEGIN:VEVENT\r?$(.*?)^END:VEVENT", re.MULTILINE | re.DOTALL)
_RRULE_LINE = re.compile(r"^RRULE(?:;[^:\r\n]*)?:([^\r\n]*)", re.MULTILINE)


# ---------------------------------------------------------------------------
# Date text helpers
# ---------------------------------------------------------------------------


def normalize_ical_date(raw: str) -> str:
    """
    Convert iCal basic-format date text to the extended form.

    ``20260301`` → ``2026-03-01``; ``20260301T100000Z`` →
    ``2026-03-01T10:00:00Z``.  The ``Z`` is kept only when present; anything
    else is returned trimmed but otherwise untouched.
    """
    cleaned = raw.strip()
    if len(cleaned) == 8:
        return f"{cleaned[0:4]}-{cleaned[4:6]}-{cleaned[6:8]}"
    if len(cleaned) >= 15:
        day = f"{cleaned[0:4]}-{cleaned[4:6]}-{cleaned[6:8]}"
        clock = f"{cleaned[9:11]}:{cleaned[11:13]}:{cleaned[13:15]}"
        tz = "Z" if cleaned.endswith("Z") else ""
        return f"{day}T{clock}{tz}"
    return cleaned


def has_valid_start(start_time: str) -> bool:
    """True unless the start year is missing or earlier than MIN_VALID_YEAR."""
    try:
        return int(start_time[:4]) >= MIN_VALID_YEAR
    except ValueError:
        return False


def to_ical_value(text: str, is_all_day: bool) -> date | datetime:
    """
    Turn an event time string back into a value ``icalendar`` can encode.

    All-day → ``date``.  ``...Z`` or an explicit offset → UTC ``datetime``.
    No zone information → naive (floating) ``datetime``.
    """
    if is_all_day:
        return date.fromisoformat(text[:10])
    if text.endswith("Z"):
        return datetime.strptime(text[:19], "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)
    value = datetime.fromisoformat(text)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value


def _raw_text(prop) -> str:
    return prop.to_ical().decode("utf-8")


def raw_rrule(ical_data: str | bytes) -> str | None:
    """RRULE value of the first VEVENT exactly as written, parts in their original order."""
    if isinstance(ical_data, bytes):
        ical_data = ical_data.decode("utf-8", errors="replace")
    block = _VEVENT_BLOCK.search(unfold(ical_data))
    if block is None:
        return None
    match = _RRULE_LINE.search(block.group(1))
    return match.group(1).strip() if match else None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_event(
    ical_data: str | bytes, source: CalendarSource, url: str | None = None
) -> CalendarEvent | None:
    """
    Parse the first VEVENT of a calendar object into a CalendarEvent.

    Returns None (with a warning logged) when the data is unparseable, and
    None silently when the event has no DTSTART.
    """
    try:
        cal = Calendar.from_ical(ical_data)
        vevents = cal.walk("VEVENT")
        if not vevents:
            return None
        vevent = vevents[0]

        dtstart = vevent.get("DTSTART")
        if dtstart is None:
            return None
        start_raw = _raw_text(dtstart)
        dtend = vevent.get("DTEND")
        end_raw = _raw_text(dtend) if dtend is not None else start_raw

        uid = str(vevent.get("UID", "")).strip()
        last_modified = vevent.get("LAST-MODIFIED")

        description = vevent.get("DESCRIPTION")
        location = vevent.get("LOCATION")

        return CalendarEvent(
            source_id=uid or url or "",
            source=source,
            title=str(vevent.get("SUMMARY", "")).strip(),
            start_time=normalize_ical_date(start_raw),
            end_time=normalize_ical_date(end_raw),
            is_all_day="T" not in start_raw,
            description=str(description).strip() if description is not None else None,
            location=str(location).strip() if location is not None else None,
            updated_at=_raw_text(last_modified).strip() if last_modified is not None else None,
            recurrence=raw_rrule(ical_data) if "RRULE" in vevent else None,
        )
    except (ValueError, KeyError, IndexError) as e:
        logger.warning(f"[{source.value}] Failed to parse calendar object {url or ''}: {e}")
        return None


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------


def build_calendar_object(uid: str, event: CalendarEvent, visibility: Visibility) -> str:
    """
    Serialize an (already redacted) event as a VCALENDAR document.

    CLASS follows ``visibility``; private mirrors are also marked
    TRANSP:OPAQUE so they block time as busy.
    """
    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")

    vevent = Event()
    vevent.add("uid", uid)
    vevent.add("dtstamp", datetime.now(timezone.utc))
    vevent.add("dtstart", to_ical_value(event.start_time, event.is_all_day))
    vevent.add("dtend", to_ical_value(event.end_time, event.is_all_day))
    vevent.add("summary", event.title)
    if event.description:
        vevent.add("description", event.description)
    if event.location:
        vevent.add("location", event.location)

    if visibility == Visibility.PRIVATE:
        vevent.add("class", "PRIVATE")
        vevent.add("transp", "OPAQUE")
    else:
        vevent.add("class", "PUBLIC")

    if event.recurrence:
        vevent.add("rrule", vRecur.from_ical(event.recurrence))

    cal.add_component(vevent)
    return cal.to_ical().decode("utf-8")
