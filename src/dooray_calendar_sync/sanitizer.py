"""
Event redaction: hides personal details before an event is mirrored.
"""

import re
from dataclasses import replace

from dooray_calendar_sync.models import CalendarEvent
from dooray_calendar_sync.models import Visibility

LOCK_PREFIX = "🔒 "
PRIVATE_NOTICE = "(Private event) This event was synced from another calendar."
PRODID = "-//Dooray Calendar Sync//EN"

# Titles written by earlier tool versions that tagged the origin, e.g. "[Google] Lunch".
_BRACKET_TAG = re.compile(r"^\[.+\]\s")
_FOLD = re.compile(r"\r?\n[ \t]")


def unfold(ical_data: str) -> str:
    """Join RFC 5545 folded content lines back together."""
    return _FOLD.sub("", ical_data)


class EventSanitizer:
    """Applies the visibility policy to events on their way to another calendar."""

    @staticmethod
    def redact(event: CalendarEvent, visibility: Visibility) -> CalendarEvent:
        """
        Return the copy of ``event`` that may be written to a target calendar.

        Public events pass through unchanged.  Private events keep their timing
        and recurrence but get a lock-prefixed title, the fixed notice in place
        of the description, and no location.  The input is never mutated.
        """
        if visibility == Visibility.PUBLIC:
            return replace(event, visibility=visibility)

        title = event.title
        if not title.startswith(LOCK_PREFIX):
            title = LOCK_PREFIX + title
        return replace(
            event,
            title=title,
            description=PRIVATE_NOTICE,
            location=None,
            visibility=visibility,
        )

    @staticmethod
    def is_managed_title(title: str | None) -> bool:
        """Check if a title looks like one our sync tool wrote."""
        if not title:
            return False
        return title.startswith(LOCK_PREFIX) or bool(_BRACKET_TAG.match(title))

    @staticmethod
    def is_managed_data(ical_data: str | None) -> bool:
        """Check raw iCal text for the markers we stamp on every mirror."""
        if not ical_data:
            return False
        ical_data = unfold(ical_data)
        return PRIVATE_NOTICE in ical_data or PRODID in ical_data
