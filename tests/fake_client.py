"""
In-memory fake calendar client for testing.

Implements the CalendarClient interface without any network access.  User
events live in ``events`` (keyed by source_id); mirrors written by the engine
live in ``mirrors`` (keyed by the generated target id) and are returned by
``fetch_events`` alongside user events, the way a real calendar would.
"""

from dataclasses import replace

from dooray_calendar_sync.calendars.base import CalendarClient
from dooray_calendar_sync.models import CalendarEvent
from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import FetchFailed
from dooray_calendar_sync.models import RemoteWriteFailed
from dooray_calendar_sync.models import Visibility
from dooray_calendar_sync.sanitizer import EventSanitizer


def make_event(
    source_id: str,
    source: CalendarSource,
    title: str = "Test Event",
    updated_at: str | None = "20260224T000000Z",
    **kwargs,
) -> CalendarEvent:
    """Return a timed event on 2026-03-01, 10:00-11:00 UTC."""
    fields = {
        "start_time": "2026-03-01T10:00:00Z",
        "end_time": "2026-03-01T11:00:00Z",
    }
    fields.update(kwargs)
    return CalendarEvent(
        source_id=source_id, source=source, title=title, updated_at=updated_at, **fields
    )


class FakeCalendarClient(CalendarClient):
    """In-memory stub that satisfies the CalendarClient contract."""

    def __init__(self, name: CalendarSource, events: list[CalendarEvent] | None = None):
        self.name = name
        self.events: dict[str, CalendarEvent] = {e.source_id: e for e in events or []}
        # target_id → (redacted event, visibility)
        self.mirrors: dict[str, tuple[CalendarEvent, Visibility]] = {}
        self.creates: list[str] = []
        self.updates: list[str] = []
        self.deletes: list[str] = []
        self.fetches = 0

        # Failure injection
        self.fail_fetch = False
        self.fail_create_for: set[str] = set()
        self.fail_update = False
        self.fail_delete = False
        self._next_id = 0

        # Return recurring mirrors as per-occurrence instances, like Google
        # does with singleEvents=True.
        self.expand_recurring = False

    # ------------------------------------------------------------------ #
    # CalendarClient interface                                             #
    # ------------------------------------------------------------------ #

    def fetch_events(self, start, end) -> list[CalendarEvent]:
        self.fetches += 1
        if self.fail_fetch:
            raise FetchFailed(f"[{self.name.value}] backend unavailable")
        mirrors = []
        for tid, (event, _) in self.mirrors.items():
            if self.expand_recurring and event.recurrence:
                mirrors += [
                    replace(event, source_id=f"{tid}_{n}", series_id=tid, recurrence=None)
                    for n in range(3)
                ]
            else:
                mirrors.append(replace(event, source_id=tid))
        return list(self.events.values()) + mirrors

    def create_event(self, event: CalendarEvent, visibility: Visibility) -> str:
        if event.source_id in self.fail_create_for:
            raise RemoteWriteFailed(f"create rejected for {event.source_id}")
        self._next_id += 1
        target_id = f"{self.name.value}-mirror-{self._next_id}"
        self.mirrors[target_id] = (
            replace(EventSanitizer.redact(event, visibility), source=self.name),
            visibility,
        )
        self.creates.append(event.source_id)
        return target_id

    def update_event(self, target_id: str, event: CalendarEvent, visibility: Visibility) -> None:
        if self.fail_update:
            raise RemoteWriteFailed(f"update rejected for {target_id}")
        self.mirrors[target_id] = (
            replace(EventSanitizer.redact(event, visibility), source=self.name),
            visibility,
        )
        self.updates.append(target_id)

    def delete_event(self, target_id: str) -> None:
        if self.fail_delete:
            raise RemoteWriteFailed(f"delete rejected for {target_id}")
        self.mirrors.pop(target_id, None)
        self.deletes.append(target_id)

    # ------------------------------------------------------------------ #
    # Test helpers                                                         #
    # ------------------------------------------------------------------ #

    def mirror_visibilities(self) -> set[Visibility]:
        return {visibility for _, visibility in self.mirrors.values()}

    def reset_counters(self):
        """Clear the create/update/delete lists between sync runs."""
        self.creates.clear()
        self.updates.clear()
        self.deletes.clear()
