"""
Capability interface every calendar adapter implements.
"""

from abc import ABC
from abc import abstractmethod
from datetime import datetime

from dooray_calendar_sync.models import CalendarEvent
from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import Visibility


class CalendarClient(ABC):
    """
    Read/write access to one calendar.

    ``fetch_events`` raises FetchFailed; the write methods raise
    RemoteWriteFailed.  Deleting an event that is already gone is not an error.
    Writes receive the visibility the engine decided on and apply the
    redaction contract (see EventSanitizer) before anything leaves the process.
    """

    name: CalendarSource

    @abstractmethod
    def fetch_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """Return the events overlapping [start, end], tagged with ``self.name``."""

    @abstractmethod
    def create_event(self, event: CalendarEvent, visibility: Visibility) -> str:
        """Write a new mirror of ``event`` and return its id in this calendar."""

    @abstractmethod
    def update_event(self, target_id: str, event: CalendarEvent, visibility: Visibility) -> None:
        """Overwrite the mirror ``target_id`` with the current state of ``event``."""

    @abstractmethod
    def delete_event(self, target_id: str) -> None:
        """Remove the mirror ``target_id``."""

    def describe(self) -> str:
        """Short human-readable label used in logs and the status panel."""
        return self.name.value
