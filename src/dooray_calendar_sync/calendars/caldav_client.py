"""
CalDAV calendar client shared by the Dooray and Apple adapters.
"""

import logging
import uuid
from datetime import datetime

import caldav
from caldav.lib import error

from dooray_calendar_sync.calendars.base import CalendarClient
from dooray_calendar_sync.ical import build_calendar_object
from dooray_calendar_sync.ical import has_valid_start
from dooray_calendar_sync.ical import parse_event
from dooray_calendar_sync.models import CalendarEvent
from dooray_calendar_sync.models import CalendarSyncError
from dooray_calendar_sync.models import FetchFailed
from dooray_calendar_sync.models import RemoteWriteFailed
from dooray_calendar_sync.models import Visibility
from dooray_calendar_sync.sanitizer import EventSanitizer

logger = logging.getLogger(__name__)

# Transport-level failures a CalDAV call may raise (requests errors are OSErrors).
_CALDAV_ERRORS = (error.DAVError, OSError)


class CalDAVCalendarClient(CalendarClient):
    """
    Wrapper around one calendar collection on a CalDAV server.

    The connection is opened lazily on first use.  Mirrors are stored as
    ``<uid>.ics`` inside the collection, so the UID returned by
    ``create_event`` is all that is needed to address the object later.
    """

    def __init__(
        self,
        server_url: str,
        username: str,
        password: str,
        calendar_name: str | None = None,
    ):
        self.server_url = server_url
        self.username = username
        self.password = password
        self.calendar_name = calendar_name
        self._client: caldav.DAVClient | None = None
        self._calendar: caldav.Calendar | None = None

    # ------------------------------------------------------------------ #
    # Connection                                                           #
    # ------------------------------------------------------------------ #

    def connect(self) -> caldav.Calendar:
        """Log in, list calendars and select the configured one."""
        if self._calendar is not None:
            return self._calendar

        tag = self.name.value
        logger.debug(f"[{tag}] Connecting to {self.server_url} as {self.username}")
        client = caldav.DAVClient(url=self.server_url, username=self.username, password=self.password)
        try:
            calendars = client.principal().calendars()
        except _CALDAV_ERRORS as e:
            raise CalendarSyncError(f"[{tag}] CalDAV login failed: {e}") from e

        if not calendars:
            raise CalendarSyncError(f"[{tag}] No calendars found on {self.server_url}")

        names = [cal.name or str(cal.url) for cal in calendars]
        logger.debug(f"[{tag}] Found {len(calendars)} calendar(s): {', '.join(names)}")

        selected = None
        if self.calendar_name:
            wanted = self.calendar_name.lower()
            selected = next(
                (cal for cal in calendars if (cal.name or "").lower() == wanted), None
            )
            if selected is None:
                logger.warning(
                    f"[{tag}] Calendar '{self.calendar_name}' not found, using the first one"
                )
        if selected is None:
            selected = calendars[0]

        logger.info(f"[{tag}] Using calendar '{selected.name}' ({selected.url})")
        self._client = client
        self._calendar = selected
        return selected

    def _object(self, uid: str, data: str | None = None) -> caldav.Event:
        calendar = self.connect()
        return caldav.Event(
            client=self._client,
            url=calendar.url.join(f"{uid}.ics"),
            data=data,
            parent=calendar,
            id=uid,
        )

    # ------------------------------------------------------------------ #
    # CalendarClient interface                                             #
    # ------------------------------------------------------------------ #

    def fetch_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        tag = self.name.value
        try:
            calendar = self.connect()
            objects = calendar.search(start=start, end=end, event=True, expand=False)
        except (CalendarSyncError, *_CALDAV_ERRORS) as e:
            raise FetchFailed(f"[{tag}] Failed to fetch events: {e}") from e

        logger.info(f"[{tag}] {len(objects)} CalDAV object(s) fetched")
        events = []
        for obj in objects:
            event = parse_event(obj.data, self.name, url=str(obj.url))
            if event is None:
                continue
            if not has_valid_start(event.start_time):
                logger.debug(f"[{tag}] Skipping malformed event {event.source_id} ({event.start_time})")
                continue
            events.append(event)
        return events

    def create_event(self, event: CalendarEvent, visibility: Visibility) -> str:
        uid = str(uuid.uuid4())
        self._put(uid, event, visibility, "create")
        return uid

    def update_event(self, target_id: str, event: CalendarEvent, visibility: Visibility) -> None:
        # Unknown target ids fail instead of creating a new object.
        self._put(target_id, event, visibility, "update", no_create=True)

    def delete_event(self, target_id: str) -> None:
        tag = self.name.value
        try:
            self._object(target_id).delete()
        except error.NotFoundError:
            logger.debug(f"[{tag}] Event {target_id} already gone")
        except (CalendarSyncError, *_CALDAV_ERRORS) as e:
            raise RemoteWriteFailed(f"[{tag}] Failed to delete event {target_id}: {e}") from e

    def _put(
        self,
        uid: str,
        event: CalendarEvent,
        visibility: Visibility,
        action: str,
        no_create: bool = False,
    ):
        tag = self.name.value
        data = build_calendar_object(uid, EventSanitizer.redact(event, visibility), visibility)
        try:
            self._object(uid, data).save(no_create=no_create)
        except (CalendarSyncError, *_CALDAV_ERRORS) as e:
            raise RemoteWriteFailed(f"[{tag}] Failed to {action} event {uid}: {e}") from e

    # ------------------------------------------------------------------ #
    # Raw access (cleanup tool)                                            #
    # ------------------------------------------------------------------ #

    def list_objects(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[tuple[str, str]]:
        """Return ``(url, ical_data)`` for every event object, unparsed.

        Without a range the whole collection is listed.
        """
        try:
            calendar = self.connect()
            if start is None and end is None:
                objects = calendar.events()
            else:
                objects = calendar.search(start=start, end=end, event=True, expand=False)
        except (CalendarSyncError, *_CALDAV_ERRORS) as e:
            raise FetchFailed(f"[{self.name.value}] Failed to list events: {e}") from e
        return [(str(obj.url), obj.data) for obj in objects]

    def delete_object(self, url: str) -> None:
        """Delete a calendar object by its full URL."""
        calendar = self.connect()
        try:
            caldav.Event(client=self._client, url=url, parent=calendar).delete()
        except error.NotFoundError:
            logger.debug(f"[{self.name.value}] Object {url} already gone")
        except _CALDAV_ERRORS as e:
            raise RemoteWriteFailed(f"[{self.name.value}] Failed to delete {url}: {e}") from e
