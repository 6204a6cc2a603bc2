"""
Google Calendar (API v3) adapter.
"""

import logging
from datetime import datetime

from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from dooray_calendar_sync.calendars.base import CalendarClient
from dooray_calendar_sync.ical import has_valid_start
from dooray_calendar_sync.models import CalendarEvent
from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import FetchFailed
from dooray_calendar_sync.models import RemoteWriteFailed
from dooray_calendar_sync.models import Visibility
from dooray_calendar_sync.sanitizer import EventSanitizer

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
SCOPES = ["https://www.googleapis.com/auth/calendar"]
PAGE_SIZE = 250

_GOOGLE_ERRORS = (HttpError, GoogleAuthError, OSError)


def _has_offset(value: str) -> bool:
    """True if an ISO date-time string carries ``Z`` or a ``±HH:MM`` offset."""
    if value.endswith("Z"):
        return True
    clock = value.partition("T")[2]
    return "+" in clock or "-" in clock


class GoogleCalendarClient(CalendarClient):
    """
    One Google calendar, authorised through a stored OAuth2 refresh token.

    ``service`` may be passed in to reuse an already built API resource; by
    default one is built on first use.
    """

    name = CalendarSource.GOOGLE

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        calendar_id: str = "primary",
        time_zone: str | None = None,
        service=None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.calendar_id = calendar_id or "primary"
        self.time_zone = time_zone
        self._service = service

    def describe(self) -> str:
        return f"google ({self.calendar_id})"

    @property
    def service(self):
        if self._service is None:
            credentials = Credentials(
                None,
                refresh_token=self.refresh_token,
                client_id=self.client_id,
                client_secret=self.client_secret,
                token_uri=TOKEN_URI,
                scopes=SCOPES,
            )
            self._service = build("calendar", "v3", credentials=credentials, cache_discovery=False)
        return self._service

    # ------------------------------------------------------------------ #
    # CalendarClient interface                                             #
    # ------------------------------------------------------------------ #

    def fetch_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        events: list[CalendarEvent] = []
        page_token = None
        try:
            while True:
                response = (
                    self.service.events()
                    .list(
                        calendarId=self.calendar_id,
                        timeMin=start.isoformat(),
                        timeMax=end.isoformat(),
                        singleEvents=True,
                        orderBy="startTime",
                        maxResults=PAGE_SIZE,
                        pageToken=page_token,
                    )
                    .execute()
                )
                for item in response.get("items", []):
                    event = self.to_calendar_event(item)
                    if event is not None:
                        events.append(event)
                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except _GOOGLE_ERRORS as e:
            raise FetchFailed(f"[google] Failed to fetch events: {e}") from e

        logger.info(f"[google] {len(events)} event(s) fetched")
        return events

    def create_event(self, event: CalendarEvent, visibility: Visibility) -> str:
        body = self.to_google_event(event, visibility)
        try:
            created = (
                self.service.events().insert(calendarId=self.calendar_id, body=body).execute()
            )
        except _GOOGLE_ERRORS as e:
            raise RemoteWriteFailed(f"[google] Failed to create event: {e}") from e
        return created["id"]

    def update_event(self, target_id: str, event: CalendarEvent, visibility: Visibility) -> None:
        body = self.to_google_event(event, visibility)
        try:
            self.service.events().update(
                calendarId=self.calendar_id, eventId=target_id, body=body
            ).execute()
        except _GOOGLE_ERRORS as e:
            raise RemoteWriteFailed(f"[google] Failed to update event {target_id}: {e}") from e

    def delete_event(self, target_id: str) -> None:
        try:
            self.service.events().delete(calendarId=self.calendar_id, eventId=target_id).execute()
        except HttpError as e:
            if e.resp.status in (404, 410):
                logger.debug(f"[google] Event {target_id} already gone")
                return
            raise RemoteWriteFailed(f"[google] Failed to delete event {target_id}: {e}") from e
        except (GoogleAuthError, OSError) as e:
            raise RemoteWriteFailed(f"[google] Failed to delete event {target_id}: {e}") from e

    # ------------------------------------------------------------------ #
    # Mapping                                                              #
    # ------------------------------------------------------------------ #

    def to_calendar_event(self, item: dict) -> CalendarEvent | None:
        """Convert an API event resource; None for cancelled or malformed items."""
        if item.get("status") == "cancelled":
            return None
        start = item.get("start", {})
        end = item.get("end", {})
        is_all_day = "date" in start
        if is_all_day:
            start_time = start["date"]
            end_time = end.get("date", start_time)
        else:
            start_time = start.get("dateTime")
            if not start_time:
                return None
            end_time = end.get("dateTime", start_time)

        if not has_valid_start(start_time):
            logger.debug(f"[google] Skipping malformed event {item.get('id')} ({start_time})")
            return None

        recurrence = None
        for rule in item.get("recurrence") or []:
            if rule.startswith("RRULE:"):
                recurrence = rule[len("RRULE:"):]
                break

        return CalendarEvent(
            source_id=item["id"],
            source=self.name,
            title=item.get("summary", ""),
            start_time=start_time,
            end_time=end_time,
            is_all_day=is_all_day,
            description=item.get("description"),
            location=item.get("location"),
            updated_at=item.get("updated"),
            recurrence=recurrence,
            series_id=item.get("recurringEventId"),
        )

    def to_google_event(self, event: CalendarEvent, visibility: Visibility) -> dict:
        """Build the request body for insert/update, redacted per ``visibility``."""
        event = EventSanitizer.redact(event, visibility)
        body: dict = {
            "summary": event.title,
            "description": event.description or "",
            "visibility": "private" if visibility == Visibility.PRIVATE else "default",
        }
        if event.location:
            body["location"] = event.location

        if event.is_all_day:
            body["start"] = {"date": event.start_time.split("T")[0]}
            body["end"] = {"date": event.end_time.split("T")[0]}
        else:
            body["start"] = self._date_time(event.start_time)
            body["end"] = self._date_time(event.end_time)

        if event.recurrence:
            body["recurrence"] = [f"RRULE:{event.recurrence}"]

        if visibility == Visibility.PRIVATE:
            body["transparency"] = "opaque"
        return body

    def _date_time(self, value: str) -> dict:
        # Floating times need an explicit zone; Google rejects them otherwise.
        if self.time_zone and not _has_offset(value):
            return {"dateTime": value, "timeZone": self.time_zone}
        return {"dateTime": value}
