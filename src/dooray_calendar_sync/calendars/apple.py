"""
Apple iCloud calendar over CalDAV.
"""

from dooray_calendar_sync.calendars.caldav_client import CalDAVCalendarClient
from dooray_calendar_sync.models import CalendarSource

ICLOUD_CALDAV_URL = "https://caldav.icloud.com"


class AppleCalendarClient(CalDAVCalendarClient):
    """iCloud calendar, authenticated with an Apple ID and app-specific password."""

    name = CalendarSource.APPLE

    def __init__(self, username: str, app_password: str, calendar_name: str | None = None):
        super().__init__(ICLOUD_CALDAV_URL, username, app_password, calendar_name)

    def describe(self) -> str:
        return f"apple ({self.username})"
