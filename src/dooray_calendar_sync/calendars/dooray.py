"""
Dooray (workplace) calendar over CalDAV.
"""

import logging

from dooray_calendar_sync.calendars.caldav_client import CalDAVCalendarClient
from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import ConfigIncomplete

logger = logging.getLogger(__name__)

# Cloud environment → CalDAV host.
CALDAV_DOMAINS = {
    "public": "caldav.dooray.com",
    "gov": "caldav.gov-dooray.com",
    "gov-kr": "caldav.gov-dooray.co.kr",
    "finance": "caldav.dooray.co.kr",
}
DEFAULT_CLOUD = "gov"


def caldav_url(cloud: str | None) -> str:
    """Return the CalDAV server URL for a Dooray cloud environment."""
    cloud = cloud or DEFAULT_CLOUD
    try:
        return f"https://{CALDAV_DOMAINS[cloud]}"
    except KeyError:
        raise ConfigIncomplete(
            f"Unknown Dooray cloud '{cloud}' (expected one of: {', '.join(CALDAV_DOMAINS)})"
        ) from None


class DoorayCalendarClient(CalDAVCalendarClient):
    """The workplace calendar; its events are mirrored to the others as public."""

    name = CalendarSource.DOORAY

    def __init__(
        self,
        username: str,
        password: str,
        cloud: str | None = None,
        tenant_id: str | None = None,
        calendar_name: str | None = None,
    ):
        super().__init__(caldav_url(cloud), username, password, calendar_name)
        self.cloud = cloud or DEFAULT_CLOUD
        self.tenant_id = tenant_id
        logger.debug(f"[dooray] cloud={self.cloud} tenant={tenant_id} user={username}")

    def describe(self) -> str:
        return f"dooray ({self.cloud}, {self.username})"
