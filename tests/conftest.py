"""
Shared pytest fixtures and iCal helpers.
"""

import pytest

from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.store import SyncStore
from dooray_calendar_sync.sync.engine import SyncEngine
from tests.fake_client import FakeCalendarClient


def make_vcalendar(
    uid: str | None = "evt-1",
    summary: str = "Team sync",
    dtstart: str | None = "DTSTART:20260301T100000Z",
    dtend: str | None = "DTEND:20260301T110000Z",
    extra: tuple[str, ...] = (),
    prodid: str = "-//Test//Test//EN",
) -> str:
    """Return a VCALENDAR with one VEVENT.

    ``dtstart``/``dtend`` are full property lines so parameters such as
    ``;VALUE=DATE`` or ``;TZID=...`` can be exercised; pass None to omit.
    """
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{prodid}",
        "BEGIN:VEVENT",
    ]
    if uid is not None:
        lines.append(f"UID:{uid}")
    lines.append("DTSTAMP:20260224T000000Z")
    if dtstart is not None:
        lines.append(dtstart)
    if dtend is not None:
        lines.append(dtend)
    lines.append(f"SUMMARY:{summary}")
    lines.extend(extra)
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "sync-store.json"


@pytest.fixture
def store(store_path):
    return SyncStore(store_path)


@pytest.fixture
def dooray():
    return FakeCalendarClient(CalendarSource.DOORAY)


@pytest.fixture
def google():
    return FakeCalendarClient(CalendarSource.GOOGLE)


@pytest.fixture
def apple():
    return FakeCalendarClient(CalendarSource.APPLE)


@pytest.fixture
def engine(store, dooray, google, apple):
    engine = SyncEngine(store)
    engine.register_client(dooray)
    engine.register_client(google)
    engine.register_client(apple)
    return engine
