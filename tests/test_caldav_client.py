"""
Unit tests for the CalDAV adapter shared by the Dooray and Apple calendars,
against an in-memory server patched in for ``caldav.DAVClient``/``caldav.Event``.
"""

from datetime import datetime
from datetime import timezone

import caldav
import pytest
from caldav.lib import error

from dooray_calendar_sync.calendars.apple import ICLOUD_CALDAV_URL
from dooray_calendar_sync.calendars.apple import AppleCalendarClient
from dooray_calendar_sync.calendars.dooray import DoorayCalendarClient
from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import FetchFailed
from dooray_calendar_sync.models import RemoteWriteFailed
from dooray_calendar_sync.models import Visibility
from tests.conftest import make_vcalendar
from tests.fake_client import make_event

START = datetime(2026, 2, 1, tzinfo=timezone.utc)
END = datetime(2026, 5, 1, tzinfo=timezone.utc)


class _URL(str):
    def join(self, name: str) -> "_URL":
        return _URL(f"{self.rstrip('/')}/{name}")


class _Object:
    def __init__(self, url, data):
        self.url = url
        self.data = data


class _Calendar:
    """One collection: objects keyed by URL, optional injected error."""

    def __init__(self, name: str | None, path: str):
        self.name = name
        self.url = _URL(f"https://dav.example/{path}/")
        self.objects: dict[str, str] = {}
        self.error: Exception | None = None
        self.searches: list[dict] = []

    def add(self, uid: str, data: str) -> str:
        url = self.url.join(f"{uid}.ics")
        self.objects[url] = data
        return url

    def _listing(self):
        if self.error is not None:
            raise self.error
        return [_Object(url, data) for url, data in self.objects.items()]

    def search(self, **kwargs):
        self.searches.append(kwargs)
        return self._listing()

    def events(self):
        return self._listing()


class _Event:
    """Stands in for caldav.Event, reading and writing the parent collection."""

    def __init__(self, client=None, url=None, data=None, parent=None, id=None):
        self.url = url
        self.data = data
        self.parent = parent
        self.id = id

    def save(self, no_create=False):
        if self.parent.error is not None:
            raise self.parent.error
        if no_create and self.url not in self.parent.objects:
            raise error.ConsistencyError(reason="object does not exist")
        self.parent.objects[self.url] = self.data
        return self

    def delete(self):
        if self.parent.error is not None:
            raise self.parent.error
        if self.url not in self.parent.objects:
            raise error.NotFoundError(reason="404 Not Found")
        del self.parent.objects[self.url]


class _Server:
    def __init__(self):
        self.calendars: list[_Calendar] = []
        self.login_error: Exception | None = None
        self.logins: list[tuple[str, str]] = []


@pytest.fixture
def server(monkeypatch):
    server = _Server()

    class _Principal:
        def calendars(self):
            return list(server.calendars)

    class _DAVClient:
        def __init__(self, url, username, password):
            server.logins.append((url, username))

        def principal(self):
            if server.login_error is not None:
                raise server.login_error
            return _Principal()

    monkeypatch.setattr(caldav, "DAVClient", _DAVClient)
    monkeypatch.setattr(caldav, "Event", _Event)
    return server


@pytest.fixture
def home(server):
    calendar = _Calendar("Home", "home")
    server.calendars += [calendar, _Calendar("Work", "work")]
    return calendar


@pytest.fixture
def apple(home):
    return AppleCalendarClient("me@icloud.com", "app-pw", calendar_name="home")


class TestConnect:
    def test_selects_calendar_by_name_case_insensitively(self, server, home):
        client = AppleCalendarClient("me@icloud.com", "app-pw", calendar_name="WORK")
        assert client.connect() is server.calendars[1]
        assert server.logins == [(ICLOUD_CALDAV_URL, "me@icloud.com")]

    def test_unknown_name_falls_back_to_first(self, server, home, caplog):
        client = AppleCalendarClient("me@icloud.com", "app-pw", calendar_name="Holidays")
        assert client.connect() is home
        assert "not found" in caplog.text

    def test_connects_once(self, server, apple):
        apple.fetch_events(START, END)
        apple.fetch_events(START, END)
        assert len(server.logins) == 1

    def test_dooray_uses_cloud_host(self, server, home):
        client = DoorayCalendarClient("me@corp.example", "pw", cloud="public")
        client.connect()
        assert server.logins == [("https://caldav.dooray.com", "me@corp.example")]

    def test_login_failure_is_fetch_failed(self, server, apple):
        server.login_error = error.AuthorizationError(reason="401 Unauthorized")
        with pytest.raises(FetchFailed):
            apple.fetch_events(START, END)

    def test_no_calendars_is_fetch_failed(self, server):
        client = AppleCalendarClient("me@icloud.com", "app-pw")
        with pytest.raises(FetchFailed, match="No calendars"):
            client.fetch_events(START, END)


class TestFetch:
    def test_parses_and_filters_objects(self, apple, home):
        home.add("real", make_vcalendar(uid="real", summary="Dinner"))
        home.add("epoch", make_vcalendar(uid="epoch", dtstart="DTSTART:19700101T000000Z"))
        home.add("nostart", make_vcalendar(uid="nostart", dtstart=None))
        home.add("broken", "not a calendar")

        events = apple.fetch_events(START, END)

        assert [e.source_id for e in events] == ["real"]
        assert events[0].source == CalendarSource.APPLE
        assert events[0].title == "Dinner"
        assert home.searches == [{"start": START, "end": END, "event": True, "expand": False}]

    def test_transport_error_is_fetch_failed(self, apple, home):
        home.error = OSError("connection reset")
        with pytest.raises(FetchFailed):
            apple.fetch_events(START, END)


class TestWrite:
    def test_create_stores_uid_object(self, apple, home):
        event = make_event("G1", CalendarSource.GOOGLE, "Gym", location="Fitness 24")

        uid = apple.create_event(event, Visibility.PRIVATE)

        url = home.url.join(f"{uid}.ics")
        data = home.objects[url]
        assert f"UID:{uid}" in data
        assert "SUMMARY:🔒 Gym" in data
        assert "CLASS:PRIVATE" in data
        assert "LOCATION" not in data

    def test_update_rewrites_existing_object(self, apple, home):
        event = make_event("W1", CalendarSource.DOORAY, "Review")
        uid = apple.create_event(event, Visibility.PUBLIC)

        changed = make_event("W1", CalendarSource.DOORAY, "Review v2")
        apple.update_event(uid, changed, Visibility.PUBLIC)

        assert len(home.objects) == 1
        assert "SUMMARY:Review v2" in home.objects[home.url.join(f"{uid}.ics")]

    def test_update_of_missing_object_does_not_recreate_it(self, apple, home):
        event = make_event("W1", CalendarSource.DOORAY, "Review")
        with pytest.raises(RemoteWriteFailed):
            apple.update_event("deleted-by-user", event, Visibility.PUBLIC)
        assert home.objects == {}

    def test_write_error_is_remote_write_failed(self, apple, home):
        apple.connect()
        home.error = error.PutError(reason="507 Insufficient Storage")
        with pytest.raises(RemoteWriteFailed):
            apple.create_event(make_event("W1", CalendarSource.DOORAY), Visibility.PUBLIC)


class TestDelete:
    def test_delete_removes_object(self, apple, home):
        home.add("m1", make_vcalendar(uid="m1"))
        apple.delete_event("m1")
        assert home.objects == {}

    def test_missing_object_counts_as_deleted(self, apple, home):
        apple.delete_event("already-gone")

    def test_delete_error_is_remote_write_failed(self, apple, home):
        home.add("m1", make_vcalendar(uid="m1"))
        apple.connect()
        home.error = error.DeleteError(reason="403 Forbidden")
        with pytest.raises(RemoteWriteFailed):
            apple.delete_event("m1")


class TestRawAccess:
    def test_list_and_delete_objects(self, apple, home):
        url = home.add("m1", make_vcalendar(uid="m1"))

        assert apple.list_objects() == [(url, home.objects[url])]
        apple.delete_object(url)
        assert home.objects == {}
        apple.delete_object(url)
