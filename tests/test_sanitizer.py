"""
Unit tests for EventSanitizer: redaction contract and managed-event markers.
"""

import pytest

from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import Visibility
from dooray_calendar_sync.sanitizer import LOCK_PREFIX
from dooray_calendar_sync.sanitizer import PRIVATE_NOTICE
from dooray_calendar_sync.sanitizer import PRODID
from dooray_calendar_sync.sanitizer import EventSanitizer
from tests.fake_client import make_event


@pytest.fixture
def personal_event():
    return make_event(
        "A1",
        CalendarSource.APPLE,
        "Therapy",
        description="Session 4 with Dr. Lee",
        location="Seocho-gu",
        recurrence="FREQ=WEEKLY",
    )


class TestRedact:
    def test_private_replaces_content(self, personal_event):
        redacted = EventSanitizer.redact(personal_event, Visibility.PRIVATE)

        assert redacted.title == "🔒 Therapy"
        assert redacted.description == PRIVATE_NOTICE
        assert redacted.location is None
        assert redacted.visibility == Visibility.PRIVATE

    def test_private_keeps_timing(self, personal_event):
        redacted = EventSanitizer.redact(personal_event, Visibility.PRIVATE)

        assert redacted.start_time == personal_event.start_time
        assert redacted.end_time == personal_event.end_time
        assert redacted.is_all_day == personal_event.is_all_day
        assert redacted.recurrence == "FREQ=WEEKLY"
        assert redacted.source_id == "A1"

    def test_private_does_not_mutate_input(self, personal_event):
        EventSanitizer.redact(personal_event, Visibility.PRIVATE)
        assert personal_event.title == "Therapy"
        assert personal_event.location == "Seocho-gu"

    def test_private_prefix_not_doubled(self, personal_event):
        personal_event.title = f"{LOCK_PREFIX}Therapy"
        redacted = EventSanitizer.redact(personal_event, Visibility.PRIVATE)
        assert redacted.title == "🔒 Therapy"

    def test_private_empty_title(self, personal_event):
        personal_event.title = ""
        assert EventSanitizer.redact(personal_event, Visibility.PRIVATE).title == LOCK_PREFIX

    def test_public_passes_through(self, personal_event):
        redacted = EventSanitizer.redact(personal_event, Visibility.PUBLIC)

        assert redacted.title == "Therapy"
        assert redacted.description == "Session 4 with Dr. Lee"
        assert redacted.location == "Seocho-gu"
        assert redacted.visibility == Visibility.PUBLIC


class TestManagedMarkers:
    @pytest.mark.parametrize(
        "title, managed",
        [
            ("🔒 Dentist", True),
            ("[Google] Dentist", True),
            ("[Apple] Gym", True),
            ("Dentist", False),
            ("[not a tag]", False),
            ("Budget [draft]", False),
            ("", False),
            (None, False),
        ],
    )
    def test_is_managed_title(self, title, managed):
        assert EventSanitizer.is_managed_title(title) is managed

    def test_is_managed_data(self):
        assert EventSanitizer.is_managed_data(f"PRODID:{PRODID}\r\n")
        assert EventSanitizer.is_managed_data(f"DESCRIPTION:{PRIVATE_NOTICE}\r\n")
        assert not EventSanitizer.is_managed_data("PRODID:-//Apple Inc.//iCal//EN\r\n")
        assert not EventSanitizer.is_managed_data(None)
