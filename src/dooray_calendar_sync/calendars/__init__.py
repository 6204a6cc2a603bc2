"""
Calendar adapters: one client per calendar service.
"""

from dooray_calendar_sync.calendars.base import CalendarClient

__all__ = ["CalendarClient"]
