"""
Dooray Calendar Sync: mirrors events between a Dooray work calendar and
Google/Apple personal calendars.
"""

__version__ = "0.1.0"
