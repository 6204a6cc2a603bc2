"""
Pure data models with no network or filesystem access.
"""

from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path

DEFAULT_STORE = Path(".sync-store.json")
DEFAULT_CONFIG = Path.home() / ".config/dooray-calendar-sync.conf"

DEFAULT_DAYS_BACK = 7
DEFAULT_DAYS_FORWARD = 90
DEFAULT_INTERVAL_MINUTES = 15


class CalendarSource(str, Enum):
    """Origin tag of a calendar participating in the sync."""

    DOORAY = "dooray"
    GOOGLE = "google"
    APPLE = "apple"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class ErrorKind(str, Enum):
    FETCH_FAILED = "FetchFailed"
    REMOTE_WRITE_FAILED = "RemoteWriteFailed"
    STORE_IO_FAILED = "StoreIOFailed"
    CONFIG_INCOMPLETE = "ConfigIncomplete"


class CalendarSyncError(Exception):
    """Base exception for calendar sync errors."""

    kind: ErrorKind | None = None


class FetchFailed(CalendarSyncError):
    """A calendar's events could not be listed this run."""

    kind = ErrorKind.FETCH_FAILED


class RemoteWriteFailed(CalendarSyncError):
    """A create/update/delete was rejected by the target calendar."""

    kind = ErrorKind.REMOTE_WRITE_FAILED


class StoreIOFailed(CalendarSyncError):
    """The mapping store file could not be read or written."""

    kind = ErrorKind.STORE_IO_FAILED


class ConfigIncomplete(CalendarSyncError):
    """A required credential or setting is missing."""

    kind = ErrorKind.CONFIG_INCOMPLETE


@dataclass
class CalendarEvent:
    """Calendar-agnostic event as produced by a calendar adapter."""

    source_id: str
    source: CalendarSource
    title: str
    start_time: str
    end_time: str
    is_all_day: bool = False
    description: str | None = None
    location: str | None = None
    # Always overwritten by the engine before the event is propagated.
    visibility: Visibility = Visibility.PRIVATE
    updated_at: str | None = None
    recurrence: str | None = None
    # Id of the recurring series this event is an expanded instance of.
    series_id: str | None = None


@dataclass
class SyncMapping:
    """One directed edge row: source event → mirror in the target calendar."""

    source_id: str
    source: CalendarSource
    target_id: str
    target: CalendarSource
    last_synced_at: str
    source_updated_at: str | None = None

    @property
    def key(self) -> tuple[str, CalendarSource, CalendarSource]:
        return (self.source_id, self.source, self.target)

    def to_dict(self) -> dict[str, str]:
        data = {
            "sourceId": self.source_id,
            "source": self.source.value,
            "targetId": self.target_id,
            "target": self.target.value,
            "lastSyncedAt": self.last_synced_at,
        }
        if self.source_updated_at is not None:
            data["sourceUpdatedAt"] = self.source_updated_at
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SyncMapping":
        return cls(
            source_id=data["sourceId"],
            source=CalendarSource(data["source"]),
            target_id=data["targetId"],
            target=CalendarSource(data["target"]),
            last_synced_at=data.get("lastSyncedAt", ""),
            source_updated_at=data.get("sourceUpdatedAt") or None,
        )


@dataclass
class SyncError:
    source_id: str
    source: CalendarSource
    target: CalendarSource
    message: str
    kind: ErrorKind = ErrorKind.REMOTE_WRITE_FAILED

    def to_dict(self) -> dict[str, str]:
        return {
            "sourceId": self.source_id,
            "source": self.source.value,
            "target": self.target.value,
            "message": self.message,
        }


@dataclass
class SyncResult:
    """Counts and errors of one sync run."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: list[SyncError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "errors": [e.to_dict() for e in self.errors],
        }
