"""
JSON-file persistence for sync mappings.
"""

import json
import logging
import os
from pathlib import Path

from dooray_calendar_sync.models import DEFAULT_STORE
from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import StoreIOFailed
from dooray_calendar_sync.models import SyncMapping

logger = logging.getLogger(__name__)

MappingKey = tuple[str, CalendarSource, CalendarSource]


class SyncStore:
    """Tracks which event was mirrored into which calendar.

    The whole mapping list lives in memory and is rewritten to a single JSON
    document after every mutating call.  A missing or unreadable file starts an
    empty store; a failed write is logged and the in-memory state stays
    authoritative until the next successful save.
    """

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path is not None else Path.cwd() / DEFAULT_STORE
        self._mappings: dict[MappingKey, SyncMapping] = {}
        self._load()

    # ------------------------------------------------------------------ #
    # Persistence                                                          #
    # ------------------------------------------------------------------ #

    def _load(self):
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            mappings = [SyncMapping.from_dict(item) for item in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load sync store {self.path}, starting empty: {e}")
            self._mappings = {}
            return
        self._mappings = {m.key: m for m in mappings}
        logger.debug(f"Loaded {len(self._mappings)} sync mapping(s) from {self.path}")

    def _save(self):
        """Rewrite the store file; never raises."""
        payload = json.dumps(
            [m.to_dict() for m in self._mappings.values()], indent=2, ensure_ascii=False
        )
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"{StoreIOFailed.__name__}: failed to save sync store {self.path}: {e}")

    # ------------------------------------------------------------------ #
    # Lookups                                                              #
    # ------------------------------------------------------------------ #

    def find_mapping(
        self, source_id: str, source: CalendarSource, target: CalendarSource
    ) -> SyncMapping | None:
        """Return the mapping for one event on one edge, or None if never synced there."""
        return self._mappings.get((source_id, source, target))

    def find_mappings_by_target(
        self, source: CalendarSource, target: CalendarSource
    ) -> list[SyncMapping]:
        """Return every mapping on the (source → target) edge."""
        return [m for m in self._mappings.values() if m.source == source and m.target == target]

    def is_synced_event(self, event_id: str, calendar: CalendarSource) -> bool:
        """True when ``event_id`` in ``calendar`` is a mirror this tool created."""
        return any(
            m.target_id == event_id and m.target == calendar for m in self._mappings.values()
        )

    def get_synced_target_ids(self, calendar: CalendarSource) -> set[str]:
        return {m.target_id for m in self._mappings.values() if m.target == calendar}

    def all_mappings(self) -> list[SyncMapping]:
        return list(self._mappings.values())

    @property
    def count(self) -> int:
        return len(self._mappings)

    # ------------------------------------------------------------------ #
    # Mutations, each one persists immediately                             #
    # ------------------------------------------------------------------ #

    def upsert_mapping(self, mapping: SyncMapping):
        """Insert or replace a mapping by its (source_id, source, target) key."""
        self._mappings[mapping.key] = mapping
        self._save()

    def remove_mapping(self, source_id: str, source: CalendarSource, target: CalendarSource):
        self._mappings.pop((source_id, source, target), None)
        self._save()

    def remove_mappings_by_target(self, calendar: CalendarSource) -> int:
        """Forget every mirror written into ``calendar``; return how many rows went."""
        keys = [key for key, m in self._mappings.items() if m.target == calendar]
        for key in keys:
            del self._mappings[key]
        self._save()
        return len(keys)

    def clear_all(self):
        """Forget every mapping (operator reset)."""
        self._mappings.clear()
        self._save()
