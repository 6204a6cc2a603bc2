"""
SyncEngine: mirrors every registered calendar into every other one.
"""

import logging
from dataclasses import replace
from datetime import datetime

from dooray_calendar_sync.calendars.base import CalendarClient
from dooray_calendar_sync.models import DEFAULT_DAYS_BACK
from dooray_calendar_sync.models import DEFAULT_DAYS_FORWARD
from dooray_calendar_sync.models import CalendarEvent
from dooray_calendar_sync.models import CalendarSource
from dooray_calendar_sync.models import ErrorKind
from dooray_calendar_sync.models import SyncError
from dooray_calendar_sync.models import SyncMapping
from dooray_calendar_sync.models import SyncResult
from dooray_calendar_sync.store import SyncStore
from dooray_calendar_sync.sync.utils import get_visibility
from dooray_calendar_sync.sync.utils import sync_window
from dooray_calendar_sync.sync.utils import utc_now_iso


class SyncEngine:
    """
    Pairwise reconciliation of independently edited calendars.

    A run has three phases: fetch every registered calendar, propagate each
    fetched calendar's events to every other registered calendar, then delete
    mirrors whose source event disappeared.  Cross-calendar identity lives only
    in the SyncStore; adapters never need to recognise their own mirrors, the
    engine drops them after fetching by looking their ids up in the store.

    Every remote call is isolated: a failure is recorded in the result and the
    run continues with the next event.  Nothing is retried within a run.
    """

    def __init__(self, store: SyncStore):
        self.store = store
        self.clients: dict[CalendarSource, CalendarClient] = {}
        self.logger = logging.getLogger(__name__)

    def register_client(self, client: CalendarClient):
        """Add a calendar; a second client with the same name replaces the first."""
        self.clients[client.name] = client

    # ------------------------------------------------------------------ #
    # Run                                                                  #
    # ------------------------------------------------------------------ #

    def sync(
        self,
        days_back: int = DEFAULT_DAYS_BACK,
        days_forward: int = DEFAULT_DAYS_FORWARD,
        now: datetime | None = None,
    ) -> SyncResult:
        """Execute one full synchronization pass."""
        start, end = sync_window(days_back, days_forward, now)
        result = SyncResult()

        fetched = self._fetch_all(start, end, result)

        for source, events in fetched.items():
            for target, target_client in self.clients.items():
                if target == source:
                    continue
                self._propagate(events, source, target_client, result)

        for source, events in fetched.items():
            source_ids = {event.source_id for event in events}
            for target, target_client in self.clients.items():
                if target == source:
                    continue
                self._cleanup(source_ids, source, target_client, result)

        self.logger.info(
            f"Sync complete: created {result.created}, updated {result.updated}, "
            f"deleted {result.deleted}, errors {len(result.errors)}"
        )
        return result

    def _fetch_all(
        self, start: datetime, end: datetime, result: SyncResult
    ) -> dict[CalendarSource, list[CalendarEvent]]:
        fetched: dict[CalendarSource, list[CalendarEvent]] = {}
        for source, client in self.clients.items():
            try:
                events = client.fetch_events(start, end)
            except Exception as e:
                self.logger.error(f"[{source.value}] Failed to fetch events: {e}")
                result.errors.append(
                    SyncError(
                        source_id="",
                        source=source,
                        target=source,
                        message=f"Failed to fetch events: {e}",
                        kind=ErrorKind.FETCH_FAILED,
                    )
                )
                continue
            originals = []
            for event in events:
                # Mirrors we wrote into this calendar are not sources of their own.
                if self._is_mirror(event, source):
                    continue
                # The adapter identity is authoritative for the origin tag.
                if event.source != source:
                    event = replace(event, source=source)
                originals.append(event)
            fetched[source] = originals
            self.logger.info(
                f"[{source.value}] {len(events)} event(s) fetched, "
                f"{len(events) - len(originals)} of them mirrors"
            )
        return fetched

    def _is_mirror(self, event: CalendarEvent, calendar: CalendarSource) -> bool:
        """True for a mirror, or an expanded instance of a recurring mirror."""
        if self.store.is_synced_event(event.source_id, calendar):
            return True
        return bool(event.series_id) and self.store.is_synced_event(event.series_id, calendar)

    def _propagate(
        self,
        events: list[CalendarEvent],
        source: CalendarSource,
        target_client: CalendarClient,
        result: SyncResult,
    ):
        """Create or update the mirrors of ``events`` in one target calendar."""
        target = target_client.name
        edge = f"[{source.value}→{target.value}]"
        visibility = get_visibility(source)

        for event in events:
            event = replace(event, visibility=visibility)
            try:
                existing = self.store.find_mapping(event.source_id, source, target)

                if existing is None:
                    target_id = target_client.create_event(event, visibility)
                    self.store.upsert_mapping(
                        SyncMapping(
                            source_id=event.source_id,
                            source=source,
                            target_id=target_id,
                            target=target,
                            last_synced_at=utc_now_iso(),
                            source_updated_at=event.updated_at,
                        )
                    )
                    result.created += 1
                    self.logger.info(f"  {edge} Created: {event.title!r} ({visibility.value})")
                    continue

                needs_update = (
                    event.updated_at is not None
                    and existing.source_updated_at is not None
                    and event.updated_at != existing.source_updated_at
                )
                if not needs_update:
                    continue

                target_client.update_event(existing.target_id, event, visibility)
                self.store.upsert_mapping(
                    replace(
                        existing,
                        last_synced_at=utc_now_iso(),
                        source_updated_at=event.updated_at,
                    )
                )
                result.updated += 1
                self.logger.info(f"  {edge} Updated: {event.title!r} ({visibility.value})")
            except Exception as e:
                self.logger.error(f"  {edge} Error: {event.title!r}: {e}")
                result.errors.append(
                    SyncError(
                        source_id=event.source_id,
                        source=source,
                        target=target,
                        message=str(e),
                    )
                )

    def _cleanup(
        self,
        source_ids: set[str],
        source: CalendarSource,
        target_client: CalendarClient,
        result: SyncResult,
    ):
        """Delete mirrors whose source event is no longer in ``source_ids``."""
        target = target_client.name
        edge = f"[{source.value}→{target.value}]"

        for mapping in self.store.find_mappings_by_target(source, target):
            if mapping.source_id in source_ids:
                continue
            try:
                target_client.delete_event(mapping.target_id)
            except Exception as e:
                self.logger.error(f"  {edge} Failed to delete {mapping.target_id}: {e}")
                result.errors.append(
                    SyncError(
                        source_id=mapping.source_id,
                        source=source,
                        target=target,
                        message=f"Failed to delete: {e}",
                    )
                )
                continue
            self.store.remove_mapping(mapping.source_id, source, target)
            result.deleted += 1
            self.logger.info(f"  {edge} Deleted: source_id={mapping.source_id}")

    # ------------------------------------------------------------------ #
    # Status                                                               #
    # ------------------------------------------------------------------ #

    def get_status(self) -> str:
        """Two-line summary: connected calendars and tracked mapping count."""
        names = ", ".join(source.value for source in self.clients) or "none"
        return f"Connected calendars: {names}\nSync mappings: {self.store.count}"
