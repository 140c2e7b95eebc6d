"""Turn directory notifications into lease events."""

from __future__ import annotations

import logging

from .directory import EntryHandler
from .entry import Entry, entry_to_lease
from .errors import MalformedEntryError
from .events import Event, EventQueue, EventType

LOG = logging.getLogger(__name__)


class LeaseEventTranslator(EntryHandler):
    """Publish lease events for nodes that opted in to subnet management.

    Updates that leave the backend type, backend data and public IP untouched
    are dropped. Besides filtering unrelated metadata churn this swallows the
    echo of the manager's own annotation writes.
    """

    def __init__(self, events: EventQueue) -> None:
        self._events = events

    def on_add(self, entry: Entry) -> None:
        self._publish(EventType.ADDED, entry)

    def on_delete(self, entry: Entry) -> None:
        self._publish(EventType.REMOVED, entry)

    def on_update(self, old: Entry, new: Entry) -> None:
        if not new.managed:
            return
        if old.lease_fields() == new.lease_fields():
            return  # No change to lease
        self._publish(EventType.ADDED, new)

    def _publish(self, event_type: EventType, entry: Entry) -> None:
        if not entry.managed:
            return

        try:
            lease = entry_to_lease(entry)
        except MalformedEntryError as exc:
            LOG.info("Error turning node %r to lease: %s", entry.name, exc)
            return

        LOG.debug("node %s: %s lease %s", entry.name, event_type.value, lease.subnet)
        self._events.put(Event(event_type, lease))
