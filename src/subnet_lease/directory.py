"""Abstract interfaces between the lease manager and the node directory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from .entry import Entry, EntryAdded, EntryDeleted, EntryUpdated, Notification


class EntryHandler(ABC):
    """Receiver of directory notifications.

    Directories invoke the callbacks serially, in delivery order, from a
    single worker thread.
    """

    @abstractmethod
    def on_add(self, entry: Entry) -> None:
        """Handle a node that appeared in the directory."""

    @abstractmethod
    def on_update(self, old: Entry, new: Entry) -> None:
        """Handle a node whose record changed (or was resynced)."""

    @abstractmethod
    def on_delete(self, entry: Entry) -> None:
        """Handle a node removed from the directory."""

    def handle(self, notification: Notification) -> None:
        if isinstance(notification, EntryAdded):
            self.on_add(notification.entry)
        elif isinstance(notification, EntryUpdated):
            self.on_update(notification.old, notification.new)
        elif isinstance(notification, EntryDeleted):
            self.on_delete(notification.entry)
        else:
            raise TypeError(f"Unsupported notification type: {type(notification)!r}")


class Directory(ABC):
    """Eventually consistent, watched mirror of the cluster's node records."""

    def __init__(self) -> None:
        self._handlers: List[EntryHandler] = []

    def subscribe(self, handler: EntryHandler) -> None:
        self._handlers.append(handler)

    def _deliver(self, notification: Notification) -> None:
        for handler in self._handlers:
            handler.handle(notification)

    @abstractmethod
    def get(self, name: str) -> Entry:
        """Return the cached entry for ``name``.

        Raises :class:`~subnet_lease.errors.EntryNotFoundError` if unknown.
        """

    @abstractmethod
    def patch(self, name: str, body: Dict[str, Any]) -> None:
        """Apply a merge patch to the record ``name`` on the server."""

    @abstractmethod
    def has_synced(self) -> bool:
        """True once the initial listing has been loaded."""

    @abstractmethod
    def start(self) -> None:
        """Begin delivering notifications in the background."""
