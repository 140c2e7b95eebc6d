"""Kubernetes node annotation based subnet lease manager.

Nodes publish their overlay subnet lease in their own annotations instead of
a dedicated lease store. This package hosts the engine that sits between a
watched node directory and lease consumers:

* translating node add/update/delete notifications into ``ADDED`` /
  ``REMOVED`` lease events, ignoring nodes that did not opt in and updates
  that do not touch the lease;
* buffering those events in a bounded queue exposed as a cancellable pull
  API (``SubnetManager.watch_leases``); and
* writing the local node's lease annotations with a minimal, conditional
  patch, skipping the write entirely when nothing changed.

The package is pure Python. The Kubernetes binding, identity bootstrap and
configuration loading live in :mod:`subnet_lease_agent`.
"""

from .config import NetworkConfig  # noqa: F401
from .entry import Entry, EntryAdded, EntryDeleted, EntryUpdated  # noqa: F401
from .events import Event, EventQueue, EventType, LeaseWatchResult  # noqa: F401
from .lease import Lease, LeaseAttrs  # noqa: F401
from .manager import SubnetManager  # noqa: F401

__all__ = [
    "Entry",
    "EntryAdded",
    "EntryDeleted",
    "EntryUpdated",
    "Event",
    "EventQueue",
    "EventType",
    "Lease",
    "LeaseAttrs",
    "LeaseWatchResult",
    "NetworkConfig",
    "SubnetManager",
]
