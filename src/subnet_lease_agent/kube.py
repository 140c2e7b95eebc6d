"""Kubernetes backed node directory.

``KubeNodeDirectory`` lists and watches ``v1/Node`` objects, keeps a local
cache keyed by node name and delivers add/update/delete notifications to its
subscribers. All notifications are delivered from the directory's own thread,
one at a time.
"""

from __future__ import annotations

import logging
import time
from threading import Event, Lock, Thread
from typing import Any, Dict, Optional

from kubernetes import watch
from kubernetes.client.rest import ApiException

from subnet_lease.directory import Directory
from subnet_lease.entry import Entry, EntryAdded, EntryDeleted, EntryUpdated
from subnet_lease.errors import EntryNotFoundError

LOG = logging.getLogger(__name__)

RESYNC_PERIOD = 5 * 60.0
ERROR_BACKOFF = 5.0
MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


class KubeNodeDirectory(Thread, Directory):
    """List/watch mirror of the cluster's nodes."""

    def __init__(
        self,
        api,
        stop_event: Event,
        *,
        resync_period: float = RESYNC_PERIOD,
        watch_timeout: int = 60,
    ) -> None:
        Directory.__init__(self)
        Thread.__init__(self, name="kube-node-directory", daemon=True)
        self._api = api
        self._stop_event = stop_event
        self._resync_period = resync_period
        self._watch_timeout = watch_timeout
        self._cache: Dict[str, Entry] = {}
        self._cache_lock = Lock()
        self._synced = Event()
        self._last_resync = time.monotonic()

    # ------------------------------------------------------------------
    # Directory contract
    # ------------------------------------------------------------------
    def get(self, name: str) -> Entry:
        with self._cache_lock:
            entry = self._cache.get(name)
        if entry is None:
            raise EntryNotFoundError(name)
        return entry

    def patch(self, name: str, body: Dict[str, Any]) -> None:
        self._api.patch_node_status(
            name, body, _content_type=MERGE_PATCH_CONTENT_TYPE
        )

    def has_synced(self) -> bool:
        return self._synced.is_set()

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------
    def run(self) -> None:
        LOG.info("Starting node directory (resync=%ss)", self._resync_period)
        while not self._stop_event.is_set():
            try:
                resource_version = self.relist()
                self._watch(resource_version)
            except ApiException as exc:
                if exc.status == 410:
                    LOG.info("Node watch resource version expired, relisting")
                    continue
                LOG.error("Node list/watch error: %s", exc)
                self._stop_event.wait(ERROR_BACKOFF)
            except Exception:  # pragma: no cover - keep the worker alive
                LOG.exception("Unexpected node directory error")
                self._stop_event.wait(ERROR_BACKOFF)
        LOG.info("Node directory stopped")

    def relist(self) -> Optional[str]:
        """List all nodes, reconcile the cache and return the list version."""

        node_list = self._api.list_node()
        listed = {}
        for node in node_list.items:
            entry = Entry.from_node(node)
            listed[entry.name] = entry

        for name, entry in listed.items():
            self._store(entry)
        with self._cache_lock:
            gone = [name for name in self._cache if name not in listed]
        for name in gone:
            self._remove(name)

        self._synced.set()
        return node_list.metadata.resource_version

    def resync(self) -> None:
        """Redeliver every cached entry as an unchanged update."""

        with self._cache_lock:
            entries = list(self._cache.values())
        for entry in entries:
            self._deliver(EntryUpdated(entry, entry))
        self._last_resync = time.monotonic()

    def apply_watch_event(self, event: Dict[str, Any]) -> None:
        event_type = event["type"]
        obj = event["object"]
        if event_type == "ERROR":
            code = obj.get("code") if isinstance(obj, dict) else getattr(obj, "code", None)
            raise ApiException(status=code or 500, reason=str(obj))

        entry = Entry.from_node(obj)
        if event_type in ("ADDED", "MODIFIED"):
            self._store(entry)
        elif event_type == "DELETED":
            self._remove(entry.name, entry)
        else:
            LOG.debug("Ignoring node watch event %s for %s", event_type, entry.name)

    def _watch(self, resource_version: Optional[str]) -> None:
        while not self._stop_event.is_set():
            w = watch.Watch()
            for event in w.stream(
                self._api.list_node,
                resource_version=resource_version,
                timeout_seconds=self._watch_timeout,
            ):
                if self._stop_event.is_set():
                    break
                self.apply_watch_event(event)
                version = event["object"].metadata.resource_version
                if version:
                    resource_version = version
            w.stop()

            if time.monotonic() - self._last_resync >= self._resync_period:
                self.resync()

    def _store(self, entry: Entry) -> None:
        with self._cache_lock:
            old = self._cache.get(entry.name)
            self._cache[entry.name] = entry
        if old is None:
            self._deliver(EntryAdded(entry))
        elif old.resource_version != entry.resource_version or old != entry:
            self._deliver(EntryUpdated(old, entry))

    def _remove(self, name: str, final: Optional[Entry] = None) -> None:
        with self._cache_lock:
            old = self._cache.pop(name, None)
        if old is None:
            return
        self._deliver(EntryDeleted(final or old))
