"""Subnet lease manager backed by node annotations.

Each node stores its lease in its own annotations. The manager reads every
node through a watched :class:`~subnet_lease.directory.Directory`, publishes
lease events for the nodes that opted in and writes the local node's lease
with a minimal conditional patch.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from threading import Event as CancelSignal
from typing import Any, Dict, Optional

from .config import NetworkConfig
from .directory import Directory
from .entry import (
    BACKEND_DATA_ANNOTATION,
    BACKEND_PUBLIC_IP_ANNOTATION,
    BACKEND_PUBLIC_IP_OVERWRITE_ANNOTATION,
    BACKEND_TYPE_ANNOTATION,
    SUBNET_KUBE_MANAGED_ANNOTATION,
    Entry,
    parse_pod_cidr,
)
from .errors import (
    MalformedEntryError,
    SubnetNotAssignedError,
    SyncTimeoutError,
    UnsupportedOperationError,
)
from .events import EventQueue, LeaseWatchResult
from .lease import Lease, LeaseAttrs
from .patch import create_annotation_patch
from .translator import LeaseEventTranslator

LOG = logging.getLogger(__name__)

NODE_SYNC_TIMEOUT = 10 * 60.0


class SubnetManager:
    """Coordinate subnet leases for ``node_name`` through ``directory``.

    The manager assumes it is the only writer of its own node's lease
    annotations. A concurrent writer is caught only by the API server's
    resource version check, and the resulting conflict is raised to the
    caller of :meth:`acquire_lease` without retrying.

    :meth:`watch_leases` may be called from several threads, but every event
    is handed to exactly one caller.
    """

    def __init__(
        self,
        directory: Directory,
        node_name: str,
        network_config: NetworkConfig,
        events: Optional[EventQueue] = None,
    ) -> None:
        self._directory = directory
        self._node_name = node_name
        self._network_config = network_config
        self._events = events or EventQueue()
        self._translator = LeaseEventTranslator(self._events)
        directory.subscribe(self._translator)

    @property
    def node_name(self) -> str:
        return self._node_name

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        LOG.info("Starting kube subnet manager")
        self._directory.start()

    def wait_for_sync(
        self,
        timeout: float = NODE_SYNC_TIMEOUT,
        interval: float = 1.0,
        cancel: Optional[CancelSignal] = None,
    ) -> None:
        """Block until the directory finished its initial listing.

        Setting ``cancel`` aborts the wait with :class:`SyncTimeoutError`.
        """

        waiter = cancel or CancelSignal()

        LOG.info("Waiting %ss for node controller to sync", timeout)
        deadline = time.monotonic() + timeout
        while not self._directory.has_synced():
            if time.monotonic() >= deadline:
                raise SyncTimeoutError(
                    f"node controller did not sync within {timeout}s"
                )
            if waiter.wait(interval):
                raise SyncTimeoutError("cancelled while waiting for node controller sync")
        LOG.info("Node controller sync successful")

    def name(self) -> str:
        return f"Kubernetes Subnet Manager - {self._node_name}"

    # ------------------------------------------------------------------
    # Lease API
    # ------------------------------------------------------------------
    def get_network_config(self) -> NetworkConfig:
        return self._network_config

    def acquire_lease(self, attrs: LeaseAttrs) -> Lease:
        """Publish ``attrs`` on the local node and return its lease.

        No write is issued when the node already carries the desired
        annotations. The returned lease reflects ``attrs`` as passed in, not
        a value read back from the server.
        """

        snapshot = self._directory.get(self._node_name)
        if not snapshot.pod_cidr:
            raise SubnetNotAssignedError(self._node_name)
        try:
            subnet = parse_pod_cidr(snapshot.pod_cidr)
        except ValueError as exc:
            raise MalformedEntryError(f"node {self._node_name!r}: {exc}") from exc

        desired = self._desired_annotations(snapshot, attrs)
        if self._lease_changed(snapshot, desired):
            body = create_annotation_patch(
                snapshot.annotations, desired, snapshot.resource_version
            )
            LOG.debug("Patching node %s: %s", self._node_name, body)
            self._directory.patch(self._node_name, body)
        else:
            LOG.debug("Node %s already carries the desired lease", self._node_name)

        return Lease.issue(subnet, attrs, now=datetime.now(timezone.utc))

    def watch_leases(self, cancel: CancelSignal, cursor: Any = None) -> LeaseWatchResult:
        """Wait for the next lease event or for ``cancel`` to be set.

        Cancellation is not an error: it yields a result with no events.
        """

        event = self._events.get(cancel)
        if event is None:
            return LeaseWatchResult()
        return LeaseWatchResult(events=[event])

    def renew_lease(self, lease: Lease) -> None:
        raise UnsupportedOperationError("lease renewal is not supported")

    def watch_lease(self, subnet: Any, cancel: CancelSignal, cursor: Any = None) -> LeaseWatchResult:
        raise UnsupportedOperationError("watching a single lease is not supported")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _desired_annotations(self, snapshot: Entry, attrs: LeaseAttrs) -> Dict[str, str]:
        desired = dict(snapshot.annotations)
        desired[BACKEND_TYPE_ANNOTATION] = attrs.backend_type
        desired[BACKEND_DATA_ANNOTATION] = attrs.encoded_backend_data()

        overwrite = snapshot.annotation(BACKEND_PUBLIC_IP_OVERWRITE_ANNOTATION)
        if overwrite:
            if snapshot.annotation(BACKEND_PUBLIC_IP_ANNOTATION) != overwrite:
                LOG.info(
                    "Overriding public ip with '%s' from node annotation '%s'",
                    overwrite,
                    BACKEND_PUBLIC_IP_OVERWRITE_ANNOTATION,
                )
            desired[BACKEND_PUBLIC_IP_ANNOTATION] = overwrite
        else:
            desired[BACKEND_PUBLIC_IP_ANNOTATION] = str(attrs.public_ip)

        desired[SUBNET_KUBE_MANAGED_ANNOTATION] = "true"
        return desired

    @staticmethod
    def _lease_changed(snapshot: Entry, desired: Dict[str, str]) -> bool:
        compared = (
            BACKEND_TYPE_ANNOTATION,
            BACKEND_DATA_ANNOTATION,
            BACKEND_PUBLIC_IP_ANNOTATION,
            SUBNET_KUBE_MANAGED_ANNOTATION,
        )
        return any(snapshot.annotations.get(key) != desired.get(key) for key in compared)
