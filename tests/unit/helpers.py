from __future__ import annotations

from typing import Any, Dict, List

from subnet_lease.directory import Directory
from subnet_lease.entry import (
    BACKEND_DATA_ANNOTATION,
    BACKEND_PUBLIC_IP_ANNOTATION,
    BACKEND_TYPE_ANNOTATION,
    SUBNET_KUBE_MANAGED_ANNOTATION,
    Entry,
    EntryAdded,
    EntryDeleted,
    EntryUpdated,
)
from subnet_lease.errors import EntryNotFoundError


def lease_annotations(
    public_ip: str = "10.0.0.5",
    backend_type: str = "vxlan",
    backend_data: str = '{"VNI":1}',
    managed: str = "true",
) -> Dict[str, str]:
    return {
        SUBNET_KUBE_MANAGED_ANNOTATION: managed,
        BACKEND_TYPE_ANNOTATION: backend_type,
        BACKEND_DATA_ANNOTATION: backend_data,
        BACKEND_PUBLIC_IP_ANNOTATION: public_ip,
    }


def make_entry(
    name: str = "node-1",
    annotations: Dict[str, str] | None = None,
    pod_cidr: str = "10.1.0.0/24",
    resource_version: str | None = "1",
) -> Entry:
    return Entry(
        name=name,
        annotations=lease_annotations() if annotations is None else annotations,
        pod_cidr=pod_cidr,
        resource_version=resource_version,
    )


class InMemoryDirectory(Directory):
    """Directory fake that records patches instead of talking to a server."""

    def __init__(self, *entries: Entry) -> None:
        super().__init__()
        self.entries: Dict[str, Entry] = {e.name: e for e in entries}
        self.patches: List[tuple] = []
        self.patch_error: Exception | None = None
        self.synced = True
        self.started = False

    def get(self, name: str) -> Entry:
        try:
            return self.entries[name]
        except KeyError:
            raise EntryNotFoundError(name) from None

    def patch(self, name: str, body: Dict[str, Any]) -> None:
        if self.patch_error is not None:
            raise self.patch_error
        self.patches.append((name, body))

    def has_synced(self) -> bool:
        return self.synced

    def start(self) -> None:
        self.started = True

    def add(self, entry: Entry) -> None:
        self.entries[entry.name] = entry
        self._deliver(EntryAdded(entry))

    def update(self, entry: Entry) -> None:
        old = self.entries[entry.name]
        self.entries[entry.name] = entry
        self._deliver(EntryUpdated(old, entry))

    def delete(self, name: str) -> None:
        self._deliver(EntryDeleted(self.entries.pop(name)))
