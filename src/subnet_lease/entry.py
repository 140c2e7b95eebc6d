"""Node records as seen by the lease manager.

A node record (``Entry``) is owned and versioned by the Kubernetes API
server. The manager only ever holds immutable snapshots of it. Leases are
stored in the node's annotations under the keys defined here; other
cooperating agents read the same keys, so they must not change.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from .errors import MalformedEntryError
from .lease import Lease, LeaseAttrs, parse_ip4

LOG = logging.getLogger(__name__)

ANNOTATION_PREFIX = "flannel.alpha.coreos.com"

SUBNET_KUBE_MANAGED_ANNOTATION = f"{ANNOTATION_PREFIX}/kube-subnet-manager"
BACKEND_DATA_ANNOTATION = f"{ANNOTATION_PREFIX}/backend-data"
BACKEND_TYPE_ANNOTATION = f"{ANNOTATION_PREFIX}/backend-type"
BACKEND_PUBLIC_IP_ANNOTATION = f"{ANNOTATION_PREFIX}/public-ip"
BACKEND_PUBLIC_IP_OVERWRITE_ANNOTATION = f"{ANNOTATION_PREFIX}/public-ip-overwrite"

# Annotations whose change is visible to lease consumers.
LEASE_ANNOTATIONS = (
    BACKEND_DATA_ANNOTATION,
    BACKEND_TYPE_ANNOTATION,
    BACKEND_PUBLIC_IP_ANNOTATION,
)


@dataclass(frozen=True)
class Entry:
    """Immutable snapshot of a node record."""

    name: str
    annotations: Mapping[str, str] = field(default_factory=dict)
    pod_cidr: str = ""
    resource_version: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "annotations", MappingProxyType(dict(self.annotations)))

    @classmethod
    def from_node(cls, node: Any) -> "Entry":
        """Build an entry from a ``kubernetes.client.V1Node``."""

        metadata = node.metadata
        spec = node.spec
        return cls(
            name=metadata.name,
            annotations=metadata.annotations or {},
            pod_cidr=(spec.pod_cidr if spec is not None else None) or "",
            resource_version=metadata.resource_version,
        )

    def annotation(self, key: str) -> str:
        return self.annotations.get(key, "")

    @property
    def managed(self) -> bool:
        """True when the node opted in to subnet management."""

        return self.annotations.get(SUBNET_KUBE_MANAGED_ANNOTATION) == "true"

    def lease_fields(self) -> tuple:
        return tuple(self.annotation(key) for key in LEASE_ANNOTATIONS)


@dataclass(frozen=True)
class EntryAdded:
    entry: Entry


@dataclass(frozen=True)
class EntryUpdated:
    old: Entry
    new: Entry


@dataclass(frozen=True)
class EntryDeleted:
    entry: Entry


Notification = Union[EntryAdded, EntryUpdated, EntryDeleted]


def parse_pod_cidr(value: str) -> ipaddress.IPv4Network:
    """Parse an IPv4 CIDR, masking host bits the way ``net.ParseCIDR`` does."""

    if not value:
        raise ValueError("empty pod cidr")
    return ipaddress.IPv4Network(value, strict=False)


def entry_to_lease(entry: Entry) -> Lease:
    """Translate a node's annotations and pod CIDR into a :class:`Lease`.

    The returned lease has no expiration; leases observed through the
    directory are not time bounded.
    """

    try:
        public_ip = parse_ip4(entry.annotation(BACKEND_PUBLIC_IP_ANNOTATION))
        subnet = parse_pod_cidr(entry.pod_cidr)
    except ValueError as exc:
        raise MalformedEntryError(f"node {entry.name!r}: {exc}") from exc

    overwrite = None
    overwrite_raw = entry.annotation(BACKEND_PUBLIC_IP_OVERWRITE_ANNOTATION)
    if overwrite_raw:
        try:
            overwrite = parse_ip4(overwrite_raw)
        except ValueError as exc:
            LOG.info("Ignoring public ip overwrite on node %r: %s", entry.name, exc)

    attrs = LeaseAttrs(
        public_ip=public_ip,
        backend_type=entry.annotation(BACKEND_TYPE_ANNOTATION),
        backend_data=entry.annotations.get(BACKEND_DATA_ANNOTATION),
        public_ip_overwrite=overwrite,
    )
    return Lease(subnet=subnet, attrs=attrs)
