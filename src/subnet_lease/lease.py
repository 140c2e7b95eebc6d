"""Lease data structures shared by the manager and its consumers."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

LEASE_TTL = timedelta(hours=24)


def parse_ip4(value: str) -> ipaddress.IPv4Address:
    """Parse a dotted-quad IPv4 address, rejecting IPv6 and empty input."""

    if not value:
        raise ValueError("empty IPv4 address")
    return ipaddress.IPv4Address(value)


@dataclass(frozen=True)
class LeaseAttrs:
    """Backend attributes a node publishes alongside its subnet.

    Attributes
    ----------
    public_ip:
        Address other nodes use to reach this node's backend.
    backend_type:
        Backend tag such as ``vxlan`` or ``host-gw``.
    backend_data:
        Serialized backend specific blob. Stored and compared verbatim; it is
        never decoded by the manager.
    public_ip_overwrite:
        Operator supplied replacement for ``public_ip``, read from the node.
    """

    public_ip: ipaddress.IPv4Address
    backend_type: str
    backend_data: Optional[str] = None
    public_ip_overwrite: Optional[ipaddress.IPv4Address] = None

    def encoded_backend_data(self) -> str:
        return "null" if self.backend_data is None else self.backend_data


@dataclass(frozen=True)
class Lease:
    subnet: ipaddress.IPv4Network
    attrs: LeaseAttrs
    expiration: Optional[datetime] = None

    @classmethod
    def issue(cls, subnet: ipaddress.IPv4Network, attrs: LeaseAttrs, now: datetime | None = None) -> "Lease":
        """Build a lease valid for :data:`LEASE_TTL` from ``now``.

        Nothing renews or revokes the lease once issued.
        """

        issued_at = now or datetime.now(timezone.utc)
        return cls(subnet=subnet, attrs=attrs, expiration=issued_at + LEASE_TTL)
