"""Network configuration handed back to lease consumers."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class NetworkConfig:
    """Cluster wide overlay network description.

    The lease manager does not interpret these values; it returns the
    configuration verbatim from ``get_network_config``.

    Attributes
    ----------
    network:
        Overlay network from which node subnets are carved.
    subnet_len:
        Prefix length of each node subnet.
    subnet_min / subnet_max:
        First and last subnet addresses eligible for allocation.
    backend_type:
        ``Type`` field of the backend section, ``udp`` when absent.
    backend:
        The raw backend section.
    """

    network: ipaddress.IPv4Network
    subnet_len: int
    subnet_min: ipaddress.IPv4Address
    subnet_max: ipaddress.IPv4Address
    backend_type: str = "udp"
    backend: Dict[str, Any] = field(default_factory=dict)
