"""Configuration loaders for the subnet lease agent.

Two files are read at startup: the agent's own YAML configuration and the
cluster's JSON network configuration (``net-conf.json``).
"""

from __future__ import annotations

import ipaddress
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from subnet_lease.config import NetworkConfig

DEFAULT_NET_CONF_PATH = Path("/etc/kube-flannel/net-conf.json")


@dataclass
class KubeConfig:
    api_url: str = ""
    kubeconfig: str = ""
    resync_period: float = 300.0
    watch_timeout: int = 60


@dataclass
class NetworkSection:
    config_path: Path = DEFAULT_NET_CONF_PATH
    sync_timeout: float = 600.0
    sync_poll_interval: float = 1.0


@dataclass
class LeaseSection:
    backend_type: Optional[str] = None
    backend_data: Optional[str] = None
    public_ip: Optional[str] = None
    retry_interval: float = 5.0


@dataclass
class AgentConfig:
    kube: KubeConfig = field(default_factory=KubeConfig)
    network: NetworkSection = field(default_factory=NetworkSection)
    lease: LeaseSection = field(default_factory=LeaseSection)


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _parse_kube(section: dict) -> KubeConfig:
    return KubeConfig(
        api_url=str(section.get("api_url") or ""),
        kubeconfig=str(section.get("kubeconfig") or ""),
        resync_period=float(section.get("resync_period", 300.0)),
        watch_timeout=int(section.get("watch_timeout", 60)),
    )


def _parse_network(section: dict) -> NetworkSection:
    return NetworkSection(
        config_path=Path(section.get("config_path", DEFAULT_NET_CONF_PATH)),
        sync_timeout=float(section.get("sync_timeout", 600.0)),
        sync_poll_interval=float(section.get("sync_poll_interval", 1.0)),
    )


def _parse_lease(section: dict) -> LeaseSection:
    backend_data: Any = section.get("backend_data")
    if isinstance(backend_data, (dict, list)):
        # Compact separators keep the annotation identical across restarts.
        backend_data = json.dumps(backend_data, separators=(",", ":"), sort_keys=True)
    elif backend_data is not None:
        backend_data = str(backend_data)

    public_ip = section.get("public_ip")
    backend_type = section.get("backend_type")
    return LeaseSection(
        backend_type=str(backend_type) if backend_type is not None else None,
        backend_data=backend_data,
        public_ip=str(public_ip) if public_ip is not None else None,
        retry_interval=float(section.get("retry_interval", 5.0)),
    )


def load_config(path: Path) -> AgentConfig:
    data = yaml.safe_load(path.read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    return AgentConfig(
        kube=_parse_kube(_section(data, "kube")),
        network=_parse_network(_section(data, "network")),
        lease=_parse_lease(_section(data, "lease")),
    )


def _parse_ip4_field(data: dict, key: str) -> Optional[ipaddress.IPv4Address]:
    value = data.get(key)
    if not value:
        return None
    try:
        return ipaddress.IPv4Address(str(value))
    except ValueError as exc:
        raise ValueError(f"invalid {key} '{value}': {exc}") from exc


def parse_network_config(text: str) -> NetworkConfig:
    """Parse the contents of ``net-conf.json``.

    ``SubnetLen`` defaults to 24 for networks larger than a /24 and to one
    bit longer than the network otherwise. ``SubnetMin`` and ``SubnetMax``
    default to the second and the last subnet of the network.
    """

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid network config: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("network config must be a JSON object")

    if not data.get("Network"):
        raise ValueError("network config missing 'Network'")
    try:
        network = ipaddress.IPv4Network(str(data["Network"]), strict=False)
    except ValueError as exc:
        raise ValueError(f"invalid Network '{data['Network']}': {exc}") from exc

    subnet_len = int(data.get("SubnetLen") or 0)
    if subnet_len:
        if subnet_len < network.prefixlen:
            raise ValueError(
                "SubnetLen must be at least as long as the Network prefix"
            )
        if subnet_len > 30:
            raise ValueError("SubnetLen must be at most 30")
    elif network.prefixlen < 24:
        subnet_len = 24
    else:
        subnet_len = network.prefixlen + 1

    subnet_size = 1 << (32 - subnet_len)

    subnet_min = _parse_ip4_field(data, "SubnetMin")
    if subnet_min is None:
        subnet_min = network.network_address + subnet_size
    elif subnet_min not in network:
        raise ValueError("SubnetMin is not in the range of the Network")

    subnet_max = _parse_ip4_field(data, "SubnetMax")
    if subnet_max is None:
        subnet_max = network.broadcast_address - subnet_size + 1
    elif subnet_max not in network:
        raise ValueError("SubnetMax is not in the range of the Network")

    backend = data.get("Backend") or {}
    if not isinstance(backend, dict):
        raise ValueError("'Backend' must be a JSON object")

    return NetworkConfig(
        network=network,
        subnet_len=subnet_len,
        subnet_min=subnet_min,
        subnet_max=subnet_max,
        backend_type=str(backend.get("Type") or "udp"),
        backend=backend,
    )


def load_network_config(path: Path) -> NetworkConfig:
    return parse_network_config(Path(path).read_text())
