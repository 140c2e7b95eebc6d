import ipaddress
import json
from pathlib import Path

import pytest

from subnet_lease_agent.config import (
    DEFAULT_NET_CONF_PATH,
    load_config,
    load_network_config,
    parse_network_config,
)


def test_load_config(tmp_path: Path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text(
        """
kube:
  kubeconfig: /root/.kube/config
  resync_period: 120
network:
  config_path: /etc/kube-flannel/custom.json
  sync_timeout: 30
lease:
  backend_type: vxlan
  backend_data:
    VNI: 1
    Port: 8472
  public_ip: 10.0.0.5
"""
    )

    cfg = load_config(config_path)

    assert cfg.kube.api_url == ""
    assert cfg.kube.kubeconfig == "/root/.kube/config"
    assert cfg.kube.resync_period == pytest.approx(120.0)
    assert cfg.kube.watch_timeout == 60
    assert cfg.network.config_path == Path("/etc/kube-flannel/custom.json")
    assert cfg.network.sync_timeout == pytest.approx(30.0)
    assert cfg.network.sync_poll_interval == pytest.approx(1.0)
    assert cfg.lease.backend_type == "vxlan"
    assert cfg.lease.backend_data == '{"Port":8472,"VNI":1}'
    assert cfg.lease.public_ip == "10.0.0.5"
    assert cfg.lease.retry_interval == pytest.approx(5.0)


def test_load_config_defaults(tmp_path: Path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text("")

    cfg = load_config(config_path)

    assert cfg.network.config_path == DEFAULT_NET_CONF_PATH
    assert cfg.network.sync_timeout == pytest.approx(600.0)
    assert cfg.kube.resync_period == pytest.approx(300.0)
    assert cfg.lease.public_ip is None


def test_load_config_rejects_bad_section(tmp_path: Path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text("kube: [1, 2]\n")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_parse_network_config_defaults():
    cfg = parse_network_config(json.dumps({"Network": "10.244.0.0/16", "Backend": {"Type": "vxlan"}}))

    assert cfg.network == ipaddress.IPv4Network("10.244.0.0/16")
    assert cfg.subnet_len == 24
    assert cfg.subnet_min == ipaddress.IPv4Address("10.244.1.0")
    assert cfg.subnet_max == ipaddress.IPv4Address("10.244.255.0")
    assert cfg.backend_type == "vxlan"
    assert cfg.backend == {"Type": "vxlan"}


def test_parse_network_config_small_network():
    cfg = parse_network_config('{"Network": "10.0.0.0/24"}')

    assert cfg.subnet_len == 25
    assert cfg.subnet_min == ipaddress.IPv4Address("10.0.0.128")
    assert cfg.subnet_max == ipaddress.IPv4Address("10.0.0.128")
    assert cfg.backend_type == "udp"


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        "[]",
        "{}",
        '{"Network": "bogus"}',
        '{"Network": "10.0.0.0/16", "SubnetLen": 8}',
        '{"Network": "10.0.0.0/16", "SubnetMin": "192.168.0.0"}',
        '{"Network": "10.0.0.0/16", "SubnetMax": "192.168.0.0"}',
        '{"Network": "10.0.0.0/16", "Backend": "vxlan"}',
    ],
)
def test_parse_network_config_rejects_invalid(payload):
    with pytest.raises(ValueError):
        parse_network_config(payload)


def test_load_network_config(tmp_path: Path):
    path = tmp_path / "net-conf.json"
    path.write_text('{"Network": "10.244.0.0/16", "SubnetLen": 26}')

    cfg = load_network_config(path)

    assert cfg.subnet_len == 26
