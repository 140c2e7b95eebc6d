"""Startup sequencing for the subnet lease manager."""

from __future__ import annotations

import logging
from threading import Event

from kubernetes import client
from kubernetes import config as kube_config
from kubernetes.config.config_exception import ConfigException

from subnet_lease.errors import ConfigurationError
from subnet_lease.manager import SubnetManager

from .config import AgentConfig, KubeConfig, load_network_config
from .identity import resolve_node_name
from .kube import KubeNodeDirectory

LOG = logging.getLogger(__name__)


def build_core_api(settings: KubeConfig) -> client.CoreV1Api:
    """Create a ``CoreV1Api`` client.

    An explicit API URL or kubeconfig selects out-of-cluster configuration;
    otherwise the in-cluster service account is used.
    """

    configuration = client.Configuration()
    try:
        if settings.api_url or settings.kubeconfig:
            if settings.kubeconfig:
                kube_config.load_kube_config(
                    config_file=settings.kubeconfig,
                    client_configuration=configuration,
                )
            if settings.api_url:
                configuration.host = settings.api_url
        else:
            kube_config.load_incluster_config(client_configuration=configuration)
    except (ConfigException, OSError) as exc:
        raise ConfigurationError(f"unable to create k8s config: {exc}") from exc

    return client.CoreV1Api(client.ApiClient(configuration))


def new_subnet_manager(config: AgentConfig, stop_event: Event) -> SubnetManager:
    """Build, start and sync a :class:`SubnetManager` for this node."""

    api = build_core_api(config.kube)
    node_name = resolve_node_name(api)

    try:
        network_config = load_network_config(config.network.config_path)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"failed to load net conf: {exc}") from exc

    directory = KubeNodeDirectory(
        api,
        stop_event,
        resync_period=config.kube.resync_period,
        watch_timeout=config.kube.watch_timeout,
    )
    manager = SubnetManager(directory, node_name, network_config)
    manager.start()
    manager.wait_for_sync(
        timeout=config.network.sync_timeout,
        interval=config.network.sync_poll_interval,
        cancel=stop_event,
    )
    LOG.info("%s ready", manager.name())
    return manager
