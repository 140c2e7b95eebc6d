"""Resolve the name of the node this agent runs on."""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from kubernetes.client.rest import ApiException

from subnet_lease.errors import IdentityError

LOG = logging.getLogger(__name__)


def resolve_node_name(api, environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the local node name.

    ``NODE_NAME`` wins when set. Otherwise the agent is expected to run as a
    pod with ``POD_NAME`` and ``POD_NAMESPACE`` populated (downward API) and
    the node is read from the pod spec.
    """

    env = os.environ if environ is None else environ

    node_name = env.get("NODE_NAME", "")
    if node_name:
        return node_name

    pod_name = env.get("POD_NAME", "")
    pod_namespace = env.get("POD_NAMESPACE", "")
    if not pod_name or not pod_namespace:
        raise IdentityError("env variables POD_NAME and POD_NAMESPACE must be set")

    try:
        pod = api.read_namespaced_pod(name=pod_name, namespace=pod_namespace)
    except ApiException as exc:
        raise IdentityError(
            f"error retrieving pod spec for '{pod_namespace}/{pod_name}': {exc}"
        ) from exc

    node_name = (pod.spec.node_name if pod.spec is not None else None) or ""
    if not node_name:
        raise IdentityError(
            f"node name not present in pod spec '{pod_namespace}/{pod_name}'"
        )
    LOG.debug("Resolved node %s from pod %s/%s", node_name, pod_namespace, pod_name)
    return node_name
