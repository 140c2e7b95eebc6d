"""Entry point for the standalone subnet lease agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from kubernetes.client.rest import ApiException

from subnet_lease.errors import SubnetLeaseError, SubnetNotAssignedError
from subnet_lease.lease import LeaseAttrs, parse_ip4
from subnet_lease.manager import SubnetManager

from .bootstrap import new_subnet_manager
from .config import LeaseSection, load_config

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def _lease_attrs(section: LeaseSection) -> LeaseAttrs:
    if not section.public_ip or not section.backend_type:
        raise ValueError("'lease' section requires 'public_ip' and 'backend_type'")
    return LeaseAttrs(
        public_ip=parse_ip4(section.public_ip),
        backend_type=section.backend_type,
        backend_data=section.backend_data,
    )


def acquire_until_assigned(
    manager: SubnetManager, attrs: LeaseAttrs, stop_event: Event, interval: float
):
    """Acquire the local lease, waiting while the node has no pod CIDR."""

    while not stop_event.is_set():
        try:
            return manager.acquire_lease(attrs)
        except SubnetNotAssignedError as exc:
            LOG.info("%s; retrying in %ss", exc, interval)
        except ApiException as exc:
            # Conflicts and transport errors: re-read the node on the next try.
            LOG.error("failed to publish lease: %s; retrying in %ss", exc.reason, interval)
        stop_event.wait(interval)
    return None


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the subnet lease agent")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/subnet-lease/agent.yaml"),
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config)
    attrs = _lease_attrs(config.lease)

    stop_event = Event()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        manager = new_subnet_manager(config, stop_event)
    except SubnetLeaseError as exc:
        if stop_event.is_set():
            LOG.info("subnet lease agent stopped during startup")
            return 0
        LOG.error("failed to start subnet manager: %s", exc)
        return 1

    lease = acquire_until_assigned(
        manager, attrs, stop_event, config.lease.retry_interval
    )
    if lease is not None:
        LOG.info(
            "Acquired lease %s (public ip %s, expires %s)",
            lease.subnet,
            lease.attrs.public_ip,
            lease.expiration.isoformat() if lease.expiration else "never",
        )

    while not stop_event.is_set():
        result = manager.watch_leases(stop_event)
        for event in result.events:
            LOG.info(
                "lease %s: subnet=%s public_ip=%s backend=%s",
                event.type.value,
                event.lease.subnet,
                event.lease.attrs.public_ip,
                event.lease.attrs.backend_type,
            )

    LOG.info("subnet lease agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
