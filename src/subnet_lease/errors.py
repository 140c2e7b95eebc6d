"""Exception types raised by the subnet lease manager."""

from __future__ import annotations


class SubnetLeaseError(Exception):
    """Base class for all subnet lease errors."""

    retryable = False


class UnsupportedOperationError(SubnetLeaseError):
    """The operation is not implemented by this manager and never will be."""


class SubnetNotAssignedError(SubnetLeaseError):
    """The local node has no pod CIDR yet; poll again later."""

    retryable = True

    def __init__(self, node_name: str) -> None:
        super().__init__(f"node {node_name!r} pod cidr not assigned")
        self.node_name = node_name


class MalformedEntryError(SubnetLeaseError, ValueError):
    """A node record carries metadata that cannot be turned into a lease."""


class EntryNotFoundError(SubnetLeaseError, LookupError):
    """The directory has no record for the requested node."""

    def __init__(self, name: str) -> None:
        super().__init__(f"node {name!r} not found")
        self.name = name


class SyncTimeoutError(SubnetLeaseError, TimeoutError):
    """The directory did not finish its initial sync in time."""


class IdentityError(SubnetLeaseError):
    """The local node name could not be resolved."""


class ConfigurationError(SubnetLeaseError):
    """The API client or network configuration could not be built."""
