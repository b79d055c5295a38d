"""Domain model for the write-file provisioning step.

A run is described by a single ProvisionRequest. Where the file's bytes come
from is a closed choice: each request carries exactly one ContentSource
variant, so "two sources at once" cannot be expressed.
"""

from __future__ import annotations

import ipaddress
import posixpath
from dataclasses import dataclass, field
from typing import Optional, Union


DEFAULT_DHCP_TIMEOUT_SECONDS = 120.0


# ==============================================================================
# Content Sources
# ==============================================================================


@dataclass(frozen=True)
class LiteralContent:
    """File content given verbatim."""

    data: bytes


@dataclass(frozen=True)
class BootConfigContent:
    """Boot configuration document applied to the output file by bootconfig.

    The output file is written empty first; the tool then rewrites it in place.
    """

    document: bytes


@dataclass(frozen=True)
class MetadataContent:
    """User-data fetched from the first reachable metadata endpoint."""

    endpoints: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.endpoints:
            raise ValueError("at least one metadata endpoint is required")


@dataclass(frozen=True)
class DhcpContent:
    """Netplan configuration derived from a DHCP offer in the host namespace."""

    interface: Optional[str] = None  # None means discover it
    timeout: float = DEFAULT_DHCP_TIMEOUT_SECONDS


ContentSource = Union[LiteralContent, BootConfigContent, MetadataContent, DhcpContent]


# ==============================================================================
# Provision Request
# ==============================================================================


@dataclass(frozen=True)
class ProvisionRequest:
    """Everything needed to write one file onto one block device."""

    block_device: str  # e.g., "/dev/sda1"
    filesystem_type: str  # e.g., "ext4"
    destination: str  # absolute path inside the mounted filesystem
    file_mode: int
    dir_mode: int
    uid: int
    gid: int
    source: ContentSource

    def __post_init__(self) -> None:
        if not posixpath.isabs(self.destination):
            raise ValueError(f"destination must be an absolute path: {self.destination!r}")
        if not self.file_name:
            raise ValueError(f"destination must include a file component: {self.destination!r}")

    @property
    def directory(self) -> str:
        """Parent directory of the destination, e.g. "/etc/config"."""
        return posixpath.split(self.destination)[0] or "/"

    @property
    def file_name(self) -> str:
        return posixpath.split(self.destination)[1]


# ==============================================================================
# Network Info
# ==============================================================================


@dataclass(frozen=True)
class NetworkInfo:
    """Facts extracted from a DHCP offer."""

    hw_address: str  # e.g., "52:54:00:12:34:56"
    ip_interface: ipaddress.IPv4Interface  # offered address with prefix
    gateway: Optional[ipaddress.IPv4Address] = None
    nameservers: list[ipaddress.IPv4Address] = field(default_factory=list)

    @property
    def address_with_prefix(self) -> str:
        """Address in CIDR form, e.g. "10.0.0.5/24"."""
        return self.ip_interface.with_prefixlen
