"""Domain models for the write-file provisioning step."""

from __future__ import annotations

from .models import (
    DEFAULT_DHCP_TIMEOUT_SECONDS,
    BootConfigContent,
    ContentSource,
    DhcpContent,
    LiteralContent,
    MetadataContent,
    NetworkInfo,
    ProvisionRequest,
)


__all__ = [
    "DEFAULT_DHCP_TIMEOUT_SECONDS",
    "BootConfigContent",
    "ContentSource",
    "DhcpContent",
    "LiteralContent",
    "MetadataContent",
    "NetworkInfo",
    "ProvisionRequest",
]
