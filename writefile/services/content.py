"""Resolve the bytes to write from the request's content source."""

from __future__ import annotations

from writefile.domain import (
    BootConfigContent,
    ContentSource,
    DhcpContent,
    LiteralContent,
    MetadataContent,
)
from writefile.services import dhcp, metadata, netplan


def resolve_content(source: ContentSource) -> bytes:
    """Produce the file's bytes; exactly one branch runs per source variant.

    Boot configuration resolves to an empty file, which bootconfig fills in
    after it has been written.

    Raises:
        MetadataUnavailableError: All metadata endpoints failed
        TemplateRenderError: Netplan rendering failed
        NetworkError: DHCP discovery failed
        TypeError: Unknown source variant
    """
    if isinstance(source, LiteralContent):
        return source.data
    if isinstance(source, BootConfigContent):
        return b""
    if isinstance(source, MetadataContent):
        return metadata.resolve_user_data(source.endpoints)
    if isinstance(source, DhcpContent):
        info = dhcp.dhcp_network_info(source.interface, source.timeout)
        return netplan.render_netplan(info).encode("utf-8")
    raise TypeError(f"Unsupported content source: {type(source).__name__}")
