"""Environment-driven configuration for a provisioning run.

All inputs arrive as environment variables. They are parsed and validated
here, before anything touches the disk or the network, into a single
ProvisionRequest.
"""

from __future__ import annotations

import math
import os
import posixpath
import re
from typing import Mapping, Optional

from writefile.domain import (
    DEFAULT_DHCP_TIMEOUT_SECONDS,
    BootConfigContent,
    ContentSource,
    DhcpContent,
    LiteralContent,
    MetadataContent,
    ProvisionRequest,
)
from writefile.logging import LoggerFactory
from writefile.services.metadata import split_endpoints
from writefile.storage.exceptions import ConfigurationError
from writefile.storage.mount import validate_block_device

log = LoggerFactory.for_system()

ENV_DEST_DISK = "DEST_DISK"
ENV_FS_TYPE = "FS_TYPE"
ENV_DEST_PATH = "DEST_PATH"
ENV_CONTENTS = "CONTENTS"
ENV_BOOTCONFIG = "BOOTCONFIG_CONTENTS"
ENV_METADATA_URLS = "HEGEL_URLS"
ENV_STATIC_NETPLAN = "STATIC_NETPLAN"
ENV_IFNAME = "IFNAME"
ENV_DHCP_TIMEOUT = "DHCP_TIMEOUT"
ENV_UID = "UID"
ENV_GID = "GID"
ENV_MODE = "MODE"
ENV_DIRMODE = "DIRMODE"

CONTENT_VARIABLES = (ENV_CONTENTS, ENV_BOOTCONFIG, ENV_METADATA_URLS, ENV_STATIC_NETPLAN)

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """Parse a duration such as "2m", "90s", "1m30s" or "500ms" into seconds.

    A bare number is taken as seconds.

    Raises:
        ValueError: If the value is not a valid duration
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ValueError(f"invalid duration {value!r}")
        return seconds

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


def parse_dhcp_timeout(value: Optional[str]) -> float:
    """Parse DHCP_TIMEOUT, falling back to the default with a warning."""
    if not value:
        return DEFAULT_DHCP_TIMEOUT_SECONDS
    try:
        timeout = parse_duration(value)
    except ValueError:
        timeout = -1.0
    if timeout <= 0:
        log.warning(
            f"Invalid {ENV_DHCP_TIMEOUT}: {value}, "
            f"using default: {DEFAULT_DHCP_TIMEOUT_SECONDS:g}s"
        )
        return DEFAULT_DHCP_TIMEOUT_SECONDS
    return timeout


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def _parse_octal(environ: Mapping[str, str], variable: str) -> int:
    value = environ.get(variable, "")
    try:
        mode = int(value, 8)
    except ValueError:
        raise ConfigurationError(variable, f"could not parse mode {value!r}") from None
    if not 0 <= mode <= 0o7777:
        raise ConfigurationError(variable, f"mode out of range: {value}")
    return mode


def _parse_id(environ: Mapping[str, str], variable: str) -> int:
    value = environ.get(variable, "")
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(variable, f"could not parse {value!r}") from None


def load_content_source(environ: Mapping[str, str]) -> ContentSource:
    """Select the single content source configured in ``environ``.

    Raises:
        ConfigurationError: If zero or more than one source is set
    """
    selected = [
        name
        for name in CONTENT_VARIABLES
        if (_is_true(environ.get(name)) if name == ENV_STATIC_NETPLAN else environ.get(name))
    ]
    if len(selected) != 1:
        raise ConfigurationError(
            ", ".join(CONTENT_VARIABLES),
            "exactly one content source must be set"
            + (f" (got {', '.join(selected)})" if selected else " (got none)"),
        )

    name = selected[0]
    if name == ENV_CONTENTS:
        return LiteralContent(environ[ENV_CONTENTS].encode("utf-8"))
    if name == ENV_BOOTCONFIG:
        return BootConfigContent(environ[ENV_BOOTCONFIG].encode("utf-8"))
    if name == ENV_METADATA_URLS:
        endpoints = split_endpoints(environ[ENV_METADATA_URLS])
        if not endpoints:
            raise ConfigurationError(ENV_METADATA_URLS, "no endpoints given")
        return MetadataContent(endpoints)
    return DhcpContent(
        interface=environ.get(ENV_IFNAME) or None,
        timeout=parse_dhcp_timeout(environ.get(ENV_DHCP_TIMEOUT)),
    )


def load_request(environ: Optional[Mapping[str, str]] = None) -> ProvisionRequest:
    """Build a validated ProvisionRequest from environment variables.

    Args:
        environ: Variables to read; defaults to os.environ

    Raises:
        ConfigurationError: Naming the first invalid or missing variable
    """
    if environ is None:
        environ = os.environ

    block_device = environ.get(ENV_DEST_DISK, "")
    validate_block_device(block_device)

    filesystem_type = environ.get(ENV_FS_TYPE, "")
    if not filesystem_type:
        raise ConfigurationError(ENV_FS_TYPE, "no filesystem type specified")

    destination = environ.get(ENV_DEST_PATH, "")
    if not posixpath.isabs(destination):
        raise ConfigurationError(ENV_DEST_PATH, "path must be an absolute path")
    if not posixpath.basename(destination):
        raise ConfigurationError(ENV_DEST_PATH, "path must include a file component")
    # Everything after the mount is rooted under the mountpoint
    if ".." in destination.split("/") or posixpath.normpath(destination) != destination:
        raise ConfigurationError(ENV_DEST_PATH, "path must be normalized, without '..'")

    file_mode = _parse_octal(environ, ENV_MODE)
    source = load_content_source(environ)
    dir_mode = _parse_octal(environ, ENV_DIRMODE)
    uid = _parse_id(environ, ENV_UID)
    gid = _parse_id(environ, ENV_GID)

    return ProvisionRequest(
        block_device=block_device,
        filesystem_type=filesystem_type,
        destination=destination,
        file_mode=file_mode,
        dir_mode=dir_mode,
        uid=uid,
        gid=gid,
        source=source,
    )
