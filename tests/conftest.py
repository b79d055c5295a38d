"""
Pytest configuration and shared fixtures for writefile tests.

This module provides common fixtures and utilities used across all test modules.
"""

import ipaddress
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import Mock

import pytest
from loguru import logger
from scapy.layers.dhcp import BOOTP, DHCP
from scapy.layers.inet import IP, UDP
from scapy.layers.l2 import Ether
from scapy.utils import mac2str

from writefile.domain import NetworkInfo


TEST_MAC = "52:54:00:12:34:56"


# ==============================================================================
# Configuration Fixtures
# ==============================================================================


@pytest.fixture
def base_env() -> Dict[str, str]:
    """
    Fixture providing a complete, valid environment for a literal write.

    Returns:
        Dict mirroring the example scenario: /dev/sdX, ext4, /etc/config/app.conf.
    """
    return {
        "DEST_DISK": "/dev/sdX",
        "FS_TYPE": "ext4",
        "DEST_PATH": "/etc/config/app.conf",
        "CONTENTS": "hello",
        "MODE": "0644",
        "DIRMODE": "0755",
        "UID": "0",
        "GID": "0",
    }


@pytest.fixture
def source_free_env(base_env) -> Dict[str, str]:
    """Valid environment with no content source set."""
    env = dict(base_env)
    del env["CONTENTS"]
    return env


# ==============================================================================
# Filesystem Fixtures
# ==============================================================================


@pytest.fixture
def mount_root(tmp_path) -> Path:
    """
    Fixture providing a directory standing in for the mounted filesystem.

    Args:
        tmp_path: pytest's built-in temporary directory fixture.
    """
    root = tmp_path / "mountAction"
    root.mkdir()
    return root


@pytest.fixture
def mock_chown(mocker) -> Mock:
    """Replace os.chown so ownership changes work without root."""
    return mocker.patch("os.chown")


@pytest.fixture
def mock_subprocess_success(mocker) -> Mock:
    """Fixture mocking subprocess.run to always succeed."""
    return mocker.patch(
        "subprocess.run",
        return_value=subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr=""),
    )


# ==============================================================================
# Network Fixtures
# ==============================================================================


@pytest.fixture
def network_info() -> NetworkInfo:
    """NetworkInfo with a gateway and two nameservers."""
    return NetworkInfo(
        hw_address=TEST_MAC,
        ip_interface=ipaddress.IPv4Interface("10.0.0.5/24"),
        gateway=ipaddress.IPv4Address("10.0.0.1"),
        nameservers=[
            ipaddress.IPv4Address("1.1.1.1"),
            ipaddress.IPv4Address("8.8.8.8"),
        ],
    )


@pytest.fixture
def make_offer() -> Callable[..., Any]:
    """
    Fixture returning a builder for in-memory DHCP answer packets.

    Returns:
        Callable(yiaddr=..., mask=..., routers=..., dns=..., message_type=...)
    """

    def _make(
        yiaddr: str = "10.0.0.5",
        mask: Optional[str] = "255.255.255.0",
        routers: Optional[List[str]] = None,
        dns: Optional[List[str]] = None,
        message_type: Any = "offer",
        mac: str = TEST_MAC,
        xid: int = 0x1234,
    ):
        options: List[Any] = [("message-type", message_type)]
        if mask:
            options.append(("subnet_mask", mask))
        if routers:
            options.append(("router", *routers))
        if dns:
            options.append(("name_server", *dns))
        options.append("end")
        return (
            Ether(src="52:54:00:aa:bb:cc", dst="ff:ff:ff:ff:ff:ff")
            / IP(src="10.0.0.1", dst="255.255.255.255")
            / UDP(sport=67, dport=68)
            / BOOTP(op=2, yiaddr=yiaddr, chaddr=mac2str(mac), xid=xid)
            / DHCP(options=options)
        )

    return _make


# ==============================================================================
# Logging Fixtures
# ==============================================================================


@pytest.fixture
def log_records() -> List[dict]:
    """Collect loguru records emitted during a test."""
    records: List[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="TRACE")
    yield records
    try:
        logger.remove(handler_id)
    except ValueError:
        pass
