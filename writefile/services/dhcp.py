"""DHCP discovery on the host's provisioning interface.

The provisioning step usually runs in an isolated network namespace where the
machine's real NICs are invisible. Interface discovery and the DHCP exchange
both run pinned to the host namespace (pid 1) through run_in_namespace().

Only the discover/offer half of DHCP is performed: the offer already carries
everything needed to write a static network configuration, and no lease is
taken.
"""

from __future__ import annotations

import ipaddress
import random
import socket
from typing import Any, Iterable, Mapping, Optional

import psutil
from scapy.arch import get_if_hwaddr
from scapy.config import conf
from scapy.error import Scapy_Exception
from scapy.layers.dhcp import BOOTP, DHCP
from scapy.layers.inet import IP, UDP
from scapy.layers.l2 import Ether
from scapy.packet import Packet
from scapy.sendrecv import srp1
from scapy.utils import mac2str, str2mac

from writefile.domain import DEFAULT_DHCP_TIMEOUT_SECONDS, NetworkInfo
from writefile.logging import LoggerFactory
from writefile.services.netns import HOST_NAMESPACE_PID, run_in_namespace
from writefile.storage.exceptions import (
    DhcpError,
    DhcpTimeoutError,
    InterfaceDiscoveryError,
)

log = LoggerFactory.for_network()

BROADCAST_MAC = "ff:ff:ff:ff:ff:ff"
LIMITED_BROADCAST = ipaddress.IPv4Address("255.255.255.255")
DHCP_CLIENT_PORT = 68
DHCP_SERVER_PORT = 67
# subnet mask, router, domain name server, domain name, broadcast address
REQUESTED_OPTIONS = [1, 3, 6, 15, 28]
INTERFACE_LIST_TIMEOUT_SECONDS = 10.0


# ==============================================================================
# Interface discovery
# ==============================================================================


def is_global_unicast(address: ipaddress.IPv4Address) -> bool:
    """Unicast and routable beyond the link; private ranges count."""
    return not (
        address.is_unspecified
        or address.is_loopback
        or address.is_link_local
        or address.is_multicast
        or address == LIMITED_BROADCAST
    )


def first_global_unicast_interface(
    if_addrs: Mapping[str, Iterable[Any]],
) -> Optional[str]:
    """Return the first interface carrying a global-unicast IPv4 address.

    Args:
        if_addrs: Mapping shaped like psutil.net_if_addrs()
    """
    for name, snics in if_addrs.items():
        for snic in snics:
            if snic.family != socket.AF_INET:
                continue
            try:
                address = ipaddress.IPv4Address(snic.address)
            except ValueError:
                continue
            if is_global_unicast(address):
                return name
    return None


def determine_interface(pid: int = HOST_NAMESPACE_PID) -> str:
    """Find the provisioning interface as seen from the namespace of ``pid``.

    Raises:
        InterfaceDiscoveryError: If listing fails or no interface qualifies
        NamespaceError: If the namespace cannot be entered
    """
    try:
        if_addrs = run_in_namespace(
            psutil.net_if_addrs,
            timeout=INTERFACE_LIST_TIMEOUT_SECONDS,
            pid=pid,
            name="netns-ifaces",
        )
    except (OSError, psutil.Error) as e:
        raise InterfaceDiscoveryError(f"Could not list host interfaces: {e}") from e

    name = first_global_unicast_interface(if_addrs)
    if name is None:
        raise InterfaceDiscoveryError(
            "No host interface with a global unicast IPv4 address found"
        )
    log.info(f"Using interface {name}")
    return name


# ==============================================================================
# Discover / Offer
# ==============================================================================


def build_discover(hw_address: str, xid: int) -> Packet:
    """Build a broadcast DHCPDISCOVER from ``hw_address``."""
    return (
        Ether(src=hw_address, dst=BROADCAST_MAC)
        / IP(src="0.0.0.0", dst=str(LIMITED_BROADCAST))
        / UDP(sport=DHCP_CLIENT_PORT, dport=DHCP_SERVER_PORT)
        / BOOTP(op=1, chaddr=mac2str(hw_address), xid=xid, flags=0x8000)
        / DHCP(
            options=[
                ("message-type", "discover"),
                ("param_req_list", REQUESTED_OPTIONS),
                "end",
            ]
        )
    )


def dhcp_options(packet: Packet) -> dict[str, list[Any]]:
    """Collect a packet's DHCP options as name -> list of values."""
    options: dict[str, list[Any]] = {}
    if DHCP not in packet:
        return options
    for option in packet[DHCP].options:
        if not isinstance(option, tuple) or not option:
            continue  # "end" / "pad"
        values = options.setdefault(str(option[0]), [])
        for value in option[1:]:
            if isinstance(value, (list, tuple)):
                values.extend(value)
            else:
                values.append(value)
    return options


def is_offer(packet: Packet) -> bool:
    message_type = dhcp_options(packet).get("message-type", [None])[0]
    return message_type in (2, "offer")


def discover_offer(ifname: str, timeout: float) -> Packet:
    """Broadcast a DHCPDISCOVER on ``ifname`` and return the first offer.

    Must run on a thread already inside the interface's namespace.

    Raises:
        DhcpTimeoutError: If no answer arrives within ``timeout`` seconds
        DhcpError: If the interface is unusable or the answer is not an offer
    """
    # Offers are addressed to the offered IP or broadcast, never to 0.0.0.0
    check_ip_addr = conf.checkIPaddr
    conf.checkIPaddr = False
    try:
        hw_address = get_if_hwaddr(ifname)
        xid = random.getrandbits(32)
        log.debug(f"Sending DHCPDISCOVER on {ifname} from {hw_address} (xid={xid:#010x})")
        answer = srp1(
            build_discover(hw_address, xid),
            iface=ifname,
            timeout=timeout,
            verbose=False,
        )
    except (OSError, ValueError, Scapy_Exception) as e:
        raise DhcpError(f"DHCP exchange on {ifname} failed: {e}", interface=ifname) from e
    finally:
        conf.checkIPaddr = check_ip_addr

    if answer is None:
        raise DhcpTimeoutError(ifname, timeout)
    if not is_offer(answer):
        raise DhcpError(f"Expected a DHCPOFFER on {ifname}, got {answer.summary()}", interface=ifname)
    return answer


def translate(offer: Packet) -> NetworkInfo:
    """Extract hardware address, address/prefix, gateway and DNS servers.

    A missing subnet mask yields a /32. Only the first router is used.
    """
    bootp = offer[BOOTP]
    options = dhcp_options(offer)

    mask = options.get("subnet_mask", [None])[0]
    address = f"{bootp.yiaddr}/{mask}" if mask else str(bootp.yiaddr)
    routers = options.get("router", [])

    return NetworkInfo(
        hw_address=str2mac(bytes(bootp.chaddr)[:6]),
        ip_interface=ipaddress.IPv4Interface(address),
        gateway=ipaddress.IPv4Address(routers[0]) if routers else None,
        nameservers=[ipaddress.IPv4Address(ns) for ns in options.get("name_server", [])],
    )


def dhcp_network_info(
    interface: Optional[str] = None,
    timeout: float = DEFAULT_DHCP_TIMEOUT_SECONDS,
    pid: int = HOST_NAMESPACE_PID,
) -> NetworkInfo:
    """Run a DHCP discover/offer in the host namespace and translate the offer.

    Args:
        interface: Interface override; discovered when None
        timeout: Seconds to wait for an offer
        pid: Process whose network namespace is used

    Raises:
        DhcpTimeoutError: No offer arrived in time
        DhcpError, InterfaceDiscoveryError, NamespaceError: Any other failure
    """
    ifname = interface or determine_interface(pid)
    log.info(f"Running DHCP discovery on {ifname} (timeout {timeout:g}s)")

    try:
        offer = run_in_namespace(
            lambda: discover_offer(ifname, timeout),
            timeout=timeout,
            pid=pid,
            name=f"dhcp-{ifname}",
        )
    except DhcpError:
        raise
    except TimeoutError as e:
        raise DhcpTimeoutError(ifname, timeout) from e

    try:
        info = translate(offer)
    except (ValueError, IndexError) as e:
        raise DhcpError(f"Malformed DHCPOFFER on {ifname}: {e}", interface=ifname) from e

    log.info(
        f"DHCP offer: {info.address_with_prefix} "
        f"gateway={info.gateway or '-'} dns={[str(ns) for ns in info.nameservers]}"
    )
    return info
