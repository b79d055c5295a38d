"""Render DHCP-derived network facts into a static netplan document."""

from __future__ import annotations

from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateError

from writefile.domain import NetworkInfo
from writefile.storage.exceptions import TemplateRenderError

NETPLAN_TEMPLATE = """\
network:
    version: 2
    renderer: networkd
    ethernets:
        id0:
            match:
                macaddress: {{ info.hw_address }}
            addresses:
                - {{ info.address_with_prefix }}
            nameservers:
                addresses: [{{ info.nameservers | join(", ") }}]
            {%- if info.gateway is not none %}
            routes:
                - to: default
                  via: {{ info.gateway }}
            {%- endif %}
"""


def _environment() -> Environment:
    return Environment(
        loader=BaseLoader(),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )


def render_netplan(info: NetworkInfo, template: str = NETPLAN_TEMPLATE) -> str:
    """Render ``info`` as a netplan v2 document.

    The interface is matched by hardware address and given the offered address
    statically. A default route is only emitted when the offer carried a router.

    Raises:
        TemplateRenderError: If the template fails to parse or render
    """
    try:
        return _environment().from_string(template).render(info=info)
    except TemplateError as e:
        raise TemplateRenderError(f"Could not render netplan template: {e}") from e
