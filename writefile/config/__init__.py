"""Configuration loading for the write-file step."""

from .settings import load_request, parse_dhcp_timeout, parse_duration

__all__ = ["load_request", "parse_dhcp_timeout", "parse_duration"]
