"""HTTP client for fetching user-data from metadata service endpoints.

Endpoints are tried strictly in order. A failure on one endpoint is logged and
the next one is tried; the first successful response body wins. There is no
backoff, only the fixed per-request timeout.

A non-2xx status counts as a failed endpoint, so an error page is never
written out as user-data.
"""

from __future__ import annotations

import asyncio
import posixpath
from typing import Sequence

import aiohttp
from yarl import URL

from writefile.logging import LoggerFactory
from writefile.storage.exceptions import MetadataUnavailableError

log = LoggerFactory.for_content()

USER_DATA_VERSION = "2009-04-04"
USER_DATA_RESOURCE = "user-data"
REQUEST_TIMEOUT_SECONDS = 10


def split_endpoints(value: str) -> tuple[str, ...]:
    """Split a comma-separated endpoint list, dropping empty entries."""
    return tuple(part.strip() for part in value.split(",") if part.strip())


def build_user_data_url(endpoint: str) -> URL:
    """Append the user-data version and resource to an endpoint's path.

    Args:
        endpoint: Base URL of a metadata service (e.g., "http://10.1.1.1:50061")

    Returns:
        e.g. URL("http://10.1.1.1:50061/2009-04-04/user-data")

    Raises:
        ValueError: If the endpoint is not an absolute http(s) URL
    """
    url = URL(endpoint)
    if not url.is_absolute() or url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"not an absolute http(s) URL: {endpoint!r}")
    path = posixpath.join(url.path or "/", USER_DATA_VERSION, USER_DATA_RESOURCE)
    result = url.with_path(path)
    if url.query_string:
        result = result.with_query(url.query_string)
    return result


async def fetch_user_data(
    endpoints: Sequence[str], timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
) -> bytes:
    """Fetch user-data from the first endpoint that answers successfully.

    Args:
        endpoints: Base URLs, tried in order
        timeout_seconds: Total timeout for each individual request

    Returns:
        Response body of the first successful request

    Raises:
        MetadataUnavailableError: Every endpoint failed
    """
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        for endpoint in endpoints:
            try:
                url = build_user_data_url(endpoint)
            except ValueError as e:
                log.warning(f"Error parsing metadata url: {e}")
                continue

            log.debug(f"Requesting user-data from {url}")
            try:
                async with session.get(url) as resp:
                    resp.raise_for_status()
                    body = await resp.read()
            except aiohttp.ClientResponseError as e:
                log.warning(f"Metadata endpoint {url} returned HTTP {e.status}")
                continue
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                log.warning(f"Error with HTTP GET call to {url}: {e!r}")
                continue

            log.info(f"Retrieved {len(body)} bytes of user-data from {url}")
            return body

    raise MetadataUnavailableError(endpoints)


def resolve_user_data(endpoints: Sequence[str]) -> bytes:
    """Blocking wrapper around fetch_user_data()."""
    return asyncio.run(fetch_user_data(endpoints))
