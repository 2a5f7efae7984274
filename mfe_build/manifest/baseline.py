"""Baseline loading.

This module handles:
- Reading the previous manifest from the local artifact directory
- Fetching the previous manifest and HTML shell from a remote origin

A remote manifest that cannot be fetched is treated as "no baseline" so a
first-ever staged or production build can proceed. The same leniency also
hides transient network failures, so an unexpectedly empty manifest is
logged at warning level.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
from pydantic import ValidationError

from mfe_build.errors import MfeBuildError
from mfe_build.manifest.models import Manifest

logger = logging.getLogger(__name__)

# Timeout for baseline requests (seconds)
FETCH_TIMEOUT = 30


class FetchError(MfeBuildError):
    """Raised when a remote baseline document cannot be fetched."""

    def __init__(self, message: str, code: str = "fetch_error") -> None:
        """Initialize FetchError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message, code=code)


def join_url(base_url: str, name: str) -> str:
    """Append a document name to a base URL ending with or without '/'."""
    return f"{base_url.rstrip('/')}/{name}"


async def fetch_text(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = FETCH_TIMEOUT,
) -> str:
    """Fetch a text document.

    Args:
        client: HTTPX async client instance.
        url: Document URL.
        timeout: Request timeout in seconds.

    Returns:
        Response body as text.

    Raises:
        FetchError: If the request fails or returns an error status.
    """
    logger.debug("Fetching %s", url)

    try:
        response = await client.get(url, timeout=timeout)
        response.raise_for_status()
        return response.text

    except httpx.HTTPStatusError as e:
        raise FetchError(
            f"HTTP error fetching {url}: {e.response.status_code}",
            code="http_error",
        ) from e
    except httpx.TimeoutException as e:
        raise FetchError(
            f"Timeout fetching {url}",
            code="timeout",
        ) from e
    except httpx.RequestError as e:
        raise FetchError(
            f"Network error fetching {url}: {e}",
            code="network_error",
        ) from e


def load_local_manifest(path: Path) -> Manifest:
    """Load the manifest written by a previous local run.

    A missing or unreadable file yields an empty manifest.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("No previous manifest at %s, starting from scratch", path)
        return Manifest()
    except OSError as e:
        logger.warning("Cannot read manifest %s: %s", path, e)
        return Manifest()

    try:
        return Manifest.from_json(text)
    except ValidationError as e:
        logger.warning("Ignoring invalid manifest %s: %s", path, e)
        return Manifest()


async def fetch_remote_manifest(
    client: httpx.AsyncClient,
    base_url: str,
    manifest_name: str = "meta.json",
    timeout: float = FETCH_TIMEOUT,
) -> Manifest:
    """Fetch the manifest of a remote baseline.

    Fetch failures and invalid documents yield an empty manifest.
    """
    url = join_url(base_url, manifest_name)
    try:
        text = await fetch_text(client, url, timeout=timeout)
    except FetchError as e:
        logger.warning("No remote baseline (%s): %s", e.code, e)
        return Manifest()

    try:
        return Manifest.from_json(text)
    except ValidationError as e:
        logger.warning("Ignoring invalid remote manifest %s: %s", url, e)
        return Manifest()


async def fetch_remote_html(
    client: httpx.AsyncClient,
    base_url: str,
    html_name: str = "index.html",
    timeout: float = FETCH_TIMEOUT,
) -> str:
    """Fetch the HTML shell of a remote baseline.

    Raises:
        FetchError: If the shell cannot be fetched.
    """
    return await fetch_text(client, join_url(base_url, html_name), timeout=timeout)


__all__ = [
    "FETCH_TIMEOUT",
    "FetchError",
    "fetch_remote_html",
    "fetch_remote_manifest",
    "fetch_text",
    "join_url",
    "load_local_manifest",
]
