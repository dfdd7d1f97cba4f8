"""Secure download utilities with SSL certificate handling.

The manifest is fetched over HTTPS with certifi's CA bundle so that
frozen/standalone builds on macOS, where Python cannot reach the system
certificate store, still verify the registry certificate.
"""

from __future__ import annotations

import ssl
from typing import Optional
from urllib.request import Request, urlopen

import certifi

from nodestrap import __version__

USER_AGENT = f"nodestrap/{__version__}"


def get_ssl_context() -> ssl.SSLContext:
    """Get an SSL context that uses certifi's CA bundle.

    Returns:
        An SSL context configured with certifi's CA certificates.
    """
    return ssl.create_default_context(cafile=certifi.where())


def secure_urlopen(url: str, timeout: Optional[float] = 30.0):
    """Open a URL with proper SSL certificate verification.

    Args:
        url: The URL to open.
        timeout: Connection timeout in seconds.

    Returns:
        A file-like object for reading the response.

    Raises:
        URLError: If the URL cannot be opened.
        ValueError: If the URL is not HTTPS.
    """
    if not url.startswith("https://"):
        raise ValueError(f"Only HTTPS URLs are supported: {url}")

    request = Request(
        url,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )
    return urlopen(request, timeout=timeout, context=get_ssl_context())  # nosec B310


def fetch_bytes(url: str, timeout: Optional[float] = 30.0) -> bytes:
    """Download a document into memory.

    Raises:
        URLError: If the URL cannot be opened.
        ValueError: If the URL is not HTTPS.
    """
    with secure_urlopen(url, timeout=timeout) as response:
        return response.read()
