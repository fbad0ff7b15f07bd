"""
Utilities for URL validation and access.

Provides functions for validating buildbot URIs and fetching small text
resources (e.g. the LATEST pointer file) from them.
"""

from typing import Optional, Tuple

import requests


def is_valid_url(url: str) -> bool:
    """
    Validate that URL is a valid HTTP/HTTPS URL.

    Args:
        url: URL to validate

    Returns:
        True if URL is valid, False otherwise

    Example:
        >>> is_valid_url("https://example.com")
        True
        >>> is_valid_url("not-a-url")
        False
    """
    if not url or not isinstance(url, str):
        return False
    url = url.strip()
    return url.startswith('http://') or url.startswith('https://')


def join_uri(base: str, *parts: str) -> str:
    """
    Join URI path segments with single slashes.

    Example:
        >>> join_uri("http://bot/builds/", "LATEST")
        'http://bot/builds/LATEST'
    """
    uri = base.rstrip("/")
    for part in parts:
        uri = f"{uri}/{part.strip('/')}"
    return uri


def fetch_text(
    url: str,
    auth: Optional[Tuple[str, str]] = None,
    timeout: int = 30,
    session: Optional[requests.Session] = None,
) -> str:
    """
    GET url and return the body stripped of surrounding whitespace.

    Args:
        url: URL to fetch
        auth: Optional (username, password) for HTTP basic auth
        timeout: Request timeout in seconds
        session: Optional requests.Session (uses requests.get if None)

    Returns:
        The stripped response text.

    Raises:
        requests.RequestException: On connection failure or an HTTP error status.
    """
    get = (session or requests).get
    response = get(url, auth=auth, timeout=timeout, allow_redirects=True)
    response.raise_for_status()
    return response.text.strip()
