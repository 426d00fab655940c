"""
Feed URL normalization and SSRF protection.

Feed URLs come from users, and from <link> tags in arbitrary HTML during
autodiscovery, so every URL is checked before it is fetched:
- only http/https (feed:// is rewritten to http://)
- no loopback, private, link-local or reserved addresses
- no well-known internal hostnames
"""

import ipaddress
from urllib.parse import urlparse, urlunparse

from .exceptions import BlockedURLError

ALLOWED_SCHEMES = {"http", "https"}

BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "ip6-localhost",
    "ip6-loopback",
    "metadata",
    "metadata.google.internal",
    "kubernetes.default",
    "kubernetes.default.svc",
}

BLOCKED_SUFFIXES = (".local", ".internal", ".localhost")


def normalize_url(url: str) -> str:
    """
    Normalize a user-entered feed URL.

    Adds a missing scheme, rewrites feed:// pseudo-URLs, and lowercases
    the host. Path and query are left untouched.
    """
    url = url.strip()
    if url.startswith("feed://"):
        url = "http://" + url[len("feed://"):]
    elif url.startswith("feed:"):
        url = url[len("feed:"):]
    if "://" not in url:
        url = "http://" + url

    parsed = urlparse(url)
    netloc = parsed.netloc.lower()
    return urlunparse(parsed._replace(scheme=parsed.scheme.lower(), netloc=netloc))


def is_ip_blocked(ip_str: str) -> bool:
    """Check if an IP address is private, loopback or otherwise not routable."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )


def validate_url(url: str, allow_private: bool = False) -> str:
    """
    Check that a URL is safe to fetch.

    Returns the URL unchanged; raises BlockedURLError otherwise.
    """
    parsed = urlparse(url)

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise BlockedURLError(url, f"URL scheme '{parsed.scheme}' is not allowed. Use http or https.")

    if not parsed.hostname:
        raise BlockedURLError(url, "URL must include a hostname")

    if allow_private:
        return url

    hostname = parsed.hostname.lower()
    if hostname in BLOCKED_HOSTNAMES or hostname.endswith(BLOCKED_SUFFIXES):
        raise BlockedURLError(url, f"Access to '{hostname}' is not allowed")

    if is_ip_blocked(hostname):
        raise BlockedURLError(url, f"Access to IP address '{hostname}' is not allowed")

    return url
