"""
Feed Fetcher - retrieve raw feed documents over HTTP.

Handles:
- HTTP GET with a bounded total timeout
- Feed autodiscovery when the URL points at an HTML page
- SSRF protection via URL validation
- Translation of transport errors into the FetchError hierarchy
"""

import asyncio
import logging
import socket
from dataclasses import dataclass
from urllib.parse import urljoin

import aiohttp
from bs4 import BeautifulSoup

from .config import config
from .exceptions import (
    AutodiscoveryError,
    ConnectionRefused,
    DNSFailure,
    EmptyResponseError,
    FetchConnectionError,
    FetchTimeout,
    HTTPStatusError,
)
from .url_validator import validate_url

logger = logging.getLogger(__name__)

FEED_LINK_TYPES = ("rss", "atom", "rdf", "xml")

ACCEPT_HEADER = (
    "application/rss+xml, application/atom+xml, application/rdf+xml, "
    "application/xml;q=0.9, text/xml;q=0.9, text/html;q=0.5, */*;q=0.1"
)


@dataclass
class FetchedDocument:
    """A raw feed document and the URL it was actually served from."""
    url: str
    body: bytes
    content_type: str | None = None
    discovered: bool = False


def looks_like_html(content_type: str | None, body: bytes) -> bool:
    """Whether a response is a web page rather than a feed document."""
    head = body[:1024].lstrip().lower()
    if head.startswith(b"<?xml") or b"<rss" in head or b"<feed" in head or b"<rdf:rdf" in head:
        return False
    if head.startswith(b"<!doctype html") or head.startswith(b"<html"):
        return True
    return "html" in (content_type or "").lower()


def discover_feed_url(html: bytes | str, base_url: str) -> str | None:
    """Extract the first RSS/Atom <link rel="alternate"> URL from an HTML page."""
    soup = BeautifulSoup(html, "html.parser")

    for link in soup.find_all("link", rel="alternate"):
        link_type = (link.get("type") or "").lower()
        if any(t in link_type for t in FEED_LINK_TYPES):
            href = link.get("href")
            if href:
                return urljoin(base_url, href.strip())

    return None


class FeedFetcher:
    """Fetches feed documents, following autodiscovery links at most once."""

    def __init__(
        self,
        timeout: float | None = None,
        user_agent: str | None = None,
        allow_private: bool | None = None,
    ):
        self.timeout = timeout if timeout is not None else config.FETCH_TIMEOUT
        self.user_agent = user_agent or config.FETCH_USER_AGENT
        self.allow_private = (
            allow_private if allow_private is not None else config.ALLOW_PRIVATE_URLS
        )

    async def fetch(self, url: str) -> FetchedDocument:
        """
        Fetch a feed document.

        If the URL serves an HTML page, the feed it advertises is fetched
        instead and the returned document carries the discovered URL. The
        timeout bounds the whole call, autodiscovery hop included.

        Raises:
            FetchError: one of its subclasses, describing why nothing usable
                was retrieved
        """
        try:
            return await asyncio.wait_for(self._fetch(url), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise FetchTimeout(url, f"Timed out after {self.timeout}s fetching {url}") from e

    async def _fetch(self, url: str) -> FetchedDocument:
        validate_url(url, allow_private=self.allow_private)
        content_type, body = await self._request(url)

        if not looks_like_html(content_type, body):
            return FetchedDocument(url=url, body=body, content_type=content_type)

        feed_url = discover_feed_url(body, url)
        if not feed_url or feed_url == url:
            raise AutodiscoveryError(url, f"No feed link found in HTML page {url}")

        logger.info(f"Autodiscovered feed {feed_url} from {url}")
        validate_url(feed_url, allow_private=self.allow_private)
        content_type, body = await self._request(feed_url)

        if looks_like_html(content_type, body):
            raise AutodiscoveryError(url, f"Discovered URL {feed_url} is not a feed")

        return FetchedDocument(url=feed_url, body=body, content_type=content_type, discovered=True)

    async def _request(self, url: str) -> tuple[str | None, bytes]:
        """GET a URL, translating every failure into a FetchError."""
        try:
            status, content_type, body = await self._get(url)
        except asyncio.TimeoutError as e:
            raise FetchTimeout(url, f"Timed out after {self.timeout}s fetching {url}") from e
        except aiohttp.ClientConnectorDNSError as e:
            raise DNSFailure(url, f"Cannot resolve host for {url}: {e}") from e
        except aiohttp.ClientConnectorError as e:
            if isinstance(e.os_error, socket.gaierror):
                raise DNSFailure(url, f"Cannot resolve host for {url}: {e}") from e
            if isinstance(e.os_error, ConnectionRefusedError):
                raise ConnectionRefused(url, f"Connection refused fetching {url}") from e
            raise FetchConnectionError(url, f"Cannot connect to {url}: {e}") from e
        except aiohttp.ClientError as e:
            raise FetchConnectionError(url, f"Error fetching {url}: {e}") from e

        if not 200 <= status < 300:
            raise HTTPStatusError(url, status)

        if not body or not body.strip():
            raise EmptyResponseError(url, f"Empty response from {url}")

        return content_type, body

    async def _get(self, url: str) -> tuple[int, str | None, bytes]:
        """Perform the HTTP request. Returns (status, content type, body)."""
        headers = {"User-Agent": self.user_agent, "Accept": ACCEPT_HEADER}

        async with aiohttp.ClientSession() as session:
            async with session.get(
                url,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                body = await resp.read()
                return resp.status, resp.headers.get("Content-Type"), body
