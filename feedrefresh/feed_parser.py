"""
Feed Parser - turn raw RSS/Atom documents into candidate entries.

Handles:
- RSS 0.9x/2.0, RDF and Atom 1.0 (via feedparser)
- Entry identity (guid when present, otherwise link)
- Published date normalization to UTC
- Summary sanitization
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

import feedparser
from bs4 import BeautifulSoup

from .exceptions import FeedParseError

# Elements removed from entry summaries along with their content
UNSAFE_TAGS = ["script", "style", "iframe", "object", "embed", "form"]


@dataclass
class CandidateEntry:
    """An entry as found in a feed document, before deduplication."""
    title: str
    url: str | None
    guid: str | None
    summary: str | None
    published: datetime | None

    @property
    def identity(self) -> str | None:
        """Key used to recognise the same entry across fetches."""
        return self.guid or self.url or None


@dataclass
class ParsedFeed:
    title: str | None
    url: str | None
    entries: list[CandidateEntry] = field(default_factory=list)


def sanitize_html(html: str | None) -> str | None:
    """Strip active content (scripts, event handlers, javascript: links) from HTML."""
    if not html:
        return html

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(UNSAFE_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            value = tag.attrs[attr]
            if attr.lower().startswith("on"):
                del tag.attrs[attr]
            elif isinstance(value, str) and value.strip().lower().startswith("javascript:"):
                del tag.attrs[attr]

    return str(soup)


def _parse_date(entry) -> datetime | None:
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        value = entry.get(key)
        if value:
            try:
                return datetime(*value[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return None


def _entry_url(entry) -> str | None:
    url = entry.get("link")
    if not url:
        for link in entry.get("links", []):
            if link.get("rel") == "alternate" or link.get("type") == "text/html":
                url = link.get("href")
                break
    return url.strip() if url else None


def _entry_summary(entry) -> str | None:
    # Prefer full content over summary
    if entry.get("content"):
        return entry.content[0].get("value")
    return entry.get("summary") or entry.get("description")


def parse_feed(document: bytes | str, url: str = "") -> ParsedFeed:
    """
    Parse a raw feed document.

    Raises FeedParseError if the document is not a feed at all. A valid feed
    without entries parses to an empty entry list.
    """
    parsed = feedparser.parse(document)

    if not parsed.entries and (parsed.bozo or not parsed.version):
        reason = parsed.get("bozo_exception") or "not an RSS or Atom document"
        raise FeedParseError(url, f"Failed to parse feed {url}: {reason}")

    entries = []
    for entry in parsed.entries:
        guid = entry.get("id") or None
        entries.append(CandidateEntry(
            title=(entry.get("title") or "Untitled").strip(),
            url=_entry_url(entry),
            guid=guid.strip() if guid else None,
            summary=sanitize_html(_entry_summary(entry)),
            published=_parse_date(entry),
        ))

    return ParsedFeed(
        title=parsed.feed.get("title"),
        url=parsed.feed.get("link"),
        entries=entries,
    )
