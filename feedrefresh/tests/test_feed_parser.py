"""
Tests for RSS/Atom parsing into candidate entries.
"""

from datetime import datetime, timezone

import pytest

from feedrefresh.exceptions import FeedParseError
from feedrefresh.feed_parser import CandidateEntry, parse_feed, sanitize_html

from conftest import FEED_URL, START, entries, make_rss

ATOM = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Feed</title>
  <link href="https://atom.example.com/"/>
  <id>urn:feed</id>
  <updated>2024-01-01T12:00:00Z</updated>
  <entry>
    <title>First</title>
    <link rel="alternate" href="https://atom.example.com/first"/>
    <id>urn:entry:1</id>
    <updated>2024-01-01T12:00:00Z</updated>
    <content type="html">&lt;p&gt;Full text&lt;/p&gt;</content>
    <summary>Short</summary>
  </entry>
</feed>"""


class TestParseFeed:
    """Tests for parse_feed."""

    def test_rss(self):
        parsed = parse_feed(make_rss(entries("a", "b"), title="My Feed"), FEED_URL)

        assert parsed.title == "My Feed"
        assert [e.guid for e in parsed.entries] == ["a", "b"]
        assert parsed.entries[0].title == "Entry a"
        assert parsed.entries[0].published == START

    def test_atom_prefers_content(self):
        """Full content wins over the summary."""
        parsed = parse_feed(ATOM)

        assert parsed.title == "Atom Feed"
        entry = parsed.entries[0]
        assert entry.guid == "urn:entry:1"
        assert entry.url == "https://atom.example.com/first"
        assert "Full text" in entry.summary
        assert entry.published == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_empty_feed(self):
        """A valid feed without items parses to no entries."""
        parsed = parse_feed(make_rss([]))
        assert parsed.entries == []

    def test_not_a_feed(self):
        with pytest.raises(FeedParseError):
            parse_feed(b"<html><body>Not a feed</body></html>", FEED_URL)

    def test_garbage(self):
        with pytest.raises(FeedParseError):
            parse_feed(b"\x00\x01 definitely not xml", FEED_URL)

    def test_missing_fields(self):
        """Entries without title or date still parse."""
        doc = b"""<?xml version="1.0"?><rss version="2.0"><channel><title>T</title>
        <item><link>https://example.com/x</link></item></channel></rss>"""
        entry = parse_feed(doc).entries[0]

        assert entry.title == "Untitled"
        assert entry.guid is None
        assert entry.published is None
        assert entry.identity == "https://example.com/x"


class TestCandidateEntry:
    """Tests for entry identity."""

    def test_guid_preferred(self):
        entry = CandidateEntry(title="t", url="https://u", guid="g", summary=None, published=None)
        assert entry.identity == "g"

    def test_no_identity(self):
        entry = CandidateEntry(title="t", url=None, guid=None, summary=None, published=None)
        assert entry.identity is None


class TestSanitize:
    """Tests for sanitize_html."""

    def test_removes_scripts(self):
        result = sanitize_html('<p>hi</p><script>alert(1)</script>')
        assert "script" not in result
        assert "<p>hi</p>" in result

    def test_removes_event_handlers_and_javascript_links(self):
        result = sanitize_html('<a href="javascript:evil()" onclick="x()">link</a>')
        assert "javascript" not in result
        assert "onclick" not in result
        assert "link" in result

    def test_none_passthrough(self):
        assert sanitize_html(None) is None
