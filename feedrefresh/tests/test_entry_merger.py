"""
Tests for entry deduplication and fan-out.
"""

from datetime import timedelta

import pytest

from feedrefresh.feed_parser import CandidateEntry
from feedrefresh.services import EntryMerger

from conftest import START


def candidate(guid=None, url=None, published=START, title="Entry"):
    return CandidateEntry(title=title, url=url, guid=guid, summary=None, published=published)


@pytest.fixture
def merger(test_db):
    return EntryMerger(test_db)


@pytest.fixture
def feed_with_subscribers(test_db, users):
    """A feed subscribed by both users, without entries."""
    feed_id = test_db.feeds.add("https://example.com/feed.xml", "Feed")
    for user_id in users:
        test_db.subscriptions.add(user_id, feed_id, START)
    return feed_id


def merge(test_db, merger, feed_id, candidates):
    with test_db.transaction() as conn:
        return merger.merge(conn, feed_id, candidates, START)


class TestMerge:
    """Tests for EntryMerger.merge."""

    def test_creates_entries_and_states(self, test_db, merger, feed_with_subscribers):
        """N new entries x K subscribers gives N*K unread states."""
        result = merge(test_db, merger, feed_with_subscribers, [
            candidate(guid="1"), candidate(guid="2"), candidate(guid="3"),
        ])

        assert result.created_count == 3
        assert test_db.entries.count(feed_with_subscribers) == 3
        assert test_db.entry_states.count_states() == 6

    def test_merge_is_idempotent(self, test_db, merger, feed_with_subscribers):
        """Merging the same batch twice creates nothing the second time."""
        batch = [candidate(guid="1"), candidate(guid="2")]
        merge(test_db, merger, feed_with_subscribers, batch)
        result = merge(test_db, merger, feed_with_subscribers, batch)

        assert result.created_count == 0
        assert result.ignored == 2
        assert test_db.entries.count(feed_with_subscribers) == 2
        assert test_db.entry_states.count_states() == 4

    def test_duplicates_within_batch_count_once(self, test_db, merger, feed_with_subscribers):
        """Repeated keys in one batch create one entry."""
        result = merge(test_db, merger, feed_with_subscribers, [
            candidate(guid="1", title="first"), candidate(guid="1", title="second"),
        ])

        assert result.created_count == 1
        assert result.ignored == 1
        assert test_db.get_entry(result.created[0]).title == "first"

    def test_url_used_when_guid_missing(self, test_db, merger, feed_with_subscribers):
        """Entries without guid are identified by URL."""
        batch = [candidate(url="https://example.com/a")]
        merge(test_db, merger, feed_with_subscribers, batch)
        result = merge(test_db, merger, feed_with_subscribers, batch)

        assert result.created_count == 0
        assert test_db.entries.existing_guids(feed_with_subscribers, ["https://example.com/a"])

    def test_entries_without_identity_ignored(self, test_db, merger, feed_with_subscribers):
        """Candidates with neither guid nor url are skipped."""
        result = merge(test_db, merger, feed_with_subscribers, [candidate()])
        assert result.created_count == 0
        assert result.ignored == 1

    def test_known_entries_untouched(self, test_db, merger, feed_with_subscribers):
        """Entries are immutable once stored."""
        merge(test_db, merger, feed_with_subscribers, [candidate(guid="1", title="original")])
        merge(test_db, merger, feed_with_subscribers, [candidate(guid="1", title="edited")])

        entry_id = test_db.entries.list_for_user(1, include_read=True)[0].id
        assert test_db.get_entry(entry_id).title == "original"

    def test_missing_published_defaults_to_now(self, test_db, merger, feed_with_subscribers):
        """Undated entries take the ingestion time."""
        with test_db.transaction() as conn:
            result = merger.merge(
                conn, feed_with_subscribers, [candidate(guid="1", published=None)],
                START + timedelta(hours=5),
            )
        assert test_db.get_entry(result.created[0]).published == START + timedelta(hours=5)

    def test_same_guid_in_different_feeds(self, test_db, merger, feed_with_subscribers):
        """Identity is scoped to the feed."""
        other = test_db.feeds.add("https://other.example.com/feed.xml", "Other")
        merge(test_db, merger, feed_with_subscribers, [candidate(guid="1")])
        result = merge(test_db, merger, other, [candidate(guid="1")])
        assert result.created_count == 1

    def test_feed_without_subscribers_gets_no_states(self, test_db, merger):
        """Fan-out only reaches current subscribers."""
        feed_id = test_db.feeds.add("https://lonely.example.com/feed.xml", "Lonely")
        merge(test_db, merger, feed_id, [candidate(guid="1")])
        assert test_db.entry_states.count_states() == 0
