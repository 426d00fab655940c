"""
Entry merger: deduplicate fetched entries against a feed's stored entries.

New entries are inserted and fanned out as unread states to every current
subscriber. Known entries are left untouched. Merging the same batch twice
creates nothing the second time.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime

from ..database import Database
from ..feed_parser import CandidateEntry

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    created: list[int]
    ignored: int = 0

    @property
    def created_count(self) -> int:
        return len(self.created)


class EntryMerger:
    """Merges candidate entries into a feed inside the caller's transaction."""

    def __init__(self, db: Database):
        self.db = db

    def merge(
        self,
        conn: sqlite3.Connection,
        feed_id: int,
        candidates: list[CandidateEntry],
        now: datetime,
    ) -> MergeResult:
        created: list[int] = []
        ignored = 0

        # Identity key -> candidate, first occurrence wins
        unique: dict[str, CandidateEntry] = {}
        for candidate in candidates:
            key = candidate.identity
            if not key or key in unique:
                ignored += 1
                continue
            unique[key] = candidate

        known = self.db.entries.existing_guids(feed_id, list(unique), conn=conn)
        ignored += len(known)

        for key, candidate in unique.items():
            if key in known:
                continue

            entry_id = self.db.entries.add(
                feed_id,
                guid=key,
                title=candidate.title,
                published=candidate.published or now,
                created_at=now,
                url=candidate.url,
                summary=candidate.summary,
                conn=conn,
            )
            if entry_id is None:
                # Inserted concurrently since existing_guids ran
                ignored += 1
                continue

            self.db.entry_states.fan_out_entry(entry_id, feed_id, conn=conn)
            created.append(entry_id)

        if created:
            logger.debug(f"Feed {feed_id}: merged {len(created)} new entries, ignored {ignored}")
        return MergeResult(created=created, ignored=ignored)
