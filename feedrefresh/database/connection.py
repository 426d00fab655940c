"""
Database connection management and schema initialization.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class DatabaseConnection:
    """Manages database connection and schema."""

    def __init__(self, db_path: Path, busy_timeout: float = 30.0):
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    @contextmanager
    def conn(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with row factory."""
        connection = self._connect()
        try:
            yield connection
            connection.commit()
        except BaseException:
            connection.rollback()
            raise
        finally:
            connection.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Get a connection holding the write lock for its whole lifetime.

        Readers on other connections see either all of the transaction's
        writes or none of them.
        """
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE")
            yield connection
            connection.commit()
        except BaseException:
            connection.rollback()
            raise
        finally:
            connection.close()

    @contextmanager
    def use(self, connection: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """Reuse the caller's connection (and transaction), or open a short-lived one."""
        if connection is not None:
            yield connection
        else:
            with self.conn() as new_connection:
                yield new_connection

    def _init_schema(self):
        """Initialize database schema."""
        with self.conn() as connection:
            connection.execute("PRAGMA journal_mode = WAL")
            connection.executescript("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT UNIQUE NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS feeds (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    fetch_url TEXT UNIQUE NOT NULL,
                    url TEXT,
                    title TEXT NOT NULL,
                    last_fetched TIMESTAMP,
                    fetch_interval_secs INTEGER NOT NULL DEFAULT 3600,
                    failing_since TIMESTAMP,
                    available BOOLEAN NOT NULL DEFAULT TRUE,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    feed_id INTEGER NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
                    guid TEXT NOT NULL,
                    url TEXT,
                    title TEXT NOT NULL,
                    summary TEXT,
                    published TIMESTAMP NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    UNIQUE (feed_id, guid)
                );

                CREATE TABLE IF NOT EXISTS folders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    title TEXT NOT NULL COLLATE NOCASE,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (user_id, title)
                );

                -- folder_id lives here so a feed is in at most one folder per user
                CREATE TABLE IF NOT EXISTS subscriptions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    feed_id INTEGER NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
                    folder_id INTEGER REFERENCES folders(id) ON DELETE SET NULL,
                    unread_entries INTEGER NOT NULL DEFAULT 0 CHECK (unread_entries >= 0),
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    UNIQUE (user_id, feed_id)
                );

                CREATE TABLE IF NOT EXISTS entry_states (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    entry_id INTEGER NOT NULL REFERENCES entries(id) ON DELETE CASCADE,
                    read BOOLEAN NOT NULL DEFAULT FALSE,
                    UNIQUE (user_id, entry_id)
                );

                CREATE TABLE IF NOT EXISTS scheduled_jobs (
                    name TEXT PRIMARY KEY,
                    job_class TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    interval_secs INTEGER NOT NULL,
                    next_run_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                );

                CREATE TABLE IF NOT EXISTS refresh_leases (
                    feed_id INTEGER PRIMARY KEY,
                    holder TEXT NOT NULL,
                    expires_at TIMESTAMP NOT NULL
                );

                -- feed_id may only be set once the job succeeded
                CREATE TABLE IF NOT EXISTS subscribe_job_states (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    fetch_url TEXT NOT NULL CHECK (fetch_url <> ''),
                    state TEXT NOT NULL DEFAULT 'RUNNING'
                        CHECK (state IN ('RUNNING', 'SUCCESS', 'ERROR')),
                    feed_id INTEGER REFERENCES feeds(id) ON DELETE SET NULL,
                    error TEXT,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    CHECK (state = 'SUCCESS' OR feed_id IS NULL)
                );

                CREATE INDEX IF NOT EXISTS idx_entries_feed_published ON entries(feed_id, published DESC);
                CREATE INDEX IF NOT EXISTS idx_entry_states_user_read ON entry_states(user_id, read);
                CREATE INDEX IF NOT EXISTS idx_entry_states_entry ON entry_states(entry_id);
                CREATE INDEX IF NOT EXISTS idx_subscriptions_feed ON subscriptions(feed_id);
                CREATE INDEX IF NOT EXISTS idx_subscriptions_folder ON subscriptions(folder_id);
                CREATE INDEX IF NOT EXISTS idx_scheduled_jobs_due ON scheduled_jobs(next_run_at);
                CREATE INDEX IF NOT EXISTS idx_subscribe_job_states_user ON subscribe_job_states(user_id);
            """)
