"""TTL-based result cache for the tool layer (discover, extract, verify).

Uses SQLite for persistence across restarts. Entries are keyed by result
kind plus the normalized URL, so ``https://Example.com/docs/`` and
``https://example.com/docs`` share an entry.

The discovery and parsing modules never touch this cache; the server
owns it for the lifetime of the process.
"""

import hashlib
import sqlite3
import time
from pathlib import Path

from loguru import logger

from llms_forge.sources.urls import normalize_url_key

KINDS = ("discover", "extract", "verify")

# Purge expired entries every N writes
_PURGE_INTERVAL = 50


def _cache_key(kind: str, url: str) -> str:
    """Deterministic key from result kind + normalized URL."""
    return hashlib.sha256(f"{kind}:{normalize_url_key(url)}".encode()).hexdigest()


class ResultCache:
    """SQLite-backed TTL cache of serialized tool results."""

    def __init__(self, db_path: Path, ttl: int = 300):
        self._db_path = db_path
        self._ttl = ttl
        self._op_count = 0

        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA busy_timeout = 5000")

        self._create_tables()
        logger.debug(f"ResultCache initialized at {db_path}")

    def _create_tables(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS results (
                key TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                url TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL,
                hit_count INTEGER NOT NULL DEFAULT 0
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_results_expires
            ON results(expires_at)
        """)
        self._conn.commit()

    def get(self, kind: str, url: str) -> str | None:
        """Get the cached result if present and not expired."""
        key = _cache_key(kind, url)
        row = self._conn.execute(
            "SELECT content FROM results WHERE key = ? AND expires_at > ?",
            (key, time.time()),
        ).fetchone()

        if row:
            self._conn.execute(
                "UPDATE results SET hit_count = hit_count + 1 WHERE key = ?", (key,)
            )
            self._conn.commit()
            logger.debug(f"Cache HIT: {kind} {url}")
            return row["content"]

        logger.debug(f"Cache MISS: {kind} {url}")
        return None

    def set(self, kind: str, url: str, content: str) -> None:
        """Store a result with the configured TTL."""
        now = time.time()
        self._conn.execute(
            """INSERT OR REPLACE INTO results
               (key, kind, url, content, created_at, expires_at, hit_count)
               VALUES (?, ?, ?, ?, ?, ?, 0)""",
            (
                _cache_key(kind, url),
                kind,
                normalize_url_key(url),
                content,
                now,
                now + self._ttl,
            ),
        )
        self._conn.commit()
        logger.debug(f"Cache SET: {kind} {url} TTL={self._ttl}s")

        self._op_count += 1
        if self._op_count >= _PURGE_INTERVAL:
            self._purge_expired()
            self._op_count = 0

    def _purge_expired(self) -> None:
        cursor = self._conn.execute(
            "DELETE FROM results WHERE expires_at <= ?", (time.time(),)
        )
        if cursor.rowcount > 0:
            self._conn.commit()
            logger.debug(f"Purged {cursor.rowcount} expired cache entries")

    def clear(self, kind: str | None = None) -> int:
        """Clear entries, optionally only those of one kind."""
        if kind:
            cursor = self._conn.execute("DELETE FROM results WHERE kind = ?", (kind,))
        else:
            cursor = self._conn.execute("DELETE FROM results")
        self._conn.commit()
        return cursor.rowcount

    def stats(self) -> dict:
        """Per-kind totals, active (unexpired) counts and hits."""
        rows = self._conn.execute(
            """
            SELECT kind,
                   COUNT(*) as total,
                   SUM(CASE WHEN expires_at > ? THEN 1 ELSE 0 END) as active,
                   SUM(hit_count) as total_hits
            FROM results
            GROUP BY kind
        """,
            (time.time(),),
        ).fetchall()
        return {
            row["kind"]: {
                "total": row["total"],
                "active": row["active"],
                "hits": row["total_hits"],
            }
            for row in rows
        }

    def close(self) -> None:
        try:
            self._conn.close()
        except sqlite3.Error as e:
            logger.debug(f"Error closing cache: {e}")
