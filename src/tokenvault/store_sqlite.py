"""Persistent token store backed by SQLite — survives process restarts.

Drop-in replacement for MemoryStore when you need durability, or when
several processes tokenize against the same database file.  The two
UNIQUE indexes are what keep them consistent; no other coordination
is needed.

Usage:
    store = SqliteStore("~/.tokenvault/tokens.db")
    tokenizer = Tokenizer(store, SnowflakeGenerator(worker_id=3))
"""

from __future__ import annotations
import logging
import sqlite3
import threading
from pathlib import Path

from .errors import DuplicateKeyError, StoreError
from .types import TokenRecord

logger = logging.getLogger(__name__)

# Idempotent: opening an already-initialised database is a no-op.
_SCHEMA = """
CREATE TABLE IF NOT EXISTS tokens (
    original TEXT NOT NULL,
    token TEXT NOT NULL,
    created_at REAL NOT NULL DEFAULT (julianday('now'))
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_tokens_original ON tokens(original);
CREATE UNIQUE INDEX IF NOT EXISTS idx_tokens_token ON tokens(token);
"""


class SqliteStore:
    """Durable original ↔ token store."""

    __slots__ = ("_path", "_db", "_lock")

    def __init__(self, db_path: str | Path = "tokens.db", *, timeout: float = 30.0) -> None:
        if str(db_path) == ":memory:":
            self._path = ":memory:"
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            self._path = str(path)
        self._lock = threading.Lock()
        try:
            # isolation_level=None: autocommit, each INSERT is its own transaction
            self._db = sqlite3.connect(
                self._path,
                timeout=timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            self._db.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(f"cannot open token database {self._path}: {e}") from e
        logger.debug("opened token database %s", self._path)

    @property
    def path(self) -> str:
        return self._path

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def find_by_original(self, original: str) -> TokenRecord | None:
        return self._fetch_one(
            "SELECT original, token FROM tokens WHERE original = ?", original,
        )

    def find_by_token(self, token: str) -> TokenRecord | None:
        return self._fetch_one(
            "SELECT original, token FROM tokens WHERE token = ?", token,
        )

    def insert(self, record: TokenRecord) -> None:
        try:
            with self._lock:
                self._db.execute(
                    "INSERT INTO tokens (original, token) VALUES (?, ?)",
                    (record.original, record.token),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(str(e)) from e
        except (sqlite3.Error, UnicodeEncodeError) as e:
            raise StoreError(str(e)) from e

    def _fetch_one(self, sql: str, key: str) -> TokenRecord | None:
        try:
            with self._lock:
                row = self._db.execute(sql, (key,)).fetchone()
        except (sqlite3.Error, UnicodeEncodeError) as e:
            raise StoreError(str(e)) from e
        if row is None:
            return None
        return TokenRecord(original=row[0], token=row[1])

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def count(self) -> int:
        try:
            with self._lock:
                (n,) = self._db.execute("SELECT COUNT(*) FROM tokens").fetchone()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return n

    def close(self) -> None:
        with self._lock:
            self._db.close()
