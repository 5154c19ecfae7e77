"""Token store — durable original ↔ token mapping with two unique keys.

Every backend must make ``insert`` atomic with respect to both keys: two
concurrent inserts sharing an original or a token can never both succeed.
The engine's retry loop relies on that and nothing else.

Lookups return ``None`` for a miss.  ``insert`` raises DuplicateKeyError
on a unique-key violation and StoreError for any other failure.
"""

from __future__ import annotations
import threading
from typing import Protocol, runtime_checkable

from .errors import DuplicateKeyError
from .types import TokenRecord


@runtime_checkable
class TokenStore(Protocol):
    """What the engine needs from a storage backend."""

    def find_by_original(self, original: str) -> TokenRecord | None: ...

    def find_by_token(self, token: str) -> TokenRecord | None: ...

    def insert(self, record: TokenRecord) -> None: ...

    def count(self) -> int: ...

    def close(self) -> None: ...


class MemoryStore:
    """In-process store: two dicts behind one lock.

    Safe across threads, not across processes.  Use SqliteStore when
    several processes must agree on tokens.
    """

    __slots__ = ("_by_original", "_by_token", "_lock")

    def __init__(self) -> None:
        self._by_original: dict[str, TokenRecord] = {}
        self._by_token: dict[str, TokenRecord] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def find_by_original(self, original: str) -> TokenRecord | None:
        with self._lock:
            return self._by_original.get(original)

    def find_by_token(self, token: str) -> TokenRecord | None:
        with self._lock:
            return self._by_token.get(token)

    def insert(self, record: TokenRecord) -> None:
        """Insert both keys or neither."""
        with self._lock:
            if record.original in self._by_original:
                raise DuplicateKeyError("duplicate original")
            if record.token in self._by_token:
                raise DuplicateKeyError("duplicate token")
            self._by_original[record.original] = record
            self._by_token[record.token] = record

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def count(self) -> int:
        with self._lock:
            return len(self._by_token)

    def close(self) -> None:
        pass
