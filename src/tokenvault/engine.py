"""Tokenizer — the main API.

Usage:
    from tokenvault import Tokenizer, SqliteStore, UuidGenerator

    tokenizer = Tokenizer(SqliteStore("tokens.db"), UuidGenerator())

    token = tokenizer.tokenize("4111-1111-1111-1111")
    tokenizer.tokenize("4111-1111-1111-1111") == token     # always
    tokenizer.detokenize(token)                            # "4111-1111-1111-1111"

Concurrency is handled optimistically: there is no lock around the
lookup-then-insert.  If another caller (thread, process, host) inserts
the same original first, our insert fails the store's unique check and
we go back and read theirs.  Every caller ends up with the same token.
"""

from __future__ import annotations
import logging
import time

from .errors import (
    DeadlineExceededError,
    DuplicateKeyError,
    TokenNotFoundError,
    TooManyCollisionsError,
)
from .generator import CandidateGenerator, encode_candidate
from .store import TokenStore
from .types import TokenRecord

logger = logging.getLogger(__name__)


def _check_text(value: str, what: str) -> None:
    """Reject strings no store can persist (lone surrogates)."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValueError(f"{what} is not valid Unicode text: {e.reason}") from e


class _Deadline:
    """Absolute monotonic deadline, or none at all."""

    __slots__ = ("_expires",)

    def __init__(self, timeout: float | None) -> None:
        self._expires = None if timeout is None else time.monotonic() + timeout

    def check(self, what: str) -> None:
        if self._expires is not None and time.monotonic() >= self._expires:
            raise DeadlineExceededError(f"deadline exceeded before {what}")


class Tokenizer:
    """Replaces text with opaque tokens and recovers it again.

    Holds no state of its own, so one instance can be shared freely
    between threads.  Every call goes back to the store.

    Args:
        store: Backend enforcing unique original and unique token.
        generator: Source of candidate identifiers for new tokens.
        max_attempts: Give up with TooManyCollisionsError after this
            many conflicting inserts in one tokenize call.  None retries
            until it succeeds.
    """

    def __init__(
        self,
        store: TokenStore,
        generator: CandidateGenerator,
        *,
        max_attempts: int | None = None,
    ) -> None:
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.generator = generator
        self.max_attempts = max_attempts

    def tokenize(self, original: str, *, timeout: float | None = None) -> str:
        """Return the token for original, minting one on first use.

        Raises StoreError or GeneratorError on unrecoverable failure,
        DeadlineExceededError when timeout (seconds) runs out, and
        ValueError when original cannot be encoded as UTF-8.
        """
        _check_text(original, "original")
        deadline = _Deadline(timeout)
        conflicts = 0
        while True:
            deadline.check("lookup")
            record = self.store.find_by_original(original)
            if record is not None:
                logger.debug("existing token for %d-char original", len(original))
                return record.token

            deadline.check("candidate generation")
            token = encode_candidate(self.generator.next_candidate())

            deadline.check("insert")
            try:
                self.store.insert(TokenRecord(original=original, token=token))
            except DuplicateKeyError as e:
                # Someone else tokenized this original first, or (rarely)
                # the candidate collided with an existing token.
                conflicts += 1
                logger.debug("insert conflict #%d (%s), retrying", conflicts, e)
                if self.max_attempts is not None and conflicts >= self.max_attempts:
                    raise TooManyCollisionsError(conflicts) from e
                continue

            logger.debug("minted new token for %d-char original", len(original))
            return token

    def detokenize(self, token: str, *, timeout: float | None = None) -> str:
        """Return the original behind token.

        Raises TokenNotFoundError if the token was never issued, and
        ValueError when token cannot be encoded as UTF-8.
        """
        _check_text(token, "token")
        _Deadline(timeout).check("lookup")
        record = self.store.find_by_token(token)
        if record is None:
            logger.debug("token not found")
            raise TokenNotFoundError(token)
        return record.original
