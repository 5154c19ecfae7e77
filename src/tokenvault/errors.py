"""Exception taxonomy for tokenvault.

Only DuplicateKeyError is handled inside the engine (it drives the
retry loop).  Everything else reaches the caller unchanged.
"""

from __future__ import annotations


class TokenizerError(Exception):
    """Base class for all tokenvault errors."""


class StoreError(TokenizerError):
    """The token store failed (unreachable, corrupt, misconfigured...)."""


class DuplicateKeyError(StoreError):
    """An insert violated the unique original or unique token constraint."""


class GeneratorError(TokenizerError):
    """The candidate generator could not produce an identifier."""


class TokenNotFoundError(TokenizerError, KeyError):
    """Detokenize was given a token that is not in the store."""

    def __init__(self, token: str) -> None:
        super().__init__(token)
        self.token = token

    def __str__(self) -> str:
        return "token not found"


class TooManyCollisionsError(TokenizerError):
    """Tokenize gave up after max_attempts conflicting inserts."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"gave up after {attempts} conflicting inserts")
        self.attempts = attempts


class DeadlineExceededError(TokenizerError, TimeoutError):
    """The caller-supplied timeout expired before the operation finished."""
