"""Candidate generators — effectively-unique identifiers for new tokens.

Collisions need not be impossible: a colliding candidate fails the
store's unique-token check and the engine simply tries again.  They
should be rare enough that this never matters in practice.

Token format: base64 of the identifier's text, e.g.
    "4738294819283746" → "NDczODI5NDgxOTI4Mzc0Ng=="
"""

from __future__ import annotations
import base64
import threading
import time
import uuid
from typing import Callable, Protocol, runtime_checkable

from .errors import GeneratorError


@runtime_checkable
class CandidateGenerator(Protocol):
    def next_candidate(self) -> str: ...


def encode_candidate(identifier: str) -> str:
    """Printable token form of a candidate identifier."""
    return base64.b64encode(identifier.encode("utf-8")).decode("ascii")


class UuidGenerator:
    """Random 122-bit identifiers (uuid4)."""

    def next_candidate(self) -> str:
        return uuid.uuid4().hex


# Snowflake layout: 41 bits ms timestamp | 5 datacenter | 5 worker | 12 sequence
EPOCH_MS = 1288834974657
_DATACENTER_BITS = 5
_WORKER_BITS = 5
_SEQUENCE_BITS = 12
MAX_DATACENTER_ID = (1 << _DATACENTER_BITS) - 1
MAX_WORKER_ID = (1 << _WORKER_BITS) - 1
_SEQUENCE_MASK = (1 << _SEQUENCE_BITS) - 1
_WORKER_SHIFT = _SEQUENCE_BITS
_DATACENTER_SHIFT = _SEQUENCE_BITS + _WORKER_BITS
_TIMESTAMP_SHIFT = _SEQUENCE_BITS + _WORKER_BITS + _DATACENTER_BITS


class SnowflakeGenerator:
    """Time-ordered 64-bit ids, unique per (datacenter_id, worker_id).

    Give every tokenizer process its own worker id and candidates never
    collide, even between processes that share nothing but the store.
    """

    __slots__ = ("datacenter_id", "worker_id", "_clock", "_lock", "_last_ms", "_sequence")

    def __init__(
        self,
        datacenter_id: int = 0,
        worker_id: int = 0,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not 0 <= datacenter_id <= MAX_DATACENTER_ID:
            raise ValueError(f"datacenter_id must be in 0..{MAX_DATACENTER_ID}")
        if not 0 <= worker_id <= MAX_WORKER_ID:
            raise ValueError(f"worker_id must be in 0..{MAX_WORKER_ID}")
        self.datacenter_id = datacenter_id
        self.worker_id = worker_id
        self._clock = clock
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def next_id(self) -> int:
        with self._lock:
            now = self._now_ms()
            if now < self._last_ms:
                raise GeneratorError(
                    f"clock moved backwards by {self._last_ms - now} ms"
                )
            if now == self._last_ms:
                self._sequence = (self._sequence + 1) & _SEQUENCE_MASK
                if self._sequence == 0:
                    # Sequence exhausted for this millisecond
                    while now <= self._last_ms:
                        now = self._now_ms()
            else:
                self._sequence = 0
            self._last_ms = now

            elapsed = now - EPOCH_MS
            if elapsed < 0 or elapsed >> 41:
                raise GeneratorError("clock outside the representable id range")
            return (
                (elapsed << _TIMESTAMP_SHIFT)
                | (self.datacenter_id << _DATACENTER_SHIFT)
                | (self.worker_id << _WORKER_SHIFT)
                | self._sequence
            )

    def next_candidate(self) -> str:
        return str(self.next_id())
