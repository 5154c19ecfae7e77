"""Core types."""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TokenRecord:
    """A persisted original ↔ token mapping.  Never updated once stored."""
    original: str          # raw value, unique across the store
    token: str             # opaque substitute, unique across the store
