"""tokenvault — replace text with opaque tokens, safely under concurrency."""

from .engine import Tokenizer
from .store import MemoryStore, TokenStore
from .store_sqlite import SqliteStore
from .generator import CandidateGenerator, SnowflakeGenerator, UuidGenerator, encode_candidate
from .config import create_tokenizer, load_config, load_from_yaml
from .errors import (
    DeadlineExceededError,
    DuplicateKeyError,
    GeneratorError,
    StoreError,
    TokenNotFoundError,
    TokenizerError,
    TooManyCollisionsError,
)
from .types import TokenRecord

__all__ = [
    "Tokenizer",
    "TokenStore", "MemoryStore", "SqliteStore",
    "CandidateGenerator", "UuidGenerator", "SnowflakeGenerator", "encode_candidate",
    "create_tokenizer", "load_config", "load_from_yaml",
    "TokenizerError", "StoreError", "DuplicateKeyError", "GeneratorError",
    "TokenNotFoundError", "TooManyCollisionsError", "DeadlineExceededError",
    "TokenRecord",
]
__version__ = "0.1.0"
