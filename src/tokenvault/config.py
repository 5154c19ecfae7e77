"""YAML/dict config loader for tokenvault.

Supports loading from a YAML file or a plain dict (for embedding
in a larger service config).  Environment variables override both.

Example YAML:

    tokenvault:
      store:
        backend: sqlite          # "memory" or "sqlite"
        path: ~/.tokenvault/tokens.db
      generator:
        kind: snowflake          # "uuid" or "snowflake"
        datacenter_id: 0
        worker_id: 3
      max_attempts: 100          # omit for unlimited retries
      timeout: 5.0               # seconds per call, omit for none
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Callable

import yaml

from .engine import Tokenizer
from .generator import CandidateGenerator, SnowflakeGenerator, UuidGenerator
from .store import MemoryStore, TokenStore
from .store_sqlite import SqliteStore


DEFAULT_DB = str(Path.home() / ".tokenvault" / "tokens.db")

STORE_BACKENDS = ("memory", "sqlite")
GENERATOR_KINDS = ("uuid", "snowflake")


def _optional(value: Any, convert: Callable[[Any], Any]) -> Any:
    return None if value is None else convert(value)


def load_config(data: dict[str, Any] | None = None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline) and apply env overrides."""
    data = data or {}
    # Support nested under "tokenvault" key or flat
    if "tokenvault" in data:
        data = data["tokenvault"] or {}

    store = data.get("store") or {}
    gen = data.get("generator") or {}
    cfg = {
        "store_backend": store.get("backend", "sqlite"),
        "store_path": store.get("path", DEFAULT_DB),
        "generator_kind": gen.get("kind", "uuid"),
        "datacenter_id": int(gen.get("datacenter_id", 0)),
        "worker_id": int(gen.get("worker_id", 0)),
        "max_attempts": _optional(data.get("max_attempts"), int),
        "timeout": _optional(data.get("timeout"), float),
    }

    if os.environ.get("TOKENVAULT_DB"):
        cfg["store_path"] = os.environ["TOKENVAULT_DB"]
    if os.environ.get("TOKENVAULT_DATACENTER_ID"):
        cfg["datacenter_id"] = int(os.environ["TOKENVAULT_DATACENTER_ID"])
    if os.environ.get("TOKENVAULT_WORKER_ID"):
        cfg["worker_id"] = int(os.environ["TOKENVAULT_WORKER_ID"])

    if cfg["store_backend"] not in STORE_BACKENDS:
        raise ValueError(f"unknown store backend: {cfg['store_backend']!r}")
    if cfg["generator_kind"] not in GENERATOR_KINDS:
        raise ValueError(f"unknown generator kind: {cfg['generator_kind']!r}")
    return cfg


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    with open(path) as f:
        return load_config(yaml.safe_load(f))


def create_store(cfg: dict[str, Any]) -> TokenStore:
    if cfg["store_backend"] == "memory":
        return MemoryStore()
    return SqliteStore(cfg["store_path"])


def create_generator(cfg: dict[str, Any]) -> CandidateGenerator:
    if cfg["generator_kind"] == "snowflake":
        return SnowflakeGenerator(cfg["datacenter_id"], cfg["worker_id"])
    return UuidGenerator()


def create_tokenizer(config: dict[str, Any] | None = None) -> Tokenizer:
    """Create a fully configured tokenizer from a config dict."""
    cfg = config if config is not None and "store_backend" in config else load_config(config)
    return Tokenizer(
        create_store(cfg),
        create_generator(cfg),
        max_attempts=cfg["max_attempts"],
    )
