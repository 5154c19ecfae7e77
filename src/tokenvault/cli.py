"""CLI interface for tokenvault.

Usage:
    # Tokenize (argument or stdin, prints the token)
    python -m tokenvault.cli tokenize "4111-1111-1111-1111"
    echo -n "4111-1111-1111-1111" | python -m tokenvault.cli tokenize

    # Detokenize
    python -m tokenvault.cli detokenize NDczODI5NDgxOTI4Mzc0Ng==

    # Number of stored tokens
    python -m tokenvault.cli count

All state is persisted in SQLite, so tokens are stable across calls.
"""

from __future__ import annotations
import argparse
import logging
import sys

from .config import create_tokenizer, load_config, load_from_yaml
from .errors import TokenNotFoundError, TokenizerError


def _read_arg(value: str | None) -> str:
    if value is not None:
        return value
    return sys.stdin.read()


def _build_config(args: argparse.Namespace) -> dict:
    cfg = load_from_yaml(args.config) if args.config else load_config()
    if args.db:
        cfg["store_backend"] = "sqlite"
        cfg["store_path"] = args.db
    if args.timeout is not None:
        cfg["timeout"] = args.timeout
    return cfg


def cmd_tokenize(args: argparse.Namespace, cfg: dict) -> int:
    """Print the token for TEXT (or stdin)."""
    tokenizer = create_tokenizer(cfg)
    try:
        token = tokenizer.tokenize(_read_arg(args.text), timeout=cfg["timeout"])
    finally:
        tokenizer.store.close()
    sys.stdout.write(token + "\n")
    return 0


def cmd_detokenize(args: argparse.Namespace, cfg: dict) -> int:
    """Print the original behind TOKEN (or stdin)."""
    tokenizer = create_tokenizer(cfg)
    try:
        original = tokenizer.detokenize(_read_arg(args.token).strip(), timeout=cfg["timeout"])
    except TokenNotFoundError:
        sys.stderr.write("Token not found\n")
        return 1
    finally:
        tokenizer.store.close()
    sys.stdout.write(original)
    if not original.endswith("\n"):
        sys.stdout.write("\n")
    return 0


def cmd_count(args: argparse.Namespace, cfg: dict) -> int:
    """Print the number of stored tokens."""
    tokenizer = create_tokenizer(cfg)
    try:
        sys.stdout.write(f"{tokenizer.store.count()}\n")
    finally:
        tokenizer.store.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tokenvault",
        description="Replace text with opaque tokens and back",
    )
    parser.add_argument("--db", default=None, help="SQLite token database path")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--timeout", type=float, default=None, help="Per-call timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    p = sub.add_parser("tokenize", help="Tokenize TEXT (or stdin)")
    p.add_argument("text", nargs="?")
    p = sub.add_parser("detokenize", help="Recover the original for TOKEN (or stdin)")
    p.add_argument("token", nargs="?")
    sub.add_parser("count", help="Number of stored tokens")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    cmds = {
        "tokenize": cmd_tokenize,
        "detokenize": cmd_detokenize,
        "count": cmd_count,
    }
    try:
        return cmds[args.command](args, _build_config(args))
    except (TokenizerError, ValueError) as e:
        sys.stderr.write(f"error: {e}\n")
        return 2


if __name__ == "__main__":
    sys.exit(main())
