"""HTTP sidecar server for tokenvault.

A small JSON-over-HTTP wrapper so other services can tokenize without
linking the library.  Threaded: the tokenizer is stateless, and the
store's unique keys sort out concurrent requests.

Endpoints:
    POST /tokenize        {"original": "..."}  → {"token": "..."}
    POST /detokenize      {"token": "..."}     → {"original": "..."}   (404 if unknown)
    GET  /health                               → {"status": "ok", "tokens": n}
"""

from __future__ import annotations
import json
import logging
import os
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from .config import create_tokenizer, load_config, load_from_yaml
from .engine import Tokenizer
from .errors import DeadlineExceededError, TokenNotFoundError, TokenizerError

logger = logging.getLogger(__name__)

DEFAULT_PORT = int(os.environ.get("TOKENVAULT_PORT", "18792"))


class _BadRequest(Exception):
    pass


class TokenHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the tokenvault sidecar."""

    server: "TokenServer"

    def _read_json(self) -> dict[str, Any]:
        try:
            length = int(self.headers.get("Content-Length", 0))
        except ValueError as e:
            raise _BadRequest("invalid Content-Length") from e
        if length < 0:
            raise _BadRequest("invalid Content-Length")
        try:
            body = self.rfile.read(length).decode("utf-8")
            data = json.loads(body) if body else {}
        except UnicodeDecodeError as e:
            raise _BadRequest("body is not valid UTF-8") from e
        except json.JSONDecodeError as e:
            raise _BadRequest(f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise _BadRequest("expected a JSON object")
        return data

    def _field(self, body: dict[str, Any], name: str) -> str:
        value = body.get(name)
        if not isinstance(value, str):
            raise _BadRequest(f"'{name}' must be a string")
        return value

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.info("%s %s", self.address_string(), format % args)

    def do_GET(self) -> None:
        if self.path == "/health":
            try:
                self._respond(200, {"status": "ok", "tokens": self.server.tokenizer.store.count()})
            except TokenizerError as e:
                logger.error("health check failed: %s", e)
                self._respond(500, {"status": "error", "error": str(e)})
        else:
            self._respond(404, {"error": "not found"})

    def do_POST(self) -> None:
        tokenizer = self.server.tokenizer
        timeout = self.server.timeout_seconds
        try:
            if self.path == "/tokenize":
                original = self._field(self._read_json(), "original")
                self._respond(200, {"token": tokenizer.tokenize(original, timeout=timeout)})

            elif self.path == "/detokenize":
                token = self._field(self._read_json(), "token")
                self._respond(200, {"original": tokenizer.detokenize(token, timeout=timeout)})

            else:
                self._respond(404, {"error": "not found"})

        except (_BadRequest, ValueError) as e:
            self._respond(400, {"error": str(e)})
        except TokenNotFoundError as e:
            self._respond(404, {"error": str(e)})
        except DeadlineExceededError as e:
            self._respond(504, {"error": str(e)})
        except TokenizerError as e:
            logger.error("%s failed: %s", self.path, e)
            self._respond(500, {"error": str(e)})


class TokenServer(ThreadingHTTPServer):
    """HTTP server carrying the shared tokenizer for its handlers."""

    daemon_threads = True

    def __init__(
        self,
        address: tuple[str, int],
        tokenizer: Tokenizer,
        *,
        timeout: float | None = None,
    ) -> None:
        super().__init__(address, TokenHandler)
        self.tokenizer = tokenizer
        self.timeout_seconds = timeout


def serve(port: int = DEFAULT_PORT, config: dict[str, Any] | None = None) -> None:
    """Start the tokenvault HTTP sidecar."""
    cfg = config if config is not None else load_config()
    tokenizer = create_tokenizer(cfg)
    server = TokenServer(("127.0.0.1", port), tokenizer, timeout=cfg["timeout"])
    logger.info("tokenvault sidecar listening on http://127.0.0.1:%d", port)
    logger.info("store: %s (%s)", cfg["store_backend"], cfg["store_path"])
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("shutting down")
    finally:
        server.server_close()
        tokenizer.store.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="tokenvault HTTP sidecar")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--db", default=None)
    parser.add_argument("--config", default=None, help="YAML config file")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    cfg = load_from_yaml(args.config) if args.config else load_config()
    if args.db:
        cfg["store_backend"] = "sqlite"
        cfg["store_path"] = args.db
    serve(port=args.port, config=cfg)
