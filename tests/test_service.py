"""Tests for the wrappers around the engine — config, CLI and HTTP sidecar."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import http.client
import json
import threading
import urllib.error
import urllib.request

import pytest

from tokenvault import MemoryStore, SnowflakeGenerator, SqliteStore, Tokenizer, UuidGenerator
from tokenvault.cli import main
from tokenvault.config import create_tokenizer, load_config, load_from_yaml
from tokenvault.errors import StoreError
from tokenvault.server import TokenServer


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("TOKENVAULT_DB", "TOKENVAULT_WORKER_ID", "TOKENVAULT_DATACENTER_ID"):
        monkeypatch.delenv(key, raising=False)


# ── Config ───────────────────────────────────────────────────────────

def test_config_defaults():
    cfg = load_config({})
    assert cfg["store_backend"] == "sqlite"
    assert cfg["generator_kind"] == "uuid"
    assert cfg["max_attempts"] is None
    assert cfg["timeout"] is None


def test_config_nested_and_flat_agree():
    flat = {"store": {"backend": "memory"}, "generator": {"kind": "snowflake", "worker_id": 4}}
    assert load_config({"tokenvault": flat}) == load_config(flat)


def test_config_env_overrides(monkeypatch):
    monkeypatch.setenv("TOKENVAULT_DB", "/tmp/elsewhere.db")
    monkeypatch.setenv("TOKENVAULT_WORKER_ID", "9")
    cfg = load_config({"store": {"path": "here.db"}, "generator": {"worker_id": 1}})
    assert cfg["store_path"] == "/tmp/elsewhere.db"
    assert cfg["worker_id"] == 9


def test_config_rejects_unknown_backend():
    with pytest.raises(ValueError):
        load_config({"store": {"backend": "mongo"}})
    with pytest.raises(ValueError):
        load_config({"generator": {"kind": "sequential"}})


def test_load_from_yaml(tmp_path):
    path = tmp_path / "tokenvault.yaml"
    path.write_text(
        "tokenvault:\n"
        "  store:\n"
        "    backend: memory\n"
        "  generator:\n"
        "    kind: snowflake\n"
        "    datacenter_id: 1\n"
        "    worker_id: 2\n"
        "  max_attempts: 50\n"
        "  timeout: 2.5\n"
    )
    cfg = load_from_yaml(path)
    assert cfg["store_backend"] == "memory"
    assert cfg["datacenter_id"] == 1
    assert cfg["max_attempts"] == 50
    assert cfg["timeout"] == 2.5


def test_config_converts_numeric_strings():
    cfg = load_config({"max_attempts": "3", "timeout": "1.5"})
    assert cfg["max_attempts"] == 3
    assert cfg["timeout"] == 1.5
    with pytest.raises(ValueError):
        load_config({"max_attempts": "many"})


def test_create_tokenizer_from_config(tmp_path):
    tokenizer = create_tokenizer({
        "store": {"backend": "sqlite", "path": str(tmp_path / "t.db")},
        "generator": {"kind": "snowflake", "worker_id": 3},
        "max_attempts": 10,
    })
    assert isinstance(tokenizer.store, SqliteStore)
    assert isinstance(tokenizer.generator, SnowflakeGenerator)
    assert tokenizer.generator.worker_id == 3
    assert tokenizer.max_attempts == 10
    token = tokenizer.tokenize("configured")
    assert tokenizer.detokenize(token) == "configured"
    tokenizer.store.close()


def test_create_tokenizer_memory():
    tokenizer = create_tokenizer({"store": {"backend": "memory"}})
    assert isinstance(tokenizer.store, MemoryStore)
    assert isinstance(tokenizer.generator, UuidGenerator)


# ── CLI ──────────────────────────────────────────────────────────────

def test_cli_round_trip(tmp_path, capsys):
    db = str(tmp_path / "cli.db")
    assert main(["--db", db, "tokenize", "hello"]) == 0
    token = capsys.readouterr().out.strip()

    assert main(["--db", db, "tokenize", "hello"]) == 0
    assert capsys.readouterr().out.strip() == token

    assert main(["--db", db, "detokenize", token]) == 0
    assert capsys.readouterr().out == "hello\n"

    assert main(["--db", db, "count"]) == 0
    assert capsys.readouterr().out == "1\n"


def test_cli_reads_stdin(tmp_path, capsys, monkeypatch):
    import io
    db = str(tmp_path / "cli.db")
    monkeypatch.setattr(sys, "stdin", io.StringIO("from stdin"))
    assert main(["--db", db, "tokenize"]) == 0
    token = capsys.readouterr().out.strip()
    assert SqliteStore(db).find_by_token(token).original == "from stdin"


def test_cli_unknown_token(tmp_path, capsys):
    db = str(tmp_path / "cli.db")
    assert main(["--db", db, "detokenize", "doesNotExist"]) == 1
    assert "not found" in capsys.readouterr().err.lower()


def test_cli_bad_config(tmp_path, capsys):
    path = tmp_path / "bad.yaml"
    path.write_text("store:\n  backend: mongo\n")
    assert main(["--config", str(path), "count"]) == 2
    assert "unknown store backend" in capsys.readouterr().err


def test_cli_quoted_numbers_in_config(tmp_path, capsys):
    path = tmp_path / "quoted.yaml"
    db = tmp_path / "quoted.db"
    path.write_text(f"store:\n  path: {db}\nmax_attempts: \"3\"\ntimeout: \"10\"\n")
    assert main(["--config", str(path), "tokenize", "hello"]) == 0
    assert capsys.readouterr().out.strip()

    path.write_text(f"store:\n  path: {db}\nmax_attempts: lots\n")
    assert main(["--config", str(path), "count"]) == 2
    assert "error:" in capsys.readouterr().err


# ── HTTP sidecar ─────────────────────────────────────────────────────

@pytest.fixture
def server():
    srv = TokenServer(("127.0.0.1", 0), Tokenizer(MemoryStore(), UuidGenerator()))
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield srv
    srv.shutdown()
    srv.server_close()


def _call(server, method, path, body=None):
    host, port = server.server_address
    data = None if body is None else (body if isinstance(body, bytes) else json.dumps(body).encode())
    req = urllib.request.Request(f"http://{host}:{port}{path}", data=data, method=method)
    req.add_header("Content-Type", "application/json")
    try:
        with urllib.request.urlopen(req, timeout=10) as resp:
            return resp.status, json.loads(resp.read())
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read())


def test_http_round_trip(server):
    status, data = _call(server, "POST", "/tokenize", {"original": "hello"})
    assert status == 200
    token = data["token"]

    status, data = _call(server, "POST", "/tokenize", {"original": "hello"})
    assert data["token"] == token

    status, data = _call(server, "POST", "/detokenize", {"token": token})
    assert status == 200
    assert data["original"] == "hello"


def test_http_health(server):
    _call(server, "POST", "/tokenize", {"original": "one"})
    status, data = _call(server, "GET", "/health")
    assert status == 200
    assert data == {"status": "ok", "tokens": 1}


def test_http_unknown_token(server):
    status, data = _call(server, "POST", "/detokenize", {"token": "doesNotExist"})
    assert status == 404


def test_http_bad_requests(server):
    assert _call(server, "POST", "/tokenize", {"text": "wrong field"})[0] == 400
    assert _call(server, "POST", "/tokenize", {"original": 42})[0] == 400
    assert _call(server, "POST", "/tokenize", b"not json")[0] == 400
    assert _call(server, "POST", "/tokenize", b"\xff\xfe")[0] == 400
    assert _call(server, "POST", "/tokenize", {"original": "\ud800"})[0] == 400
    assert _call(server, "POST", "/detokenize", {"token": "\udfff"})[0] == 400
    assert _call(server, "POST", "/nowhere", {})[0] == 404
    assert _call(server, "GET", "/nowhere")[0] == 404


def test_http_bad_content_length(server):
    host, port = server.server_address
    for length in ("abc", "-5"):
        conn = http.client.HTTPConnection(host, port, timeout=10)
        conn.putrequest("POST", "/tokenize")
        conn.putheader("Content-Type", "application/json")
        conn.putheader("Content-Length", length)
        conn.endheaders()
        resp = conn.getresponse()
        assert resp.status == 400
        assert "Content-Length" in json.loads(resp.read())["error"]
        conn.close()


def test_http_store_failure(server):
    class DownStore(MemoryStore):
        def find_by_original(self, original):
            raise StoreError("connection refused")

    server.tokenizer = Tokenizer(DownStore(), UuidGenerator())
    status, data = _call(server, "POST", "/tokenize", {"original": "hello"})
    assert status == 500
    assert "connection refused" in data["error"]


def test_http_deadline(server):
    server.timeout_seconds = 0
    status, _ = _call(server, "POST", "/tokenize", {"original": "hello"})
    assert status == 504


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
