"""Pytest configuration for seq-mcp tests."""

import asyncio
import json
import os
from pathlib import Path
from typing import Any

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from seq_mcp.auth import CredentialStore
from seq_mcp.connection import SeqConnectionFactory
from seq_mcp.exceptions import ConfigurationError

READ_KEY = "read-key-0001"
INGEST_KEY = "ingest-key-0002"
SEQ_VERSION = "2024.3.11923"


@pytest.fixture(autouse=True)
def clean_seq_env(monkeypatch):
    """Keep the developer's Seq settings out of the tests."""
    for name in list(os.environ):
        if name.startswith(("SEQ_", "SKIP_ENV_FILE")):
            monkeypatch.delenv(name, raising=False)


# =============================================================================
# Credential Fixtures
# =============================================================================


class StaticCredentialStore(CredentialStore):
    """In-memory credential store for tests.

    Usage:
        store = StaticCredentialStore({"default": "abc", "prod": "def"})
        store.keys["default"] = "rotated"
    """

    def __init__(self, keys: dict[str, str] | None = None):
        self.keys = dict(keys or {"default": READ_KEY})
        self.closed = False
        self.lookups: list[str | None] = []

    def get_api_key(self, workspace: str | None) -> str:
        self.lookups.append(workspace)
        name = (workspace or "default").strip().casefold() or "default"
        if name not in self.keys:
            raise ConfigurationError(f"No API key for workspace '{name}'")
        return self.keys[name]

    def reload(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def static_store():
    """Credential store holding the fake server's read key."""
    return StaticCredentialStore()


@pytest.fixture
def write_secrets(tmp_path: Path):
    """Write a JSON credential file and return its path."""
    path = tmp_path / "secrets.json"

    def _write(content: Any) -> Path:
        text = content if isinstance(content, str) else json.dumps(content)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


# =============================================================================
# Fake Seq Server
# =============================================================================


class FakeSeq:
    """Minimal stand-in for the Seq HTTP API.

    Keys listed in ``read_keys`` get the full root document. Keys in
    ``ingest_keys`` are accepted but get a root document without the
    events link, as Seq does for keys that cannot read. Anything else
    gets ``unknown_key_status`` (200 with a cut-down root by default).

    Usage:
        seq.events = [{"Id": "event-1", ...}]
        seq.stream = [{"Id": "live-1", ...}]
        seq.fail["api/events"] = 500
    """

    def __init__(self):
        self.read_keys = {READ_KEY}
        self.ingest_keys = {INGEST_KEY}
        self.unknown_key_status = 200
        self.version = SEQ_VERSION
        self.events: list[dict[str, Any]] = []
        self.stream: list[dict[str, Any]] = []
        self.stream_delay = 0.0
        self.signals: list[dict[str, Any]] = []
        self.fail: dict[str, int] = {}
        self.requests: list[tuple[str, str | None, dict[str, str]]] = []
        self.url = ""

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api", self._root)
        app.router.add_get("/api/", self._root)
        app.router.add_get("/api/events", self._events)
        app.router.add_get("/api/events/stream", self._stream)
        app.router.add_get("/api/signals", self._signals)
        return app

    def paths(self) -> list[str]:
        return [path for path, _, _ in self.requests]

    def _record(self, request: web.Request) -> str | None:
        key = request.headers.get("X-Seq-ApiKey")
        self.requests.append((request.path.strip("/"), key, dict(request.query)))
        return key

    def _failure(self, path: str) -> web.Response | None:
        status = self.fail.get(path)
        if status:
            return web.Response(status=status, text="simulated failure")
        return None

    def _can_read(self, key: str | None) -> bool:
        return key in self.read_keys

    async def _root(self, request: web.Request) -> web.Response:
        key = self._record(request)
        failure = self._failure("api")
        if failure is not None:
            return failure

        links = {"Login": "api/users/login"}
        if self._can_read(key):
            links.update(
                {
                    "EventsResources": "api/events/resources",
                    "SignalsResources": "api/signals/resources",
                }
            )
        elif key not in self.ingest_keys and self.unknown_key_status != 200:
            return web.Response(status=self.unknown_key_status)

        return web.json_response(
            {"Product": "Seq", "Version": self.version, "Links": links}
        )

    async def _events(self, request: web.Request) -> web.Response:
        key = self._record(request)
        failure = self._failure("api/events")
        if failure is not None:
            return failure
        if not self._can_read(key):
            return web.Response(status=401)

        count = int(request.query.get("count", "30"))
        return web.json_response(self.events[:count])

    async def _signals(self, request: web.Request) -> web.Response:
        key = self._record(request)
        failure = self._failure("api/signals")
        if failure is not None:
            return failure
        if not self._can_read(key):
            return web.Response(status=401)

        signals = self.signals
        if request.query.get("shared") == "true":
            signals = [s for s in signals if s.get("OwnerId") is None]
        return web.json_response(signals)

    async def _stream(self, request: web.Request) -> web.StreamResponse:
        key = self._record(request)
        failure = self._failure("api/events/stream")
        if failure is not None:
            return failure
        if not self._can_read(key):
            return web.Response(status=401)

        ws = web.WebSocketResponse()
        await ws.prepare(request)
        for event in self.stream:
            if self.stream_delay:
                await asyncio.sleep(self.stream_delay)
            await ws.send_str(json.dumps(event))

        # Stay open until the client disconnects, like a live stream
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                break
        return ws


@pytest.fixture
async def fake_seq():
    """Start a fake Seq server and yield its controller."""
    seq = FakeSeq()
    server = TestServer(seq.app())
    await server.start_server()
    seq.url = str(server.make_url("")).rstrip("/")
    try:
        yield seq
    finally:
        await server.close()


@pytest.fixture
async def factory(fake_seq, static_store):
    """Connection factory pointed at the fake Seq server."""
    return SeqConnectionFactory(static_store, server_url=fake_seq.url, timeout=5.0)


@pytest.fixture
def make_event():
    """Factory for Seq-shaped events."""
    return build_event


def build_event(
    message: str,
    level: str = "Information",
    application: str | None = None,
    event_id: str | None = None,
) -> dict[str, Any]:
    """Build an event in the shape the Seq API returns."""
    properties = []
    if application is not None:
        properties.append({"Name": "Application", "Value": application})
    return {
        "Id": event_id or f"event-{abs(hash(message)) % 10000}",
        "Timestamp": "2025-01-15T10:30:00.0000000Z",
        "Level": level,
        "RenderedMessage": message,
        "Properties": properties,
    }
