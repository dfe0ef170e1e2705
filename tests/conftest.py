"""
Shared pytest fixtures.

Every test gets its own data directory under tmp_path. Network access is
replaced with httpx.MockTransport stubs that record their calls.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx
import pytest

from reference_notes_assistant.config import AppConfig
from reference_notes_assistant.ingest import WebImporter
from reference_notes_assistant.kvstore import KeyValueStore
from reference_notes_assistant.query import QueryDispatcher
from reference_notes_assistant.store import RecordStore


def completion_body(content: Any) -> Dict[str, Any]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    }


class StubLLM:
    """Chat completions endpoint stub; records every request it sees."""

    def __init__(self, content: str = "stub answer"):
        self.requests: list[httpx.Request] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(200, json=completion_body(content))
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handle))


class StubWeb:
    """Serves canned pages by URL; unknown URLs are 404."""

    def __init__(self):
        self.pages: Dict[str, httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, body: bytes, status: int = 200) -> None:
        self.pages[url] = httpx.Response(status, content=body)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.pages.get(str(request.url), httpx.Response(404, content=b"not found"))

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handle))


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def cfg(data_dir: Path) -> AppConfig:
    return AppConfig(data_dir=data_dir)


@pytest.fixture
def kv(cfg: AppConfig) -> KeyValueStore:
    return KeyValueStore(cfg.preferences_path)


@pytest.fixture
def store(cfg: AppConfig, kv: KeyValueStore) -> RecordStore:
    return RecordStore(kv, cfg.notes_dir, cfg.web_imports_dir)


@pytest.fixture
def llm() -> StubLLM:
    return StubLLM()


@pytest.fixture
def web() -> StubWeb:
    return StubWeb()


@pytest.fixture
def api_key() -> Dict[str, Optional[str]]:
    """Mutable holder so tests can clear the key."""
    return {"value": "sk-test"}


@pytest.fixture
def dispatcher(cfg: AppConfig, llm: StubLLM, api_key: Dict[str, Optional[str]]) -> QueryDispatcher:
    return QueryDispatcher(cfg, lambda: api_key["value"], http_client=llm.client())


@pytest.fixture
def importer(store: RecordStore, web: StubWeb) -> WebImporter:
    return WebImporter(store, http_client=web.client())
