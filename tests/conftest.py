"""Shared test fixtures for clipcode tests."""

import asyncio
import json

import pytest

from clipcode.adapters.schema import ChatTask


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

MOCK_HOST = "http://ollama.test:11434"

MOCK_MODEL_1 = "llama3.2:3b"
MOCK_MODEL_2 = "qwen2.5-coder:7b"
MOCK_MODELS = [MOCK_MODEL_1, MOCK_MODEL_2]

MOCK_TAGS_RESPONSE = {
    "models": [
        {
            "name": MOCK_MODEL_1,
            "model": MOCK_MODEL_1,
            "modified_at": "2024-10-01T12:00:00Z",
            "size": 2019393189,
            "digest": "a80c4f17acd5",
        },
        {
            "name": MOCK_MODEL_2,
            "model": MOCK_MODEL_2,
            "modified_at": "2024-10-02T12:00:00Z",
            "size": 4683087332,
            "digest": "2b0496514337",
        },
    ]
}

MOCK_FRAGMENTS = ["He", "llo", "!"]


def chat_record(content: str, done: bool = False) -> dict:
    """One /api/chat streaming record."""
    record = {
        "model": MOCK_MODEL_1,
        "created_at": "2024-10-01T12:00:00Z",
        "message": {"role": "assistant", "content": content},
        "done": done,
    }
    if done:
        record["done_reason"] = "stop"
    return record


def ndjson_stream(fragments: list[str]) -> str:
    """Build an NDJSON body: one record per fragment plus the final done record."""
    lines = [json.dumps(chat_record(f)) for f in fragments]
    lines.append(json.dumps(chat_record("", done=True)))
    return "\n".join(lines) + "\n"


# ─────────────────────────────────────────────────────────────────────
# FAKE ADAPTER
# ─────────────────────────────────────────────────────────────────────

class FakeAdapter:
    """
    In-memory HostAdapter.

    Streams `fragments`, then raises `fail_with` (if set) after
    `fail_after` fragments. Records every task and whether streams
    were closed.
    """

    def __init__(self, fragments=None, fail_with=None, fail_after=None,
                 models=None, list_error=None):
        self.fragments = list(fragments or [])
        self.fail_with = fail_with
        self.fail_after = len(self.fragments) if fail_after is None else fail_after
        self.models = list(MOCK_MODELS if models is None else models)
        self.list_error = list_error
        self.tasks: list[ChatTask] = []
        self.list_calls = 0
        self.closed = 0
        self.gate = None  # optional asyncio.Event awaited before each fragment

    async def list_models(self) -> list[str]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.models)

    async def stream_chat(self, task: ChatTask):
        self.tasks.append(task)
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_with is not None and i == self.fail_after:
                    raise self.fail_with
                if self.gate is not None:
                    await self.gate.wait()
                yield fragment
            if self.fail_with is not None and self.fail_after >= len(self.fragments):
                raise self.fail_with
        finally:
            self.closed += 1


async def wait_for_stream(adapter: FakeAdapter) -> None:
    """Yield to the loop until the adapter has been asked to stream."""
    while not adapter.tasks:
        await asyncio.sleep(0)


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_adapter():
    """Adapter streaming MOCK_FRAGMENTS."""
    return FakeAdapter(fragments=MOCK_FRAGMENTS)


@pytest.fixture
def relay(fake_adapter):
    from clipcode.core import ChatRelay
    return ChatRelay(fake_adapter, timeout_seconds=30)


@pytest.fixture
def registry(fake_adapter):
    from clipcode.registry import ModelRegistry
    return ModelRegistry(fake_adapter)


@pytest.fixture
def posted():
    """Collector for panel outbound messages, plus the async post callable."""
    messages = []

    async def post(message):
        messages.append(message)

    return messages, post


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host machine configuration out of tests."""
    for key in ("OLLAMA_HOST", "CLIPCODE_TIMEOUT_SECONDS",
                "CLIPCODE_LIST_TIMEOUT_SECONDS", "GRADIO_PORT"):
        monkeypatch.delenv(key, raising=False)
