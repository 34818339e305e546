"""
OllamaAdapter - Ollama implementation of HostAdapter.

Talks to a single Ollama server over its native HTTP API:
    GET  /api/tags   - installed models
    POST /api/chat   - chat completion, streamed as newline-delimited JSON
"""

import json
import logging
from typing import AsyncGenerator, Optional

import httpx

from clipcode.adapters.schema import ChatTask

logger = logging.getLogger(__name__)


class OllamaError(Exception):
    """Human-readable error from the Ollama API."""
    pass


def parse_ollama_error(status_code: int, body: bytes) -> str:
    """Extract a user-friendly error message from an Ollama error body."""
    try:
        data = json.loads(body)
        # Ollama returns {"error": "..."}
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, str) and error:
                return error
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
    except (ValueError, UnicodeDecodeError):
        pass
    text = body.decode(errors="replace")[:200]
    return f"HTTP {status_code}: {text}"


def _parse_chunk(line: str) -> dict:
    """Decode one NDJSON record, raising OllamaError if it is not a chat record."""
    try:
        record = json.loads(line)
    except json.JSONDecodeError as e:
        raise OllamaError(f"Malformed chunk from Ollama: {line[:200]!r}") from e
    if not isinstance(record, dict):
        raise OllamaError(f"Malformed chunk from Ollama: {line[:200]!r}")
    if "error" in record:
        raise OllamaError(str(record["error"]))
    message = record.get("message", {})
    if not isinstance(message, dict):
        raise OllamaError(f"Malformed chunk from Ollama: {line[:200]!r}")
    return record


class OllamaAdapter:
    """
    Ollama implementation of HostAdapter protocol.

    Stateless apart from the base URL: every call opens its own
    httpx.AsyncClient and closes it on every exit path.
    """

    def __init__(self, base_url: str, list_timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.list_timeout_seconds = list_timeout_seconds

    async def list_models(self) -> list[str]:
        """Return installed model names in backend order."""
        async with httpx.AsyncClient(timeout=self.list_timeout_seconds) as client:
            response = await client.get(f"{self.base_url}/api/tags")
            if response.status_code >= 400:
                raise OllamaError(parse_ollama_error(response.status_code, response.content))
            data = response.json()

        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            raise OllamaError("Unexpected /api/tags response: missing 'models' list")

        names = []
        for entry in models:
            name = entry.get("name") if isinstance(entry, dict) else None
            if not name:
                raise OllamaError(f"Unexpected /api/tags entry: {entry!r}")
            names.append(name)
        logger.debug("Ollama at %s reports %d model(s)", self.base_url, len(names))
        return names

    async def stream_chat(self, task: ChatTask) -> AsyncGenerator[str, None]:
        """
        Stream a chat completion from Ollama.

        Yields message.content fragments as they arrive. Empty fragments
        (role-only or final "done" records) are skipped.
        Raises OllamaError on error status, in-stream error, malformed chunk,
        or a body that ends without a "done" record.
        """
        payload = {
            "model": task.model_id,
            "messages": task.messages,
            "stream": True,
        }
        if task.options:
            payload["options"] = task.options

        async with httpx.AsyncClient(timeout=task.timeout_seconds) as client:
            async with client.stream(
                "POST",
                f"{self.base_url}/api/chat",
                json=payload,
            ) as response:
                if response.status_code >= 400:
                    # Read the error body for streaming responses
                    error_body = await response.aread()
                    msg = parse_ollama_error(response.status_code, error_body)
                    raise OllamaError(f"Ollama error for '{task.model_id}': {msg}")

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    record = _parse_chunk(line)
                    content = record.get("message", {}).get("content", "")
                    if content:
                        yield content
                    if record.get("done"):
                        return

                raise OllamaError(f"Ollama stream for '{task.model_id}' ended before done")


def create_adapter(base_url: Optional[str] = None) -> OllamaAdapter:
    """Build an adapter from explicit arguments or environment configuration."""
    from clipcode.config import get_list_timeout_seconds, get_ollama_host

    return OllamaAdapter(
        base_url=base_url or get_ollama_host(),
        list_timeout_seconds=get_list_timeout_seconds(),
    )
