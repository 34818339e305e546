"""
Configuration constants and Pydantic models for clipcode.
"""

import os
from pydantic import BaseModel, ConfigDict, field_validator


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS
# ─────────────────────────────────────────────────────────────────────

DEFAULT_OLLAMA_HOST: str = "http://localhost:11434"
DEFAULT_TIMEOUT_SECONDS: int = 300  # 5 minutes
DEFAULT_LIST_TIMEOUT_SECONDS: int = 10
DEFAULT_GRADIO_PORT: int = 7860

PANEL_TITLE: str = "ClipCode Chat"
PANEL_WELCOME: str = "Welcome to ClipCode!"


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT LOADING
# ─────────────────────────────────────────────────────────────────────

def normalize_host(value: str) -> str:
    """
    Normalize an Ollama host value to a base URL.

    Accepts bare "host:port" the way the ollama CLI does and strips
    any trailing slash.
    """
    value = value.strip().rstrip("/")
    if not value:
        return DEFAULT_OLLAMA_HOST
    if "://" not in value:
        value = f"http://{value}"
    return value


def get_ollama_host() -> str:
    """
    Get the Ollama base URL from environment or default.

    Set OLLAMA_HOST in .env (default: http://localhost:11434).
    """
    return normalize_host(os.environ.get("OLLAMA_HOST", DEFAULT_OLLAMA_HOST))


def _int_from_env(key: str, default: int) -> int:
    try:
        value = int(os.environ.get(key, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default


def get_timeout_seconds() -> int:
    """
    Get the streaming chat timeout in seconds.

    Set CLIPCODE_TIMEOUT_SECONDS in .env (default: 300).
    """
    return _int_from_env("CLIPCODE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)


def get_list_timeout_seconds() -> int:
    """
    Get the model list timeout in seconds.

    Set CLIPCODE_LIST_TIMEOUT_SECONDS in .env (default: 10).
    """
    return _int_from_env("CLIPCODE_LIST_TIMEOUT_SECONDS", DEFAULT_LIST_TIMEOUT_SECONDS)


def get_gradio_port() -> int:
    """
    Get Gradio server port from environment or default.

    Returns port from GRADIO_PORT env var, or 7860 as default.
    """
    return _int_from_env("GRADIO_PORT", DEFAULT_GRADIO_PORT)


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

class Message(BaseModel):
    """A single message in a conversation."""
    role: str  # "user", "assistant", or "system"
    content: str


class ChatRequest(BaseModel):
    """One prompt submitted by the UI. Consumed once by the relay."""
    model_config = ConfigDict(frozen=True)

    prompt: str
    model_id: str

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be empty")
        return value

    @field_validator("model_id")
    @classmethod
    def _model_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("model_id must not be empty")
        return value.strip()

    def to_messages(self) -> list[dict]:
        """Single-message conversation sent to the backend."""
        return [Message(role="user", content=self.prompt).model_dump()]


class ModelDescriptor(BaseModel):
    """A model offered by the backend. Immutable for one panel activation."""
    model_config = ConfigDict(frozen=True)

    name: str
