"""
Global state for the clipcode Gradio application.

This module holds mutable state that is shared across handlers and UI.
Keeping it separate avoids circular import issues.
"""

from typing import Optional

from clipcode.core import ChatRelay, ChatSession
from clipcode.registry import ModelRegistry


# These will be initialized when the app starts
relay: Optional[ChatRelay] = None
registry: Optional[ModelRegistry] = None

# Sessions currently streaming, keyed by browser session - targets of the Stop button
active_sessions: dict[str, ChatSession] = {}

# Key used when a handler is called outside a Gradio request
LOCAL_SESSION_KEY = "local"


def init_stack(host: Optional[str] = None) -> None:
    """Build adapter, registry and relay from environment configuration."""
    global relay, registry
    from clipcode.adapters.ollama import create_adapter
    from clipcode.config import get_timeout_seconds

    adapter = create_adapter(host)
    registry = ModelRegistry(adapter)
    relay = ChatRelay(adapter, timeout_seconds=get_timeout_seconds())


def ensure_stack() -> tuple[ModelRegistry, ChatRelay]:
    """Return (registry, relay), initializing from environment on first use."""
    if relay is None or registry is None:
        init_stack()
    return registry, relay


def request_stop(key: str = LOCAL_SESSION_KEY) -> bool:
    """Cancel the session streaming for one browser session. Returns True if there was one."""
    session = active_sessions.get(key)
    if session is None:
        return False
    session.cancel()
    return True


def session_key(request) -> str:
    """Browser-session key for a Gradio request, or the local key without one."""
    session_hash = getattr(request, "session_hash", None) if request is not None else None
    return session_hash or LOCAL_SESSION_KEY
