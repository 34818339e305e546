"""
Gradio event handlers for clipcode.
"""

from contextlib import aclosing

import gradio as gr

from clipcode import state
from clipcode.core import ErrorKind, Failed, ModelListUnavailable, Partial


def format_failure(event: Failed) -> str:
    """Status line for a failed chat, differentiated by error kind."""
    if event.kind == ErrorKind.BACKEND_UNAVAILABLE:
        return f"❌ Could not reach the model: {event.message}. Is `ollama serve` running? Resend to retry."
    if event.kind == ErrorKind.STREAM_INTERRUPTED:
        return f"⚠️ Response interrupted: {event.message}. Resend to retry."
    return f"❌ {event.message}"


async def fetch_available_models() -> tuple[str, dict]:
    """
    Query the backend for installed models.
    Returns (status_message, gr.update for the model Dropdown).
    """
    registry, _ = state.ensure_stack()

    try:
        models = await registry.refresh()
    except ModelListUnavailable as e:
        return f"⚠️ Could not list models: {e}", gr.update(choices=[], value=None)

    if not models:
        return "⚠️ No models installed. Pull one with `ollama pull <model>`.", gr.update(choices=[], value=None)

    names = [m.name for m in models]
    return f"✅ Found {len(names)} model(s)", gr.update(choices=names, value=names[0])


def handle_stop(request: gr.Request = None) -> str:
    """Handle Stop button click - cancel this browser session's stream."""
    if state.request_stop(state.session_key(request)):
        return "🛑 Stop requested..."
    return "Nothing to stop."


def clear_chat() -> tuple[str, str, str]:
    """
    Clear prompt, response and status.

    Only UI state is cleared; a session still streaming keeps running
    until it ends or is stopped.
    """
    return "", "", "🗑️ Conversation cleared."


async def send_prompt(prompt: str, model_id: str, request: gr.Request = None):
    """
    Stream a reply into the panel.

    Yields (response_markdown, status). Each Partial replaces the whole
    response text. A newer send from the same browser session cancels the
    previous one; other browser sessions are left alone.
    """
    if not model_id:
        yield "", "❌ No model selected"
        return
    if not prompt or not prompt.strip():
        yield "", "❌ Empty prompt"
        return

    _, relay = state.ensure_stack()
    key = state.session_key(request)
    state.request_stop(key)
    session = relay.open_session(prompt, model_id)
    state.active_sessions[key] = session

    yield "", f"⏳ Waiting for {model_id}..."

    try:
        async with aclosing(relay.stream(session)) as events:
            async for event in events:
                if isinstance(event, Partial):
                    yield event.text, f"⏳ Generating with {model_id}..."
                elif isinstance(event, Failed):
                    yield session.text, format_failure(event)
                    return
    finally:
        if state.active_sessions.get(key) is session:
            del state.active_sessions[key]

    if session.cancelled:
        yield session.text, "🛑 Stopped"
    else:
        yield session.text, "✅ Done"
