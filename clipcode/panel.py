"""
ChatPanel - host-side mediator between a panel UI and the relay.

The UI talks to the panel only through the messages in clipcode.messages.
The panel runs model discovery in the background on activation and drives
at most one chat session at a time; a new chat supersedes the previous one.
"""

import asyncio
import logging
from contextlib import aclosing
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel

from clipcode.core import ChatRelay, ChatSession, Failed, ModelListUnavailable, Partial
from clipcode.messages import (
    CancelCommand,
    ChatCommand,
    ChatDone,
    ChatError,
    ChatResponse,
    MessageError,
    ModelsError,
    ModelsList,
    Reset,
    parse_inbound,
)
from clipcode.registry import ModelRegistry

logger = logging.getLogger(__name__)

PostMessage = Callable[[BaseModel], Awaitable[None]]


class ChatPanel:
    """
    One panel activation.

    post_message is awaited for every outbound message, in order.
    """

    def __init__(self, relay: ChatRelay, registry: ModelRegistry, post_message: PostMessage):
        self.relay = relay
        self.registry = registry
        self.post_message = post_message
        self._models_task: Optional[asyncio.Task] = None
        self._chat_task: Optional[asyncio.Task] = None
        self._session: Optional[ChatSession] = None

    @property
    def active_session(self) -> Optional[ChatSession]:
        """Session currently streaming, if any."""
        if self._chat_task is None or self._chat_task.done():
            return None
        return self._session

    # ─────────────────────────────────────────────────────────────────
    # ACTIVATION
    # ─────────────────────────────────────────────────────────────────

    def activate(self) -> asyncio.Task:
        """Start model discovery in the background and return its task."""
        self._models_task = asyncio.create_task(self._announce_models())
        return self._models_task

    async def _announce_models(self) -> None:
        try:
            models = await self.registry.refresh()
        except ModelListUnavailable as e:
            await self.post_message(ModelsError(message=str(e)))
            return
        await self.post_message(ModelsList(models=[m.name for m in models]))

    # ─────────────────────────────────────────────────────────────────
    # INBOUND
    # ─────────────────────────────────────────────────────────────────

    async def handle_message(self, raw: Any) -> None:
        """
        Dispatch one UI message.

        Raises:
            MessageError: unknown command, missing fields, or empty prompt/model
        """
        message = parse_inbound(raw)
        if isinstance(message, ChatCommand):
            await self._start_chat(message)
        elif isinstance(message, CancelCommand):
            await self.cancel()
        else:
            raise MessageError(f"Unhandled command: {message.command!r}")

    async def _start_chat(self, command: ChatCommand) -> None:
        try:
            session = self.relay.open_session(command.text, command.model)
        except ValueError as e:
            raise MessageError(f"Invalid chat request: {e}") from e

        if await self._stop_current():
            logger.info("Superseded in-flight chat with a new request")

        self._session = session
        self._chat_task = asyncio.create_task(self._run_chat(session))

    async def _run_chat(self, session: ChatSession) -> None:
        async with aclosing(self.relay.stream(session)) as events:
            async for event in events:
                if isinstance(event, Partial):
                    await self.post_message(ChatResponse(text=event.text))
                elif isinstance(event, Failed):
                    await self.post_message(ChatError(kind=event.kind, message=event.message))
                    return
                else:
                    raise TypeError(f"Unexpected relay event: {event!r}")
        if not session.cancelled:
            await self.post_message(ChatDone())

    # ─────────────────────────────────────────────────────────────────
    # CONTROL
    # ─────────────────────────────────────────────────────────────────

    async def _stop_current(self) -> bool:
        """Cancel the in-flight chat, if any. Returns True if one was stopped."""
        task, session = self._chat_task, self._session
        if task is None or task.done():
            return False
        if session is not None:
            session.cancel()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return True

    async def cancel(self) -> None:
        """Abort the in-flight chat and tell the UI it stopped."""
        if await self._stop_current():
            await self.post_message(ChatDone(cancelled=True))
        else:
            logger.debug("Cancel requested with no chat in flight")

    async def reset(self) -> None:
        """Clear the UI conversation. Relay and session state are untouched."""
        await self.post_message(Reset())

    async def wait_idle(self) -> None:
        """Wait for discovery and the in-flight chat to finish."""
        for task in (self._models_task, self._chat_task):
            if task is not None and not task.cancelled():
                await task

    async def close(self) -> None:
        """Cancel background work without posting anything."""
        await self._stop_current()
        if self._models_task is not None and not self._models_task.done():
            self._models_task.cancel()
            await asyncio.gather(self._models_task, return_exceptions=True)
