"""
Core logic: error taxonomy, relay events, chat sessions and the chat relay.
"""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncGenerator, Optional, Union

from clipcode.adapters.base import HostAdapter
from clipcode.adapters.schema import ChatTask
from clipcode.config import ChatRequest, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# ERRORS
# ─────────────────────────────────────────────────────────────────────

class ErrorKind(str, Enum):
    """Closed set of failure kinds the UI can render differently."""
    BACKEND_UNAVAILABLE = "BackendUnavailable"
    STREAM_INTERRUPTED = "StreamInterrupted"
    MODEL_LIST_UNAVAILABLE = "ModelListUnavailable"


class ModelListUnavailable(Exception):
    """Model discovery failed. Non-fatal: the panel stays usable."""
    kind = ErrorKind.MODEL_LIST_UNAVAILABLE


def describe_error(error: BaseException) -> str:
    """Human-readable text for an exception, never empty."""
    text = str(error).strip()
    return text or type(error).__name__


# ─────────────────────────────────────────────────────────────────────
# RELAY EVENTS
# ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Partial:
    """Cumulative response text so far (full replace, not a delta)."""
    text: str


@dataclass(frozen=True)
class Failed:
    """Terminal failure. Nothing follows it."""
    kind: ErrorKind
    message: str


RelayEvent = Union[Partial, Failed]

_END_OF_STREAM = object()


async def _next_chunk(chunks: AsyncGenerator[str, None]):
    """Next fragment, or _END_OF_STREAM once the adapter is exhausted."""
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return _END_OF_STREAM


# ─────────────────────────────────────────────────────────────────────
# CHAT SESSION
# ─────────────────────────────────────────────────────────────────────

@dataclass
class ChatSession:
    """
    State of one in-flight request.

    Owned by whoever opened it; the relay only drives it. The accumulated
    text starts empty and only ever grows.
    """
    request: ChatRequest
    text: str = ""
    chunks_received: int = 0
    started: bool = False
    finished: bool = False
    cancelled: bool = False
    failure: Optional[Failed] = field(default=None)
    _cancel_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    def append(self, fragment: str) -> str:
        """Append the next fragment and return the accumulated text."""
        self.text += fragment
        self.chunks_received += 1
        return self.text

    def cancel(self) -> None:
        """Request cancellation. The relay emits nothing further for this session."""
        self.cancelled = True
        self._cancel_event.set()

    async def wait_cancelled(self) -> None:
        await self._cancel_event.wait()


# ─────────────────────────────────────────────────────────────────────
# CHAT RELAY
# ─────────────────────────────────────────────────────────────────────

class ChatRelay:
    """
    Forwards one (prompt, model) pair to the backend per session and emits
    ordered Partial events, or a single terminal Failed.

    Holds no per-request state; every session is an explicit value, so
    several can run concurrently.
    """

    def __init__(
        self,
        adapter: HostAdapter,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        options: Optional[dict] = None,
    ):
        self.adapter = adapter
        self.timeout_seconds = timeout_seconds
        self.options = options

    def open_session(self, prompt: str, model_id: str) -> ChatSession:
        """
        Create a fresh session for a prompt.

        Raises:
            ValueError: prompt or model_id is empty
        """
        return ChatSession(request=ChatRequest(prompt=prompt, model_id=model_id))

    async def submit(self, prompt: str, model_id: str) -> AsyncGenerator[RelayEvent, None]:
        """Open a session and stream it."""
        session = self.open_session(prompt, model_id)
        async with aclosing(self.stream(session)) as events:
            async for event in events:
                yield event

    async def stream(self, session: ChatSession) -> AsyncGenerator[RelayEvent, None]:
        """
        Drive one session to its end.

        Yields Partial(accumulated_text) per backend fragment, in arrival
        order. On any backend failure yields exactly one Failed and stops.
        A normal end yields nothing further. Cancelled sessions go quiet.
        """
        if session.started:
            raise RuntimeError("ChatSession has already been streamed")
        session.started = True

        request = session.request
        if session.cancelled:
            session.finished = True
            logger.info("Chat for %s cancelled before it started", request.model_id)
            return

        task = ChatTask(
            model_id=request.model_id,
            messages=request.to_messages(),
            timeout_seconds=float(self.timeout_seconds),
            options=self.options,
        )
        logger.debug("Opening chat stream for model %s", request.model_id)

        chunks = self.adapter.stream_chat(task)
        # Each fragment is awaited in its own task, raced against cancel(),
        # so a stalled backend does not hold a cancelled session open.
        cancel_waiter = asyncio.create_task(session.wait_cancelled())
        pending: Optional[asyncio.Task] = None
        try:
            while not session.cancelled:
                pending = asyncio.create_task(_next_chunk(chunks))
                await asyncio.wait({pending, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if not pending.done():
                    break
                fragment = pending.result()
                pending = None
                if fragment is _END_OF_STREAM:
                    return
                if session.cancelled:
                    break
                yield Partial(session.append(fragment))
            logger.info("Chat for %s cancelled after %d chunk(s)",
                        request.model_id, session.chunks_received)
        except Exception as e:
            if session.cancelled:
                logger.info("Chat for %s cancelled: %s", request.model_id, describe_error(e))
                return
            if session.chunks_received:
                kind = ErrorKind.STREAM_INTERRUPTED
            else:
                kind = ErrorKind.BACKEND_UNAVAILABLE
            session.failure = Failed(kind=kind, message=describe_error(e))
            logger.warning("Chat for %s failed (%s): %s",
                           request.model_id, kind.value, session.failure.message)
            yield session.failure
        finally:
            cancel_waiter.cancel()
            if pending is not None:
                # Cancelling the in-flight read unwinds the adapter inside
                # that task, closing its HTTP stream.
                pending.cancel()
                await asyncio.gather(pending, return_exceptions=True)
            session.finished = True
            await chunks.aclose()
            logger.debug("Closed chat stream for model %s", request.model_id)
