"""
Messages crossing the panel boundary.

Every message is a pydantic model tagged by its ``command`` field, so both
ends can dispatch exhaustively. Unknown or malformed commands raise
MessageError instead of being ignored.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from clipcode.core import ErrorKind


class MessageError(ValueError):
    """An inbound message could not be understood."""
    pass


# ─────────────────────────────────────────────────────────────────────
# UI -> HOST
# ─────────────────────────────────────────────────────────────────────

class ChatCommand(BaseModel):
    command: Literal["chat"] = "chat"
    text: str
    model: str


class CancelCommand(BaseModel):
    command: Literal["cancel"] = "cancel"


InboundMessage = Annotated[
    Union[ChatCommand, CancelCommand],
    Field(discriminator="command"),
]


# ─────────────────────────────────────────────────────────────────────
# HOST -> UI
# ─────────────────────────────────────────────────────────────────────

class ModelsList(BaseModel):
    command: Literal["modelsList"] = "modelsList"
    models: list[str]


class ModelsError(BaseModel):
    """Model discovery failed; the selector stays empty."""
    command: Literal["modelsError"] = "modelsError"
    kind: ErrorKind = ErrorKind.MODEL_LIST_UNAVAILABLE
    message: str


class ChatResponse(BaseModel):
    """Full response text so far. The UI replaces what it shows."""
    command: Literal["chatResponse"] = "chatResponse"
    text: str


class ChatError(BaseModel):
    command: Literal["chatError"] = "chatError"
    kind: ErrorKind
    message: str


class ChatDone(BaseModel):
    command: Literal["chatDone"] = "chatDone"
    cancelled: bool = False


class Reset(BaseModel):
    command: Literal["reset"] = "reset"


OutboundMessage = Annotated[
    Union[ModelsList, ModelsError, ChatResponse, ChatError, ChatDone, Reset],
    Field(discriminator="command"),
]

_inbound_adapter = TypeAdapter(InboundMessage)
_outbound_adapter = TypeAdapter(OutboundMessage)


def parse_inbound(raw: Any) -> Union[ChatCommand, CancelCommand]:
    """
    Validate a raw UI message.

    Raises:
        MessageError: unknown command or missing/invalid fields
    """
    try:
        return _inbound_adapter.validate_python(raw)
    except ValidationError as e:
        command = raw.get("command") if isinstance(raw, dict) else None
        raise MessageError(f"Invalid message (command={command!r}): {e.errors()[0]['msg']}") from e


def parse_outbound(raw: Any):
    """Validate a raw host message (used by UI-side consumers and tests)."""
    try:
        return _outbound_adapter.validate_python(raw)
    except ValidationError as e:
        raise MessageError(f"Invalid host message: {e.errors()[0]['msg']}") from e


def to_wire(message: BaseModel) -> dict:
    """Plain JSON-ready dict for a message; enums become their string values."""
    return message.model_dump(mode="json")
