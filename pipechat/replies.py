"""Decoded reply shapes for the chat completions endpoint."""

import logging
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field

from .errors import DecodeError

logger = logging.getLogger(__name__)

FINISH_STOP = "stop"


class Usage(BaseModel):
    """Token accounting reported by the endpoint."""

    model_config = ConfigDict(extra="allow")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ReplyMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str = "assistant"
    content: Optional[str] = None


class Choice(BaseModel):
    model_config = ConfigDict(extra="allow")

    index: int = 0
    message: ReplyMessage
    finish_reason: Optional[str] = None


class ChatCompletion(BaseModel):
    """A complete (non-streamed or re-assembled) reply.

    Fields the endpoint sends beyond these are kept and re-emitted when the
    reply is rendered as JSON.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    object: str = "chat.completion"
    created: Optional[int] = None
    model: Optional[str] = None
    choices: list[Choice]
    usage: Optional[Usage] = None

    @property
    def choice(self) -> Choice:
        return self.choices[0]

    @property
    def text(self) -> str:
        return self.choice.message.content or ""


class ChunkDelta(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: Optional[str] = None
    content: Optional[str] = None


class ChunkChoice(BaseModel):
    model_config = ConfigDict(extra="allow")

    index: int = 0
    delta: ChunkDelta = Field(default_factory=ChunkDelta)
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    """One server-sent event of a streamed reply."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    created: Optional[int] = None
    model: Optional[str] = None
    choices: list[ChunkChoice] = Field(default_factory=list)
    usage: Optional[Usage] = None


class Fragment(BaseModel):
    """One incremental piece of a streamed reply."""

    sequence: int
    id: Optional[str] = None
    model: Optional[str] = None
    created: Optional[int] = None
    role: Optional[str] = None
    content: str = ""
    finish_reason: Optional[str] = None
    usage: Optional[Usage] = None

    @computed_field
    @property
    def done(self) -> bool:
        return self.finish_reason is not None

    @classmethod
    def from_chunk(cls, chunk: ChatCompletionChunk, sequence: int) -> "Fragment":
        if len(chunk.choices) > 1:
            raise DecodeError(f"unexpected number of choices in stream chunk: {len(chunk.choices)}")
        choice = chunk.choices[0] if chunk.choices else None
        return cls(
            sequence=sequence,
            id=chunk.id,
            model=chunk.model,
            created=chunk.created,
            role=choice.delta.role if choice else None,
            content=(choice.delta.content or "") if choice else "",
            finish_reason=choice.finish_reason if choice else None,
            usage=chunk.usage,
        )


def decode_reply(body: bytes | str) -> ChatCompletion:
    """Parse a non-streamed reply body.

    Raises:
        DecodeError: The body is not a chat completion with exactly one choice.
    """
    try:
        reply = ChatCompletion.model_validate_json(body)
    except ValidationError as e:
        raise DecodeError(f"unexpected response - {e.error_count()} validation error(s): {_first_error(e)}") from e
    if len(reply.choices) != 1:
        raise DecodeError(f"unexpected number of choices in response: {len(reply.choices)}")
    return reply


def decode_chunk(data: str | dict[str, Any]) -> ChatCompletionChunk:
    """Parse the payload of one ``data:`` event."""
    try:
        if isinstance(data, dict):
            return ChatCompletionChunk.model_validate(data)
        return ChatCompletionChunk.model_validate_json(data)
    except ValidationError as e:
        raise DecodeError(f"unexpected stream chunk - {_first_error(e)}") from e


def assemble_reply(fragments: Iterable[Fragment]) -> ChatCompletion:
    """Re-assemble streamed fragments into a single reply."""
    reply_id = model = created = finish_reason = None
    role = "assistant"
    usage = None
    parts = []
    for fragment in fragments:
        reply_id = reply_id or fragment.id
        model = model or fragment.model
        created = created or fragment.created
        role = fragment.role or role
        finish_reason = fragment.finish_reason or finish_reason
        usage = fragment.usage or usage
        parts.append(fragment.content)

    return ChatCompletion(
        id=reply_id,
        created=created,
        model=model,
        choices=[
            Choice(
                index=0,
                message=ReplyMessage(role=role, content="".join(parts)),
                finish_reason=finish_reason,
            )
        ],
        usage=usage,
    )


def warn_on_finish_reason(finish_reason: Optional[str]) -> None:
    if finish_reason is not None and finish_reason != FINISH_STOP:
        logger.warning("Reply finished early (finish_reason=%s)", finish_reason)


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"{location}: {first.get('msg', 'invalid')}"
