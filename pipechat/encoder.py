"""Request encoding for the chat completions endpoint."""

from typing import Any

from .errors import EmptyConversationError, MalformedConversationError
from .models import Conversation, GenerationOptions, Message


def encode_request(conversation: Conversation, options: GenerationOptions) -> dict[str, Any]:
    """Build the JSON body for ``POST /chat/completions``.

    Optional sampling parameters are only included when set, so the remote
    default applies otherwise.

    Raises:
        EmptyConversationError: If the conversation has no messages.
    """
    if len(conversation) == 0:
        raise EmptyConversationError()

    payload: dict[str, Any] = {
        "model": options.model,
        "messages": conversation.to_openai_messages(),
        "stream": options.stream,
    }
    if options.temperature is not None:
        payload["temperature"] = options.temperature
    if options.max_tokens is not None:
        payload["max_tokens"] = options.max_tokens
    if options.reasoning_effort is not None:
        payload["reasoning_effort"] = options.reasoning_effort.value
    return payload


def decode_request(payload: dict[str, Any]) -> Conversation:
    """Recover the conversation from an encoded request body."""
    try:
        messages = [Message.from_openai_format(item) for item in payload["messages"]]
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedConversationError(f"invalid messages in request: {e}") from e
    return Conversation.of(messages)
