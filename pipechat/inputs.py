"""Input aggregation for pipechat.

Merges flag-supplied messages with a body read from a file argument or from
standard input into one ordered :class:`Conversation`:

1. the system message (if any) goes first,
2. user/assistant flag messages follow in the order they were given,
3. the body becomes a trailing user message unless it is blank.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, TextIO

from .errors import ConflictingSourceError, NoContentError, SourceUnreadableError
from .models import Conversation, Message, MessageRole

logger = logging.getLogger(__name__)

STDIN_MARKER = "-"

FLAG_ROLES = {
    "user": MessageRole.USER,
    "assistant": MessageRole.ASSISTANT,
}


def interleave_flag_messages(
    order: Sequence[str],
    user: Sequence[str] = (),
    assistant: Sequence[str] = (),
) -> list[Message]:
    """Rebuild flag messages in command-line order.

    Args:
        order: Flag names ("user"/"assistant") in the order they occurred;
            other names are ignored.
        user: Values of the user flag, in occurrence order.
        assistant: Values of the assistant flag, in occurrence order.

    Returns:
        Messages in the literal order the flags were given.
    """
    values = {"user": iter(user), "assistant": iter(assistant)}
    messages = []
    for name in order:
        if name not in FLAG_ROLES:
            continue
        try:
            content = next(values[name])
        except StopIteration:
            raise ValueError(f"more '{name}' occurrences than values") from None
        messages.append(Message(FLAG_ROLES[name], content))

    leftovers = [name for name, remaining in values.items() if next(remaining, None) is not None]
    if leftovers:
        raise ValueError(f"flag order is missing occurrences of: {', '.join(leftovers)}")
    return messages


def read_body(file_path: Optional[str] = None, stdin: Optional[TextIO] = None) -> str:
    """Read the body text from the file argument or, failing that, stdin.

    The file argument wins: stdin is only consulted when no file (or the
    ``-`` marker) is given. An interactive terminal on stdin yields an
    empty body instead of blocking.
    """
    if file_path is not None and file_path != STDIN_MARKER:
        path = Path(file_path)
        logger.debug("Reading body from %s", path)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceUnreadableError(f"failed to open {file_path}: {e}") from e

    if stdin is None:
        return ""
    if stdin.isatty():
        logger.debug("stdin is a terminal, not reading a body")
        return ""
    try:
        return stdin.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SourceUnreadableError(f"failed to read stdin: {e}") from e


def aggregate_conversation(
    system: Optional[str] = None,
    turns: Sequence[Message] = (),
    file_path: Optional[str] = None,
    stdin: Optional[TextIO] = None,
    body: Optional[str] = None,
) -> Conversation:
    """Build the conversation for one invocation.

    Args:
        system: Optional system prompt, always placed first.
        turns: User/assistant messages from flags, already in flag order.
        file_path: Optional file argument supplying the body.
        stdin: Stream read for the body when no file argument is given.
        body: Body text supplied directly by a caller. Mutually exclusive
            with ``file_path``.

    Raises:
        ConflictingSourceError: Both ``body`` and ``file_path`` were given.
        SourceUnreadableError: The body source could not be read.
        NoContentError: Nothing produced any content, or the final message
            would be empty.
    """
    for turn in turns:
        if turn.role is MessageRole.SYSTEM:
            raise ValueError("system message must be passed via 'system'")

    if body is not None and file_path is not None:
        raise ConflictingSourceError(
            f"body text and file argument {file_path} are both set; give only one"
        )
    if body is None:
        body = read_body(file_path, stdin)

    messages = []
    if system is not None:
        messages.append(Message.system(system))
    messages.extend(turns)

    if body.strip():
        messages.append(Message.user(body))
    elif body:
        logger.debug("Dropping whitespace-only body")

    conversation = Conversation.of(messages)
    if not conversation.has_content:
        raise NoContentError()
    if conversation.messages[-1].is_blank:
        raise NoContentError(f"final {conversation.messages[-1].role.value} message is empty")

    logger.debug("Aggregated %d message(s)", len(conversation))
    return conversation
