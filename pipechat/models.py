"""Data models for pipechat."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Optional

from .errors import MalformedConversationError


class MessageRole(str, Enum):
    """Message roles in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single message in the conversation."""

    role: MessageRole
    content: str

    def __post_init__(self) -> None:
        # Raises ValueError for anything that is not a known role
        object.__setattr__(self, "role", MessageRole(self.role))
        if not isinstance(self.content, str):
            raise TypeError(f"message content must be str, not {type(self.content).__name__}")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(MessageRole.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(MessageRole.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(MessageRole.ASSISTANT, content)

    @property
    def is_blank(self) -> bool:
        return not self.content.strip()

    def to_openai_format(self) -> dict[str, str]:
        """Convert to OpenAI API format."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_openai_format(cls, data: dict[str, Any]) -> "Message":
        return cls(MessageRole(data["role"]), data.get("content") or "")


@dataclass(frozen=True)
class Conversation:
    """An ordered, immutable sequence of messages.

    At most one system message is allowed and it must come first. Repeated
    roles are tolerated; only the order is enforced.
    """

    messages: tuple[Message, ...] = ()

    def __post_init__(self) -> None:
        messages = tuple(self.messages)
        object.__setattr__(self, "messages", messages)
        for position, message in enumerate(messages):
            if message.role is MessageRole.SYSTEM and position != 0:
                raise MalformedConversationError(
                    f"system message must be first, found at position {position}"
                )

    @classmethod
    def of(cls, messages: Iterable[Message]) -> "Conversation":
        return cls(tuple(messages))

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self.messages)

    @property
    def system_message(self) -> Optional[Message]:
        if self.messages and self.messages[0].role is MessageRole.SYSTEM:
            return self.messages[0]
        return None

    @property
    def has_content(self) -> bool:
        """True if at least one message carries non-blank content."""
        return any(not message.is_blank for message in self.messages)

    def to_openai_messages(self) -> list[dict[str, str]]:
        """Convert all messages to OpenAI format."""
        return [msg.to_openai_format() for msg in self.messages]


class OutputFormat(str, Enum):
    """Encodings the reply can be rendered in."""

    TEXT = "text"
    JSON = "json"
    JSON_PRETTY = "json-pretty"
    NDJSON = "ndjson"


class ReasoningEffort(str, Enum):
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class GenerationOptions:
    """Per-invocation request parameters, built once by the CLI."""

    model: str
    api_key: str = field(repr=False)
    output_format: OutputFormat = OutputFormat.TEXT
    timeout_seconds: Optional[float] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    reasoning_effort: Optional[ReasoningEffort] = None
    stream: bool = False

    def __post_init__(self) -> None:
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
