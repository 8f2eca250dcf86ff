"""Error taxonomy for pipechat.

Every failure is terminal for the invocation. Each class carries the exit
status the CLI maps it to.
"""

import json
from typing import Optional


class PipechatError(Exception):
    """Base class for all pipechat failures."""

    exit_code: int = 1


class ConfigError(PipechatError):
    """Startup configuration is unusable (e.g. no credential)."""

    exit_code = 12


# Input aggregation

class InputError(PipechatError):
    """Aggregating the conversation from flags, file and stdin failed."""

    exit_code = 3


class NoContentError(InputError):
    """No message source produced any content."""

    exit_code = 3

    def __init__(self, message: str = "no messages provided") -> None:
        super().__init__(message)


class ConflictingSourceError(InputError):
    """More than one body source was supplied."""

    exit_code = 4


class SourceUnreadableError(InputError):
    """The body source could not be read."""

    exit_code = 5


# Request encoding

class EncodeError(PipechatError):
    """A conversation could not be encoded into a request."""

    exit_code = 6


class EmptyConversationError(EncodeError):
    def __init__(self) -> None:
        super().__init__("cannot encode an empty conversation")


class MalformedConversationError(EncodeError):
    """Conversation ordering rules were violated."""


# Completion client

class ClientError(PipechatError):
    """The completion request failed."""


class RequestTimeoutError(ClientError):
    exit_code = 7

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"request timed out after {timeout:g}s")


class TransportError(ClientError):
    """Connection-level failure."""

    exit_code = 8


class RemoteRejectedError(ClientError):
    """The endpoint answered with a non-success status or an error payload."""

    exit_code = 9

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"request rejected ({status_code}) - {self.detail}")

    @property
    def detail(self) -> str:
        """Human readable reason, taken from an OpenAI-style error body if possible."""
        try:
            payload = json.loads(self.body)
        except ValueError:
            return self.body.strip() or "no response body"
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        return self.body.strip()


class DecodeError(ClientError):
    """A response arrived but did not have the expected shape."""

    exit_code = 10


# Rendering

class RenderError(PipechatError):
    """Writing to standard output failed."""

    exit_code = 11


class BrokenOutputPipeError(RenderError):
    """The downstream consumer closed standard output early."""

    exit_code = 141

    def __init__(self, cause: Optional[BaseException] = None) -> None:
        super().__init__("output pipe closed by consumer")
        self.cause = cause
