"""Completion client for OpenAI-compatible chat endpoints."""

import asyncio
import json
import logging
import time
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, AsyncIterator, Iterator, Optional

import httpx

from . import __app_name__, __version__
from .encoder import encode_request
from .errors import DecodeError, RemoteRejectedError, RequestTimeoutError, TransportError
from .models import Conversation, GenerationOptions
from .replies import ChatCompletion, Fragment, decode_chunk, decode_reply, warn_on_finish_reason

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 60.0
CHAT_COMPLETIONS_PATH = "/chat/completions"

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class Deadline:
    """Remaining budget of an overall timeout."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self._expires = time.monotonic() + seconds

    def remaining(self) -> float:
        left = self._expires - time.monotonic()
        if left <= 0:
            raise RequestTimeoutError(self.seconds)
        return left


class CompletionClient:
    """Sends one conversation to the chat completions endpoint.

    Use :meth:`complete` for a single blocking reply, or :meth:`stream` for
    a lazy sequence of :class:`Fragment` pulled from the open connection.
    Nothing is retried; every failure is raised to the caller.
    """

    def __init__(
        self,
        options: GenerationOptions,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.options = options
        self.timeout = options.timeout_seconds or DEFAULT_TIMEOUT
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {options.api_key}",
                "Content-Type": "application/json",
                "User-Agent": f"{__app_name__}/{__version__}",
            },
            timeout=httpx.Timeout(self.timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "CompletionClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def complete(self, conversation: Conversation) -> ChatCompletion:
        """Send the conversation and wait for the complete reply.

        Raises:
            RequestTimeoutError: No complete reply within the timeout.
            TransportError: The connection failed.
            RemoteRejectedError: The endpoint returned a non-success status.
            DecodeError: The reply could not be parsed.
        """
        payload = encode_request(conversation, replace(self.options, stream=False))
        deadline = Deadline(self.timeout)
        self._log_request(conversation, stream=False)

        with _transport_errors(deadline):
            budget = deadline.remaining()
            response = await asyncio.wait_for(
                self.client.post(CHAT_COMPLETIONS_PATH, json=payload), budget
            )
        logger.debug("Response status %s", response.status_code)
        if response.is_error:
            raise RemoteRejectedError(response.status_code, response.text)

        reply = decode_reply(response.content)
        warn_on_finish_reason(reply.choice.finish_reason)
        return reply

    async def stream(self, conversation: Conversation) -> AsyncIterator[Fragment]:
        """Send the conversation and yield reply fragments as they arrive.

        The sequence is finite and cannot be restarted; iterating it drives
        the network reads. It ends when the endpoint sends ``[DONE]``.
        """
        payload = encode_request(conversation, replace(self.options, stream=True))
        deadline = Deadline(self.timeout)
        self._log_request(conversation, stream=True)

        request = self.client.build_request("POST", CHAT_COMPLETIONS_PATH, json=payload)
        with _transport_errors(deadline):
            budget = deadline.remaining()
            response = await asyncio.wait_for(self.client.send(request, stream=True), budget)

        try:
            logger.debug("Response status %s", response.status_code)
            if response.is_error:
                with _transport_errors(deadline):
                    budget = deadline.remaining()
                    await asyncio.wait_for(response.aread(), budget)
                raise RemoteRejectedError(response.status_code, response.text)

            lines = response.aiter_lines()
            sequence = 0
            finish_reason = None
            while True:
                with _transport_errors(deadline):
                    budget = deadline.remaining()
                    line = await asyncio.wait_for(_next_line(lines), budget)
                if line is None:
                    if finish_reason is None:
                        raise TransportError("stream closed before the reply was complete")
                    break

                data = _sse_data(line)
                if data is None:
                    continue
                if data == SSE_DONE:
                    break

                chunk = decode_chunk(_parse_event(data, response.status_code))
                fragment = Fragment.from_chunk(chunk, sequence)
                sequence += 1
                finish_reason = fragment.finish_reason or finish_reason
                yield fragment

            logger.debug("Stream finished after %d fragment(s)", sequence)
            warn_on_finish_reason(finish_reason)
        finally:
            await response.aclose()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    def _log_request(self, conversation: Conversation, stream: bool) -> None:
        logger.debug(
            "Sending %d message(s) to %s%s (model=%s, stream=%s, timeout=%gs)",
            len(conversation),
            self.client.base_url,
            CHAT_COMPLETIONS_PATH,
            self.options.model,
            stream,
            self.timeout,
        )


@contextmanager
def _transport_errors(deadline: Deadline) -> Iterator[None]:
    """Map timeouts and httpx transport failures onto client errors."""
    try:
        yield
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise RequestTimeoutError(deadline.seconds) from e
    except httpx.DecodingError as e:
        raise DecodeError(f"could not decode response body - {e}") from e
    except httpx.RequestError as e:
        raise TransportError(f"failed to fetch - {e}") from e


async def _next_line(lines: AsyncIterator[str]) -> Optional[str]:
    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return None


def _sse_data(line: str) -> Optional[str]:
    """Return the payload of a ``data:`` line, None for anything else."""
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    return line[len(SSE_DATA_PREFIX):].strip()


def _parse_event(data: str, status_code: int) -> dict[str, Any]:
    try:
        event = json.loads(data)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON in stream event: {e}") from e
    if not isinstance(event, dict):
        raise DecodeError("stream event is not a JSON object")
    if "error" in event:
        raise RemoteRejectedError(status_code, data)
    return event
