"""Shared fixtures for pipechat tests."""

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from payloads import StalledStream, completion_body, sse_body
from pipechat.models import GenerationOptions


class FakeEndpoint:
    """httpx handler that records requests and replays a canned response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.respond: Callable[[httpx.Request], Any] = lambda request: httpx.Response(
            200, json=completion_body()
        )

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        return self.respond(request)

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)

    def reply_json(self, body: Any, status_code: int = 200) -> None:
        self.respond = lambda request: httpx.Response(status_code, json=body)

    def reply_raw(self, content: bytes, status_code: int = 200, headers: Optional[dict] = None) -> None:
        self.respond = lambda request: httpx.Response(status_code, content=content, headers=headers)

    def reply_stream(self, chunks: list, done: bool = True) -> None:
        self.respond = lambda request: httpx.Response(
            200,
            content=sse_body(chunks, done=done),
            headers={"content-type": "text/event-stream"},
        )

    def reply_stalled(self, chunks: list) -> None:
        self.respond = lambda request: httpx.Response(
            200,
            stream=StalledStream(chunks),
            headers={"content-type": "text/event-stream"},
        )

    def raise_error(self, exc_type: type) -> None:
        def _raise(request: httpx.Request):
            raise exc_type("simulated failure", request=request)
        self.respond = _raise

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def endpoint() -> FakeEndpoint:
    return FakeEndpoint()


@pytest.fixture
def make_options() -> Callable[..., GenerationOptions]:
    def _make(**overrides: Any) -> GenerationOptions:
        values = {"model": "gpt-test", "api_key": "ABCDE"}
        values.update(overrides)
        return GenerationOptions(**values)
    return _make
