"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off transport handlers as coverage expands.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
import json
from typing import Any

import httpx

from wayfarer.client import ChatClient
from wayfarer.config import ClientConfig
from wayfarer.types import ChatMessage, ChatParams

TEST_KEY = "sk-or-test-key"


def completion_body(content: str | None = "Hello!", **overrides: Any) -> dict[str, Any]:
    """Return a realistic OpenRouter success envelope."""
    body: dict[str, Any] = {
        "id": "gen-123",
        "created": 1_700_000_000,
        "model": "openai/gpt-4o-mini",
        "usage": {"prompt_tokens": 12, "completion_tokens": 5, "total_tokens": 17},
        "choices": [
            {
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }
    body.update(overrides)
    return body


def ok(content: str | None = "Hello!", **overrides: Any) -> httpx.Response:
    return httpx.Response(200, json=completion_body(content, **overrides))


def user_params(text: str = "hi", **kwargs: Any) -> ChatParams:
    return ChatParams(messages=(ChatMessage(role="user", content=text),), **kwargs)


ScriptItem = httpx.Response | BaseException | Callable[[httpx.Request], Any]


@dataclass
class ScriptedHandler:
    """Transport handler that plays a scripted sequence of outcomes.

    Items may be responses, exceptions (raised), or callables receiving the
    request. The last item repeats once the script runs out.
    """

    script: list[ScriptItem] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def last_json(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.script:
            return ok()
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, httpx.Response):
            # httpx rebinds a response's stream on send; never hand one out twice.
            return httpx.Response(
                item.status_code, headers=item.headers, content=item.content
            )
        result = item(request)
        if asyncio.iscoroutine(result):
            result = await result
        return result


@dataclass
class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay_s: float) -> None:
        self.delays.append(delay_s)


def make_client(
    handler: Callable[[httpx.Request], Any],
    *,
    sleep: RecordingSleep | None = None,
    **config: Any,
) -> ChatClient:
    config.setdefault("api_key", TEST_KEY)
    return ChatClient(
        ClientConfig(transport=httpx.MockTransport(handler), **config),
        sleep=sleep or RecordingSleep(),
    )


async def never_respond(request: httpx.Request) -> httpx.Response:
    _ = request
    await asyncio.Event().wait()
    raise AssertionError("unreachable")
