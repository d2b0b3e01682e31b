"""ChatClient: resilient wrapper around the OpenRouter chat completion API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Self

from wayfarer.config import ClientConfig
from wayfarer.errors import HTTPError, RequestValidationError
from wayfarer.payload import build_headers, build_payload
from wayfarer.response import parse_envelope, raise_for_api_error, to_success
from wayfarer.retry import retry_async, should_retry_chat
from wayfarer.streaming import ChatStream
from wayfarer.structured import validate_json
from wayfarer.transport import ChatTransport

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

    from wayfarer.types import ChatParams, ChatSuccess, SchemaT

logger = logging.getLogger(__name__)


class ChatClient:
    """Typed chat completion client with retries and structured output.

    Construct one per process and pass it to call sites; the only state it
    keeps between calls is its read-only config and a pooled HTTP client.

    Example:
        async with ChatClient(ClientConfig(api_key="sk-or-...")) as client:
            result = await client.chat(
                ChatParams(
                    system="You are a helpful assistant",
                    messages=[ChatMessage(role="user", content="Hello!")],
                )
            )
            print(result.content)
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        **overrides: Any,
    ) -> None:
        """Initialize from a config, or from keyword fields of ``ClientConfig``.

        Raises:
            ConfigurationError: When the API key is missing or the base URL
                is not HTTPS.
        """
        if config is None:
            config = ClientConfig(**overrides)
        elif overrides:
            config = config.with_overrides(**overrides)
        self._config = config
        self._retry = config.retry_policy()
        self._sleep = sleep
        self._transport = ChatTransport(config)

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def chat(self, params: ChatParams) -> ChatSuccess[Any]:
        """Send a chat completion request and return the parsed result.

        Each attempt rebuilds the payload and arms a fresh deadline.

        Raises:
            RequestValidationError: When parameters are invalid.
            HTTPError: When the API returns a non-2xx status.
            APIError: When the payload carries a provider error.
            JSONValidationError: When ``response_schema`` validation fails.
            RequestTimeoutError: When an attempt exceeds ``timeout_s``.
        """
        if params.stream:
            raise RequestValidationError(
                "chat() reads a buffered response; stream=True is not supported here",
                field="stream",
                hint="Use ChatClient.stream() for event-stream delivery.",
            )
        policy = self._retry
        attempt = 0

        async def _attempt() -> ChatSuccess[Any]:
            nonlocal attempt
            attempt += 1
            payload = build_payload(params, self._config)
            headers = build_headers(params, self._config)
            logger.debug(
                "Sending chat completion (model=%s, messages=%d, attempt=%d/%d)",
                payload["model"],
                len(payload["messages"]),
                attempt,
                policy.max_attempts,
            )
            response = await self._transport.post(payload, headers)
            envelope = parse_envelope(response.content)
            raise_for_api_error(envelope)

            structured = None
            if params.response_schema is not None:
                structured = validate_json(
                    params.response_schema, envelope.first_content()
                )
            return to_success(envelope, structured=structured)

        return await retry_async(
            _attempt,
            policy=policy,
            should_retry=lambda exc: should_retry_chat(exc, policy),
            sleep=self._sleep,
        )

    async def stream(self, params: ChatParams) -> ChatStream:
        """Open a streaming chat completion and return the live event stream.

        Streaming is never retried: output already delivered to the caller
        cannot be replayed safely.

        Raises:
            RequestValidationError: When parameters are invalid.
            HTTPError: On a non-2xx status or a response without a body.
            RequestTimeoutError: When the response does not start in time.
        """
        payload = build_payload(params, self._config, stream=True)
        headers = build_headers(params, self._config, stream=True)
        logger.debug(
            "Opening chat stream (model=%s, messages=%d)",
            payload["model"],
            len(payload["messages"]),
        )
        response = await self._transport.post(payload, headers, stream=True)
        if response.status_code == 204 or response.headers.get("content-length") == "0":
            await response.aclose()
            raise HTTPError(
                "No response body received",
                status_code=response.status_code,
            )
        return ChatStream(response)

    @staticmethod
    def validate_json(schema: type[SchemaT], raw: str) -> SchemaT:
        """Validate raw model text against ``schema`` outside a chat call."""
        return validate_json(schema, raw)

    async def aclose(self) -> None:
        """Release pooled connections."""
        await self._transport.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        _: type[BaseException] | None,
        __: BaseException | None,
        ___: TracebackType | None,
    ) -> None:
        await self.aclose()

