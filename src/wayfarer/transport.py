"""HTTP transport: one deadline-bounded POST per attempt."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx

from wayfarer._http import CHAT_COMPLETIONS_PATH
from wayfarer.errors import RequestTimeoutError
from wayfarer.response import raise_for_status

if TYPE_CHECKING:
    from wayfarer.config import ClientConfig

logger = logging.getLogger(__name__)


class ChatTransport:
    """Owns the ``httpx.AsyncClient`` and issues chat completion requests.

    The deadline is enforced with ``asyncio.timeout`` around the whole
    exchange (send + status check), so it also applies to injected transports
    that never touch a socket. httpx's own timeouts are disabled to keep a
    single source of truth.
    """

    def __init__(self, config: ClientConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        return f"{self._config.base_url}{CHAT_COMPLETIONS_PATH}"

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily initialize and return the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._config.transport,
                timeout=httpx.Timeout(None),
            )
        return self._client

    async def post(
        self,
        payload: dict[str, Any],
        headers: dict[str, str],
        *,
        stream: bool = False,
    ) -> httpx.Response:
        """POST ``payload`` and return a 2xx response.

        In buffered mode the body is fully read before returning. In streaming
        mode the response is returned open and the caller must close it.

        Raises:
            RequestTimeoutError: The deadline fired before a response arrived.
            HTTPError: The provider answered with a non-2xx status.
        """
        client = self._get_client()
        request = client.build_request("POST", self.url, json=payload, headers=headers)
        timeout_s = self._config.timeout_s

        response: httpx.Response | None = None
        deadline = asyncio.timeout(timeout_s)
        try:
            async with deadline:
                response = await client.send(request, stream=stream)
                await raise_for_status(response)
        except TimeoutError as e:
            if response is not None:
                await response.aclose()
            if deadline.expired():
                raise RequestTimeoutError(
                    f"Request timed out after {timeout_s}s",
                    timeout_s=timeout_s,
                    hint="Raise ClientConfig.timeout_s for long generations.",
                ) from e
            raise
        except BaseException:
            if response is not None:
                await response.aclose()
            raise
        return response

    async def aclose(self) -> None:
        """Close underlying HTTP client resources."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.aclose()
