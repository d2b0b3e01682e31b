"""Server-Sent Events (SSE) consumption for streamed chat completions."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Self

import httpx

from wayfarer.errors import StreamingError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class ChatStream:
    """An open event-stream response handed to the caller.

    Iterate it directly for raw bytes, or use ``iter_lines``, ``iter_events``
    or ``iter_text`` for progressively higher-level views. Only one view may
    be consumed per stream. Use ``async with`` (or ``aclose``) to release the
    connection; partially consumed streams are never replayed.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def response(self) -> httpx.Response:
        return self._response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def closed(self) -> bool:
        return self._response.is_closed

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.TransportError as e:
            raise _aborted(e) from e

    async def iter_lines(self) -> AsyncIterator[str]:
        """Yield decoded lines of the event stream.

        Raises:
            StreamingError: The connection dropped before the body ended.
        """
        try:
            async for line in self._response.aiter_lines():
                yield line
        except httpx.TransportError as e:
            raise _aborted(e) from e

    async def iter_events(self) -> AsyncIterator[dict[str, Any]]:
        """Yield each ``data:`` payload as parsed JSON until ``[DONE]``."""
        async for chunk in parse_sse_lines(self.iter_lines()):
            yield chunk

    async def iter_text(self) -> AsyncIterator[str]:
        """Yield content deltas of the first choice, skipping empty ones."""
        async for chunk in self.iter_events():
            delta = extract_delta(chunk)
            if delta:
                yield delta

    async def aclose(self) -> None:
        if not self._response.is_closed:
            logger.debug("Closing chat stream")
        await self._response.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        _: type[BaseException] | None,
        __: BaseException | None,
        ___: TracebackType | None,
    ) -> None:
        await self.aclose()


async def parse_sse_lines(
    lines: AsyncIterator[str],
) -> AsyncIterator[dict[str, Any]]:
    """Parse SSE lines into JSON chunks.

    Comment lines (``: keep-alive``) and non-data fields are ignored. An
    in-stream ``error`` object, undecodable data, or running out of lines
    before ``[DONE]`` raises ``StreamingError``.
    """
    received = 0
    async for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith(":"):
            continue
        if not line.startswith("data:"):
            continue
        data = line.removeprefix("data:").strip()
        if data == DONE_SENTINEL:
            return
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError as e:
            raise StreamingError(
                "Malformed event stream: data line is not valid JSON",
                meta={"line": raw_line},
            ) from e
        if not isinstance(chunk, dict):
            raise StreamingError(
                "Malformed event stream: expected a JSON object",
                meta={"line": raw_line},
            )
        error = chunk.get("error")
        if isinstance(error, dict):
            raise StreamingError(
                str(error.get("message") or "Stream aborted by provider"),
                meta={"code": error.get("code"), "line": raw_line},
            )
        received += 1
        yield chunk

    raise StreamingError(
        f"Event stream ended before {DONE_SENTINEL}",
        hint="The response is truncated; the connection closed early.",
        meta={"chunks": received},
    )


def _aborted(exc: httpx.TransportError) -> StreamingError:
    return StreamingError(
        f"Event stream aborted: {exc}",
        meta={"cause": type(exc).__name__},
    )


def extract_delta(chunk: dict[str, Any]) -> str:
    """Return the first choice's content delta, or ``""``."""
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""
