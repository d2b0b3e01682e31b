"""Response classification and extraction.

Maps non-2xx responses to ``HTTPError``, payload-embedded provider errors to
``APIError``, and successful envelopes to ``ChatSuccess``.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from wayfarer.errors import APIError, HTTPError
from wayfarer.types import ChatSuccess, Usage

if TYPE_CHECKING:
    from wayfarer.types import SchemaT

logger = logging.getLogger(__name__)


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class WireUsage(_Lenient):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class WireMessage(_Lenient):
    role: str | None = None
    #: Usually text; some providers send content parts, which are not text.
    content: Any = None


class WireChoice(_Lenient):
    message: WireMessage | None = None
    finish_reason: str | None = None


class WireError(_Lenient):
    message: str | None = None
    code: int | str | None = None
    type: str | None = None


class CompletionEnvelope(_Lenient):
    """Parsed success envelope. Every field defaults so extraction never fails."""

    id: str | None = None
    created: int | None = None
    model: str | None = None
    usage: WireUsage | None = None
    choices: list[WireChoice | None] | None = Field(default_factory=list)
    #: Providers may report an error inside an HTTP 200 body.
    error: WireError | None = None

    def first_choice(self) -> WireChoice | None:
        return self.choices[0] if self.choices else None

    def first_content(self) -> str:
        choice = self.first_choice()
        message = choice.message if choice is not None else None
        if message is None or not isinstance(message.content, str):
            return ""
        return message.content

    def first_finish_reason(self) -> str | None:
        choice = self.first_choice()
        return choice.finish_reason if choice is not None else None


async def read_body_text(response: httpx.Response) -> str | None:
    """Read a response body as text, best-effort.

    A failure here must never mask the HTTP error being reported.
    """
    try:
        await response.aread()
        return response.text
    except Exception as exc:  # noqa: BLE001
        logger.debug("Could not read error response body: %s", exc)
        return None


async def raise_for_status(response: httpx.Response) -> None:
    """Raise ``HTTPError`` for any status outside 2xx."""
    if response.is_success:
        return
    body = await read_body_text(response)
    reason = response.reason_phrase
    message = f"HTTP {response.status_code}"
    raise HTTPError(
        f"{message}: {reason}" if reason else message,
        status_code=response.status_code,
        body=body,
        hint=_status_hint(response.status_code),
    )


def _status_hint(status_code: int) -> str | None:
    if status_code in {401, 403}:
        return "Check credentials/permissions (try setting OPENROUTER_API_KEY)."
    if status_code == 429:
        return "Rate limited by the provider; the call will be retried."
    if status_code == 402:
        return "The OpenRouter account has insufficient credits."
    return None


def parse_envelope(body: bytes | str) -> CompletionEnvelope:
    """Decode a 2xx body into a ``CompletionEnvelope``.

    Raises ``APIError`` when the body is not a JSON object or cannot be coerced.
    """
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise APIError(
            "Malformed response payload: body is not valid JSON",
            meta={"body": text, "error": str(e)},
        ) from e
    if not isinstance(data, dict):
        raise APIError(
            "Malformed response payload: expected a JSON object",
            meta={"body": text},
        )
    try:
        return CompletionEnvelope.model_validate(data)
    except ValidationError as e:
        raise APIError(
            "Malformed response payload: unexpected envelope shape",
            meta={"body": text, "errors": e.errors(include_url=False)},
        ) from e


def raise_for_api_error(envelope: CompletionEnvelope) -> None:
    """Surface an in-payload provider error as ``APIError``."""
    err = envelope.error
    if err is None:
        return
    raise APIError(
        err.message or "Unknown API error",
        error_code=err.code,
        error_type=err.type,
    )


def to_success(
    envelope: CompletionEnvelope,
    *,
    structured: SchemaT | None = None,
) -> ChatSuccess[SchemaT]:
    """Build the caller-facing result from a clean envelope."""
    usage = envelope.usage or WireUsage()
    return ChatSuccess(
        id=envelope.id or "",
        created=envelope.created or 0,
        model=envelope.model or "",
        usage=Usage(
            prompt_tokens=usage.prompt_tokens or 0,
            completion_tokens=usage.completion_tokens or 0,
            total_tokens=usage.total_tokens or 0,
        ),
        content=envelope.first_content(),
        finish_reason=envelope.first_finish_reason(),
        structured=structured,
    )
