"""Exception hierarchy for Wayfarer.

Every error carries a ``kind`` discriminant with a stable machine-readable
``code`` and an open ``meta`` mapping, so callers (and the retry loop) can
branch on ``err.kind`` instead of walking ``isinstance`` chains.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Discriminant shared by all Wayfarer errors."""

    CONFIGURATION = "CONFIGURATION_ERROR"
    REQUEST_VALIDATION = "REQUEST_VALIDATION_ERROR"
    HTTP = "HTTP_ERROR"
    API = "API_ERROR"
    JSON_VALIDATION = "JSON_VALIDATION_ERROR"
    TIMEOUT = "TIMEOUT_ERROR"
    STREAMING = "STREAMING_ERROR"


class WayfarerError(Exception):
    """Base exception for all Wayfarer errors."""

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.meta: dict[str, Any] = dict(meta or {})

    @property
    def code(self) -> str:
        """Stable machine-readable error code."""
        return self.kind.value


class ConfigurationError(WayfarerError):
    """Client construction received invalid input."""

    kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        hint: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(meta or {})
        if field is not None:
            merged.setdefault("field", field)
        super().__init__(message, hint=hint, meta=merged)
        self.field = field


class RequestValidationError(WayfarerError):
    """Call-time parameters are invalid; raised before any network I/O."""

    kind = ErrorKind.REQUEST_VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        hint: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(meta or {})
        if field is not None:
            merged.setdefault("field", field)
        super().__init__(message, hint=hint, meta=merged)
        self.field = field


class HTTPError(WayfarerError):
    """The provider answered with a non-2xx status.

    ``body`` is captured best-effort and may be ``None``.
    """

    kind = ErrorKind.HTTP

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str | None = None,
        hint: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(meta or {})
        merged.update(status_code=status_code, body=body)
        super().__init__(message, hint=hint, meta=merged)
        self.status_code = status_code
        self.body = body

    @property
    def is_client_error(self) -> bool:
        """True for 4xx statuses other than 429 (rate limit)."""
        return 400 <= self.status_code < 500 and self.status_code != 429


class APIError(WayfarerError):
    """A 2xx response whose payload embeds a provider-reported error."""

    kind = ErrorKind.API

    def __init__(
        self,
        message: str,
        *,
        error_code: int | str | None = None,
        error_type: str | None = None,
        hint: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(meta or {})
        if error_code is not None:
            merged.setdefault("code", error_code)
        if error_type is not None:
            merged.setdefault("type", error_type)
        super().__init__(message, hint=hint, meta=merged)
        self.error_code = error_code
        self.error_type = error_type


class JSONValidationError(WayfarerError):
    """Structured output could not be parsed or did not match the schema.

    ``raw`` always holds the offending model text. Exactly one of ``errors``
    (schema violations) or ``parse_error`` (decoder message) is set.
    """

    kind = ErrorKind.JSON_VALIDATION

    def __init__(
        self,
        message: str,
        *,
        raw: str,
        errors: list[dict[str, Any]] | None = None,
        parse_error: str | None = None,
        hint: str | None = None,
    ) -> None:
        meta: dict[str, Any] = {"raw": raw}
        if errors is not None:
            meta["errors"] = errors
        if parse_error is not None:
            meta["error"] = parse_error
        super().__init__(message, hint=hint, meta=meta)
        self.raw = raw
        self.errors = errors
        self.parse_error = parse_error


class RequestTimeoutError(WayfarerError):
    """A single attempt exceeded its deadline."""

    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        message: str,
        *,
        timeout_s: float,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint, meta={"timeout_s": timeout_s})
        self.timeout_s = timeout_s


class StreamingError(WayfarerError):
    """The event stream was malformed or aborted."""

    kind = ErrorKind.STREAMING
