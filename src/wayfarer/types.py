"""Caller-facing request and result types."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import math
from typing import Any, Generic, Literal, TypeVar, get_args

from pydantic import BaseModel

from wayfarer.errors import RequestValidationError

Role = Literal["user", "assistant", "system"]
_ROLES: frozenset[str] = frozenset(get_args(Role))

SchemaT = TypeVar("SchemaT", bound=BaseModel)


@dataclass(frozen=True)
class ChatMessage:
    """One conversation turn. Order within a conversation is significant."""

    role: Role
    content: str

    def to_wire(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


def _coerce_message(item: Any, index: int) -> ChatMessage:
    if isinstance(item, ChatMessage):
        role, content = item.role, item.content
    elif isinstance(item, Mapping):
        role, content = item.get("role"), item.get("content")
    else:
        raise RequestValidationError(
            f"messages[{index}] must be a ChatMessage or a role/content mapping",
            field="messages",
            hint="Pass ChatMessage(role='user', content='...').",
        )
    if role not in _ROLES:
        raise RequestValidationError(
            f"messages[{index}].role must be one of {sorted(_ROLES)}, got {role!r}",
            field="messages",
        )
    if not isinstance(content, str):
        raise RequestValidationError(
            f"messages[{index}].content must be a string",
            field="messages",
        )
    if isinstance(item, ChatMessage):
        return item
    return ChatMessage(role=role, content=content)


@dataclass(frozen=True)
class ChatParams:
    """Parameters for one chat completion call.

    ``response_schema`` is only used locally for validation; its JSON-Schema
    projection is what crosses the wire.
    """

    messages: tuple[ChatMessage, ...]
    system: str | None = None
    #: Overrides ``ClientConfig.default_model``.
    model: str | None = None
    response_schema: type[BaseModel] | None = None
    #: Sampling temperature in ``[0, 2]``; falls back to the client default.
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    stream: bool | None = None
    #: Merged over the default optional headers; caller values win.
    extra_headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalize messages and validate option shapes early."""
        raw = self.messages
        if raw is None or isinstance(raw, (str, bytes, Mapping)):
            raise RequestValidationError(
                "messages must be a sequence of chat messages",
                field="messages",
            )
        messages = tuple(_coerce_message(m, i) for i, m in enumerate(raw))
        if not messages:
            raise RequestValidationError(
                "messages cannot be empty",
                field="messages",
                hint="Pass at least one user message.",
            )
        object.__setattr__(self, "messages", messages)

        if self.system is not None and not isinstance(self.system, str):
            raise RequestValidationError("system must be a string", field="system")

        if self.temperature is not None and not (
            _is_number(self.temperature) and 0 <= self.temperature <= 2
        ):
            raise RequestValidationError(
                f"temperature must be between 0 and 2, got {self.temperature!r}",
                field="temperature",
            )
        if self.top_p is not None and not (
            _is_number(self.top_p) and 0 < self.top_p <= 1
        ):
            raise RequestValidationError(
                f"top_p must be in (0, 1], got {self.top_p!r}",
                field="top_p",
            )
        if self.max_tokens is not None and (
            isinstance(self.max_tokens, bool)
            or not isinstance(self.max_tokens, int)
            or self.max_tokens <= 0
        ):
            raise RequestValidationError(
                "max_tokens must be a positive integer",
                field="max_tokens",
            )
        if self.response_schema is not None and not (
            isinstance(self.response_schema, type)
            and issubclass(self.response_schema, BaseModel)
        ):
            raise RequestValidationError(
                "response_schema must be a Pydantic model class",
                field="response_schema",
                hint="Pass a BaseModel subclass describing the expected JSON.",
            )

        headers = self.extra_headers or {}
        if not isinstance(headers, Mapping) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in headers.items()
        ):
            raise RequestValidationError(
                "extra_headers must map header names to string values",
                field="extra_headers",
            )
        object.__setattr__(self, "extra_headers", dict(headers))


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


@dataclass(frozen=True)
class Usage:
    """Token accounting reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class ChatSuccess(Generic[SchemaT]):
    """Result of a successful chat completion."""

    id: str
    created: int
    model: str
    usage: Usage
    #: First choice's message content; ``""`` when absent.
    content: str
    finish_reason: str | None = None
    #: Present only when ``response_schema`` was supplied.
    structured: SchemaT | None = None
