"""Wire payload and header assembly for chat completion requests."""

from __future__ import annotations

from copy import deepcopy
import re
from typing import TYPE_CHECKING, Any

from wayfarer._http import (
    EVENT_STREAM_CONTENT_TYPE,
    FALLBACK_MODEL,
    JSON_CONTENT_TYPE,
    MANDATORY_HEADERS,
    MANDATORY_STREAM_HEADERS,
)
from wayfarer.errors import RequestValidationError

if TYPE_CHECKING:
    from pydantic import BaseModel

    from wayfarer.config import ClientConfig
    from wayfarer.types import ChatParams

DEFAULT_SCHEMA_NAME = "response-schema"

_CAMEL_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")
_NON_NAME_RE = re.compile(r"[^a-z0-9]+")


def build_payload(
    params: ChatParams,
    config: ClientConfig,
    *,
    stream: bool | None = None,
) -> dict[str, Any]:
    """Assemble the JSON body for ``POST /chat/completions``.

    The system instruction, when present, is always the first message.
    Optional sampling fields are only included when set.
    """
    if not params.messages:
        raise RequestValidationError("messages cannot be empty", field="messages")

    messages: list[dict[str, str]] = []
    if params.system:
        messages.append({"role": "system", "content": params.system})
    messages.extend(m.to_wire() for m in params.messages)

    payload: dict[str, Any] = {
        "model": params.model or config.default_model or FALLBACK_MODEL,
        "messages": messages,
    }

    if params.temperature is not None:
        payload["temperature"] = params.temperature
    elif config.default_temperature is not None:
        payload["temperature"] = config.default_temperature
    if params.top_p is not None:
        payload["top_p"] = params.top_p
    if params.max_tokens is not None:
        payload["max_tokens"] = params.max_tokens

    effective_stream = stream if stream is not None else params.stream
    if effective_stream is not None:
        payload["stream"] = effective_stream

    if params.response_schema is not None:
        payload["response_format"] = {
            "type": "json_schema",
            "json_schema": {
                "name": schema_name(params.response_schema),
                "strict": True,
                "schema": response_json_schema(params.response_schema),
            },
        }

    return payload


def build_headers(
    params: ChatParams,
    config: ClientConfig,
    *,
    stream: bool = False,
) -> dict[str, str]:
    """Return request headers with caller extras merged in.

    Callers may add headers or replace the optional attribution ones, but an
    attempt to replace a mandatory header is rejected instead of applied.
    """
    mandatory = MANDATORY_STREAM_HEADERS if stream else MANDATORY_HEADERS
    clashes = sorted(k for k in params.extra_headers if k.lower() in mandatory)
    if clashes:
        raise RequestValidationError(
            f"extra_headers may not override mandatory headers: {', '.join(clashes)}",
            field="extra_headers",
        )

    headers: dict[str, str] = {}
    if config.referer:
        headers["HTTP-Referer"] = config.referer
    if config.title:
        headers["X-Title"] = config.title

    # Caller values replace defaults regardless of header-name casing.
    for name, value in params.extra_headers.items():
        for existing in [k for k in headers if k.lower() == name.lower()]:
            del headers[existing]
        headers[name] = value

    headers["Authorization"] = f"Bearer {config.api_key}"
    headers["Content-Type"] = JSON_CONTENT_TYPE
    if stream:
        headers["Accept"] = EVENT_STREAM_CONTENT_TYPE
    return headers


def schema_name(schema: type[BaseModel]) -> str:
    """Derive the wire-level schema name.

    Uses an explicit ``model_config["title"]`` kebab-cased, falling back to a
    generic name. Cosmetic only: validation never depends on it.
    """
    title = schema.model_config.get("title")
    if not isinstance(title, str) or not title.strip():
        return DEFAULT_SCHEMA_NAME
    kebab = _CAMEL_BOUNDARY_RE.sub(r"\1-\2", title.strip()).lower()
    kebab = _NON_NAME_RE.sub("-", kebab).strip("-")
    return kebab or DEFAULT_SCHEMA_NAME


def response_json_schema(schema: type[BaseModel]) -> dict[str, Any]:
    """Project a pydantic model to a self-contained strict JSON Schema."""
    return to_strict_schema(inline_refs(schema.model_json_schema()))


def inline_refs(schema: dict[str, Any]) -> dict[str, Any]:
    """Replace local ``#/$defs/...`` references with their definitions."""
    defs = schema.get("$defs", {})

    def walk(node: Any, seen: tuple[str, ...]) -> Any:
        if isinstance(node, list):
            return [walk(item, seen) for item in node]
        if not isinstance(node, dict):
            return node
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/$defs/"):
            name = ref.removeprefix("#/$defs/")
            if name in seen or name not in defs:
                raise RequestValidationError(
                    f"response_schema contains an unresolvable or recursive $ref: {ref}",
                    field="response_schema",
                )
            resolved = walk(defs[name], (*seen, name))
            siblings = {k: walk(v, seen) for k, v in node.items() if k != "$ref"}
            return {**resolved, **siblings}
        return {k: walk(v, seen) for k, v in node.items() if k != "$defs"}

    result = walk(deepcopy(schema), ())
    if not isinstance(result, dict):
        raise RequestValidationError(
            "response_schema must project to an object schema",
            field="response_schema",
        )
    return result


# Keywords holding one subschema, and keywords holding a list of them.
_SUBSCHEMA_KEYS = ("items", "additionalProperties", "not")
_SUBSCHEMA_LIST_KEYS = ("anyOf", "oneOf", "allOf", "prefixItems")


def to_strict_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Close every object schema for strict structured output.

    Each object node gets ``additionalProperties: false`` and a ``required``
    list (every property when the model declared none). Only schema-bearing
    keywords are descended into, so ``default`` or ``examples`` payloads are
    left as they are. Errors name the JSON pointer of the offending node.
    """
    if not isinstance(schema, dict):
        raise RequestValidationError(
            "response_schema must project to an object schema",
            field="response_schema",
        )
    return _close_objects(deepcopy(schema), "#")


def _close_objects(node: dict[str, Any], path: str) -> dict[str, Any]:
    properties = node.get("properties")
    if properties is not None and not isinstance(properties, dict):
        raise RequestValidationError(
            f"response_schema 'properties' at {path} must be an object",
            field="response_schema",
            meta={"path": path},
        )

    if properties is not None:
        node["properties"] = {
            name: _close_objects(sub, f"{path}/properties/{name}")
            if isinstance(sub, dict)
            else sub
            for name, sub in properties.items()
        }
    for key in _SUBSCHEMA_KEYS:
        if isinstance(node.get(key), dict):
            node[key] = _close_objects(node[key], f"{path}/{key}")
    for key in _SUBSCHEMA_LIST_KEYS:
        if isinstance(node.get(key), list):
            node[key] = [
                _close_objects(sub, f"{path}/{key}/{i}")
                if isinstance(sub, dict)
                else sub
                for i, sub in enumerate(node[key])
            ]

    if node.get("type") == "object" or properties is not None:
        declared = list((properties or {}).keys())
        required = node.setdefault("required", declared)
        unknown = [name for name in required if name not in declared]
        if unknown:
            raise RequestValidationError(
                f"response_schema at {path} requires undeclared properties: "
                + ", ".join(unknown),
                field="response_schema",
                meta={"path": path},
            )
        node["additionalProperties"] = False
    return node
