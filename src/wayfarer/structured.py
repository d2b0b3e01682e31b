"""Structured output validation against caller-supplied pydantic schemas."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from wayfarer.errors import JSONValidationError

if TYPE_CHECKING:
    from wayfarer.types import SchemaT


def validate_json(schema: type[SchemaT], raw: str) -> SchemaT:
    """Parse ``raw`` as JSON and validate it against ``schema``.

    Raises:
        JSONValidationError: On a parse failure (``parse_error`` set) or a
            schema mismatch (``errors`` set). ``raw`` is always attached so
            malformed model output can be inspected.
    """
    try:
        data: Any = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise JSONValidationError(
            "Failed to parse JSON",
            raw=raw if isinstance(raw, str) else repr(raw),
            parse_error=str(e),
            hint="The model did not return valid JSON; inspect err.raw.",
        ) from e

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise JSONValidationError(
            "Schema validation failed",
            raw=raw,
            errors=e.errors(include_url=False, include_context=False),
        ) from e
