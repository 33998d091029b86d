"""Raw AI text -> validated response schema."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict

from pydantic import ValidationError

from fitplan.core.errors import AiError, AiErrorKind
from fitplan.services.ai.schemas import (
    SCHEMAS,
    AiPayload,
    BatchResponse,
    FullPlanResponse,
    OutlineResponse,
    PartialModificationResponse,
    ResponseKind,
)

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL | re.IGNORECASE)


def extract_json_text(raw_text: str) -> str:
    """Strip markdown fences or surrounding prose from a JSON object reply."""
    text = raw_text.strip()
    match = _FENCED_JSON.search(text)
    if match:
        return match.group(1)
    if text.startswith("{"):
        return text
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise AiError(AiErrorKind.PARSE_ERROR, "AI response does not contain a JSON object")
    return text[start : end + 1]


def parse_json_object(raw_text: str) -> Dict[str, Any]:
    try:
        data = json.loads(extract_json_text(raw_text))
    except json.JSONDecodeError as exc:
        raise AiError(AiErrorKind.PARSE_ERROR, f"AI response is not valid JSON: {exc.msg} at position {exc.pos}") from exc
    if not isinstance(data, dict):
        raise AiError(AiErrorKind.PARSE_ERROR, "AI response JSON must be an object")
    return data


def _summarize(exc: ValidationError, limit: int = 5) -> str:
    parts = []
    for error in exc.errors()[:limit]:
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg')}")
    remaining = exc.error_count() - limit
    if remaining > 0:
        parts.append(f"... and {remaining} more")
    return "; ".join(parts)


def validate_response(raw_text: str, kind: ResponseKind) -> AiPayload:
    """Parse and validate ``raw_text`` against the schema for ``kind``.

    Raises ``AiError(parseError)`` when the text is not a JSON object and
    ``AiError(invalidResponse)`` when it violates the schema.
    """
    data = parse_json_object(raw_text)
    schema = SCHEMAS[kind]
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        summary = _summarize(exc)
        logger.warning("AI %s response failed schema validation: %s", kind.value, summary)
        raise AiError(AiErrorKind.INVALID_RESPONSE, f"Invalid {kind.value} response: {summary}") from exc


def validate_outline(raw_text: str) -> OutlineResponse:
    return validate_response(raw_text, ResponseKind.OUTLINE)  # type: ignore[return-value]


def validate_batch(raw_text: str) -> BatchResponse:
    return validate_response(raw_text, ResponseKind.BATCH)  # type: ignore[return-value]


def validate_full_plan(raw_text: str) -> FullPlanResponse:
    return validate_response(raw_text, ResponseKind.FULL_PLAN)  # type: ignore[return-value]


def validate_modification(raw_text: str) -> PartialModificationResponse:
    return validate_response(raw_text, ResponseKind.PARTIAL_MODIFICATION)  # type: ignore[return-value]
