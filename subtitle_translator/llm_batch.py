"""Helpers for pulling structured JSON out of model replies."""

from __future__ import annotations

import json
from typing import Any, Optional

import pydantic
import regex

from subtitle_translator.prompt_templates import TranslationResponse
from subtitle_translator.quality.errors import ErrorKind, TranslationError

_JSON_FENCE = regex.compile(r"```json\s*(.*?)```", regex.DOTALL | regex.IGNORECASE)
_PLAIN_FENCE = regex.compile(r"```[^\n]*\n?(.*?)```", regex.DOTALL)


def _strip_code_fence(text: str) -> Optional[str]:
    match = _JSON_FENCE.search(text)
    if match:
        return match.group(1).strip()
    for match in _PLAIN_FENCE.finditer(text):
        body = match.group(1).strip()
        if body.startswith("{"):
            return body
    return None


def _extract_json_block(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1].strip()


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return False
    return True


def extract_json(text: str) -> str:
    """Return the JSON object text embedded in a model reply.

    The reply is used as-is when it is a JSON object; otherwise a fenced
    ```json block, then a plain fenced block starting with ``{``, then the span
    from the first ``{`` to the last ``}``.
    """

    stripped = (text or "").strip()
    if stripped.startswith("{") and _is_json(stripped):
        return stripped
    fenced = _strip_code_fence(stripped)
    if fenced:
        return fenced
    block = _extract_json_block(stripped)
    if block:
        return block
    if stripped.startswith("{"):
        # Truncated object; let the decoder report where it breaks.
        return stripped
    preview = stripped[:120]
    raise TranslationError(
        ErrorKind.PARSE_ERROR,
        "No JSON object found in model response",
        source=preview or "empty response",
    )


def parse_json_payload(text: str) -> Optional[Any]:
    """Return a JSON payload parsed from ``text`` when possible."""

    if not text:
        return None
    try:
        return json.loads(extract_json(text))
    except (TranslationError, json.JSONDecodeError):
        return None


def parse_translation_response(text: str) -> TranslationResponse:
    """Decode a model reply into a :class:`TranslationResponse`.

    Raises :class:`TranslationError` with ``PARSE_ERROR`` when no JSON can be
    decoded and ``INVALID_RESPONSE`` when the JSON has the wrong shape.
    """

    candidate = extract_json(text)
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise TranslationError(
            ErrorKind.PARSE_ERROR, "Model response is not valid JSON", source=str(exc)
        ) from exc
    if not isinstance(payload, dict):
        raise TranslationError(
            ErrorKind.INVALID_RESPONSE, "Model response JSON is not an object"
        )
    try:
        return TranslationResponse.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise TranslationError(
            ErrorKind.INVALID_RESPONSE,
            "Model response does not match the translation schema",
            source=str(exc),
        ) from exc


__all__ = ["extract_json", "parse_json_payload", "parse_translation_response"]
