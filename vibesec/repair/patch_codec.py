"""Decode model output into a validated Patch.

``decode_patch`` is strict. ``recover_json_object`` pulls the first
balanced ``{...}`` out of surrounding prose. ``parse_patch`` chains the two.
"""

from __future__ import annotations

import json
import logging
import re

import pydantic

from vibesec.core.errors import ParseError
from vibesec.domain.schemas import Patch

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json|JSON)?[ \t]*\n?")


def strip_fences(text: str) -> str:
    return _FENCE.sub("", text or "").strip()


def _validate(obj: object) -> Patch:
    try:
        return Patch.model_validate(obj)
    except pydantic.ValidationError as e:
        raise ParseError(f"Model output is not a valid patch: {e.error_count()} schema error(s)") from e


def decode_patch(text: str) -> Patch:
    cleaned = strip_fences(text)
    try:
        obj = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(f"Model output is not valid JSON: {e.msg} at pos {e.pos}") from e
    return _validate(obj)


def recover_json_object(text: str) -> dict | None:
    """Extract and decode the first balanced JSON object using bracket counting.

    Braces inside string literals are ignored, so trailing prose or a second
    object after the closing brace does not break decoding.
    """
    start = (text or "").find("{")
    while start != -1:
        depth = 0
        in_string = False
        escape = False
        for i in range(start, len(text)):
            ch = text[i]
            if escape:
                escape = False
                continue
            if ch == "\\" and in_string:
                escape = True
                continue
            if ch == '"':
                in_string = not in_string
                continue
            if in_string:
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    try:
                        obj = json.loads(text[start : i + 1])
                    except json.JSONDecodeError:
                        break
                    if isinstance(obj, dict):
                        return obj
                    break
        start = text.find("{", start + 1)
    return None


def parse_patch(text: str) -> Patch:
    try:
        return decode_patch(text)
    except ParseError as strict_error:
        obj = recover_json_object(strip_fences(text))
        if obj is None:
            raise
        logger.info("Recovered patch JSON from surrounding text after: %s", strict_error)
        return _validate(obj)
