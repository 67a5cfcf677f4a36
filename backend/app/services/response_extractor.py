from __future__ import annotations

import json
import re
from typing import Any, Final

from app.schemas import ResponseShape


class _Unparsable:
    """Sentinel returned when model output cannot be read as the expected shape."""

    def __repr__(self) -> str:
        return "UNPARSABLE"


UNPARSABLE: Final = _Unparsable()

_LEADING_FENCE = re.compile(r"^```[ \t]*[\w+-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```$")

_EXPECTED_TYPES: dict[ResponseShape, type] = {
    ResponseShape.JSON_ARRAY: list,
    ResponseShape.JSON_OBJECT: dict,
}


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    cleaned = _LEADING_FENCE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def extract(raw: str, shape: ResponseShape) -> Any:
    if shape is ResponseShape.FREE_TEXT:
        return raw

    expected_type = _EXPECTED_TYPES[shape]
    try:
        parsed = json.loads(strip_code_fences(raw))
    except (TypeError, ValueError):
        return UNPARSABLE

    if not isinstance(parsed, expected_type):
        return UNPARSABLE
    return parsed


def is_unparsable(value: Any) -> bool:
    return value is UNPARSABLE
