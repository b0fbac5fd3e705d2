from __future__ import annotations

import re

from .models import FALLBACK_TYPE, InferredType


_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
_QUOTES = ("'", '"')


def strip_inline_comment(expression: str) -> str:
    """Drop everything from the first ``--`` onward and trim."""
    marker = expression.find("--")
    if marker != -1:
        expression = expression[:marker]
    return expression.strip()


def infer_type(expression: object) -> InferredType:
    """Classify a Lua value expression into a coarse semantic type.

    Heuristic only: no evaluation and no escape handling. Anything that is not
    recognised falls back to ``any``.
    """
    if not isinstance(expression, str):
        return FALLBACK_TYPE
    value = strip_inline_comment(expression)

    if value in ("true", "false"):
        return "boolean"
    if value == "nil":
        return "nil"
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        return "string"
    if _NUMBER_RE.match(value):
        return "number"
    if value.startswith("{"):
        return "table"
    return FALLBACK_TYPE
