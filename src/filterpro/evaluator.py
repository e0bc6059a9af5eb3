"""Expression evaluator.

Pure and total: ``evaluate`` returns a bool for any expression and any
attribute map and never raises. Comparison rules:

* field paths are dotted; a miss anywhere along the path yields MISSING,
  which fails every operator except ``exists`` (false) and ``ne`` (true)
* scalars are compared by their string form, containers by identity only
* ``in``/``nin``/``includes``/``notincludes``/``regex`` accept a list or a
  comma separated string on the right hand side
* numeric operators need both sides to coerce to finite numbers
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from typing import Any

from filterpro.models import CompareExpr, Expression, GroupExpr, NotExpr
from filterpro.rules import normalize_expr


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

_SCALARS = (str, int, float, bool)
_MULTI_SPLIT = re.compile(r"[,，]")


def get_by_path(source: Any, path: str) -> Any:
    if not path:
        return MISSING
    cursor = source
    for part in path.split("."):
        if cursor is None or cursor is MISSING or isinstance(cursor, _SCALARS):
            return MISSING
        if isinstance(cursor, Mapping):
            cursor = cursor.get(part, MISSING)
        elif isinstance(cursor, Sequence):
            if not (part.isascii() and part.isdecimal()) or int(part) >= len(cursor):
                return MISSING
            cursor = cursor[int(part)]
        else:
            cursor = getattr(cursor, part, MISSING)
    return cursor


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    try:
        return str(value)
    except ValueError:
        # int beyond the interpreter's decimal conversion limit
        return hex(value)


def normalize_scalar(value: Any) -> Any:
    if value is None or value is MISSING:
        return value
    if isinstance(value, _SCALARS):
        return _to_text(value)
    return value


def _same(left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left is right


def coerce_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)) and not (isinstance(value, str) and value.strip() and "_" not in value):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def parse_multi_value(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    if not isinstance(value, str):
        return [value]
    parts = [part.strip() for part in _MULTI_SPLIT.split(value)]
    parts = [part for part in parts if part]
    return parts if len(parts) > 1 else [value]


def _candidate_text(value: Any) -> str:
    normalized = normalize_scalar(value)
    if normalized is None or normalized is MISSING:
        return ""
    return normalized if isinstance(normalized, str) else str(normalized)


def _includes(left: Any, left_norm: Any, candidates: list[Any]) -> list[bool] | None:
    """Per-candidate containment, or None when the left side is not searchable."""
    if isinstance(left_norm, str):
        return [_candidate_text(rv) in left_norm for rv in candidates]
    if isinstance(left, (list, tuple)):
        items = [normalize_scalar(item) for item in left]
        return [
            any(_same(item, normalize_scalar(rv)) for item in items)
            for rv in candidates
        ]
    return None


def evaluate_compare(left: Any, expr: CompareExpr) -> bool:
    operator = expr.operator
    if operator == "exists":
        return left is not MISSING and left is not None
    if left is MISSING:
        return operator == "ne"

    left_norm = normalize_scalar(left)
    right = expr.value

    if operator == "eq":
        return _same(left_norm, normalize_scalar(right))
    if operator == "ne":
        return not _same(left_norm, normalize_scalar(right))

    candidates = parse_multi_value(right)

    if operator == "in":
        return any(_same(left_norm, normalize_scalar(rv)) for rv in candidates)
    if operator == "nin":
        return all(not _same(left_norm, normalize_scalar(rv)) for rv in candidates)
    if operator in ("includes", "notincludes"):
        hits = _includes(left, left_norm, candidates)
        if hits is None:
            return False
        return any(hits) if operator == "includes" else not any(hits)
    if operator == "regex":
        if not isinstance(left_norm, str):
            return False
        pattern = _candidate_text(candidates[0]) if candidates else ""
        try:
            return re.search(pattern, left_norm) is not None
        except re.error:
            return False

    first = normalize_scalar(candidates[0]) if candidates else None
    ln = coerce_number(left)
    rn = coerce_number(first)
    if ln is None or rn is None:
        return False
    if operator == "gt":
        return ln > rn
    if operator == "gte":
        return ln >= rn
    if operator == "lt":
        return ln < rn
    if operator == "lte":
        return ln <= rn
    return False


def evaluate(expr: Expression | Mapping[str, Any], vars: Mapping[str, Any]) -> bool:
    if isinstance(expr, Mapping):
        expr = normalize_expr(expr)
    if isinstance(expr, GroupExpr):
        # An empty group is vacuously true for both operators.
        if not expr.children:
            return True
        if expr.operator == "and":
            return all(evaluate(child, vars) for child in expr.children)
        return any(evaluate(child, vars) for child in expr.children)
    if isinstance(expr, NotExpr):
        return not evaluate(expr.child, vars)
    if isinstance(expr, CompareExpr):
        return evaluate_compare(get_by_path(vars, expr.field), expr)
    return False
