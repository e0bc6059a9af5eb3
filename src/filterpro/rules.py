"""Rule normalization, cloning, ordering and target matching.

Normalization is permissive: malformed input from the console or from a
hand-edited rules file is never rejected, missing or invalid fields are
replaced with defaults instead.
"""

from __future__ import annotations

import copy
import math
import secrets
from collections.abc import Iterable, Mapping
from typing import Any

from filterpro.models import (
    COMPARE_OPERATORS,
    CompareExpr,
    Expression,
    GroupExpr,
    NotExpr,
    Rule,
    RuleAction,
    Target,
    TargetType,
    expr_to_dict,
    rule_to_dict,
    target_to_dict,
)

DEFAULT_RULE_NAME = "new-rule"
DEFAULT_FIELD = "content"

_ID_ALPHABET = "23456789abcdefghjkmnpqrstuvwxyz"
_ID_LENGTH = 8


def generate_id(length: int = _ID_LENGTH) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def default_expr() -> GroupExpr:
    """Starting condition for new rules: matches nothing until edited."""
    return GroupExpr(
        operator="and",
        children=[CompareExpr(field="guildId", operator="eq", value="")],
    )


def normalize_expr(data: Any) -> Expression:
    if isinstance(data, (GroupExpr, NotExpr, CompareExpr)):
        data = expr_to_dict(data)
    if not isinstance(data, Mapping):
        return default_expr()

    kind = data.get("type")
    if kind == "group":
        operator = "or" if data.get("operator") == "or" else "and"
        children = data.get("children")
        if not isinstance(children, list):
            children = []
        return GroupExpr(operator=operator, children=[normalize_expr(c) for c in children])
    if kind == "not":
        return NotExpr(child=normalize_expr(data.get("child")))
    if kind == "compare":
        operator = data.get("operator")
        if operator not in COMPARE_OPERATORS:
            operator = "eq"
        field = data.get("field")
        if not isinstance(field, str):
            field = DEFAULT_FIELD
        return CompareExpr(field=field, operator=operator, value=copy.deepcopy(data.get("value")))
    return default_expr()


def _clean_values(raw: Any) -> list[str]:
    if isinstance(raw, str):
        raw = [raw]
    elif not isinstance(raw, (list, tuple)):
        return []
    values: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        item = item.strip()
        if item and item not in values:
            values.append(item)
    return values


def normalize_target(data: Any) -> Target:
    if isinstance(data, Target):
        data = target_to_dict(data)
    if not isinstance(data, Mapping):
        return Target()
    kind = data.get("type")
    if kind == TargetType.PLUGIN.value:
        return Target(type=TargetType.PLUGIN, values=_clean_values(data.get("value")))
    if kind == TargetType.COMMAND.value:
        return Target(type=TargetType.COMMAND, values=_clean_values(data.get("value")))
    return Target()


def _coerce_priority(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return 0
        return int(parsed) if math.isfinite(parsed) else 0
    return 0


def normalize_rule(data: Any) -> Rule:
    """Coerce arbitrary input into a canonical Rule, assigning an id if absent."""
    if isinstance(data, Rule):
        data = rule_to_dict(data)
    if not isinstance(data, Mapping):
        data = {}

    rule_id = data.get("id")
    if not isinstance(rule_id, str) or not rule_id:
        rule_id = generate_id()

    name = data.get("name")
    if not isinstance(name, str) or not name:
        name = DEFAULT_RULE_NAME

    enabled = data.get("enabled")
    response = data.get("response")

    return Rule(
        id=rule_id,
        name=name,
        enabled=True if enabled is None else bool(enabled),
        priority=_coerce_priority(data.get("priority")),
        action=RuleAction.BYPASS if data.get("action") == RuleAction.BYPASS.value else RuleAction.BLOCK,
        target=normalize_target(data.get("target")),
        condition=normalize_expr(data.get("condition")),
        response=response if isinstance(response, str) else "",
    )


def clone_expr(expr: Expression) -> Expression:
    if isinstance(expr, GroupExpr):
        return GroupExpr(operator=expr.operator, children=[clone_expr(c) for c in expr.children])
    if isinstance(expr, NotExpr):
        return NotExpr(child=clone_expr(expr.child))
    return CompareExpr(field=expr.field, operator=expr.operator, value=copy.deepcopy(expr.value))


def clone_rule(rule: Rule) -> Rule:
    return Rule(
        id=rule.id,
        name=rule.name,
        enabled=rule.enabled,
        priority=rule.priority,
        action=rule.action,
        target=Target(type=rule.target.type, values=list(rule.target.values)),
        condition=clone_expr(rule.condition),
        response=rule.response,
    )


def sort_rules(rules: Iterable[Rule]) -> list[Rule]:
    """Evaluation order: priority ascending, then id."""
    return sorted(rules, key=lambda rule: (rule.priority, rule.id))


def match_target(target: Target, vars: Mapping[str, Any]) -> bool:
    if target.type == TargetType.GLOBAL:
        return True
    if target.type == TargetType.PLUGIN:
        key = vars.get("pluginKey")
    else:
        key = vars.get("commandName")
    if not isinstance(key, str) or not key:
        return False
    return key in target.values
