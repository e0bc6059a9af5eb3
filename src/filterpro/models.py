"""Rule, target and expression data shapes.

Expressions form a tagged union (group / not / compare). They are treated as
immutable once built: edits replace whole subtrees. The dict helpers at the
bottom produce JSON-ready copies used for persistence and the console.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Union


class RuleAction(str, Enum):
    BLOCK = "block"
    BYPASS = "bypass"


class TargetType(str, Enum):
    GLOBAL = "global"
    PLUGIN = "plugin"
    COMMAND = "command"


GROUP_OPERATORS = ("and", "or")

COMPARE_OPERATORS = (
    "eq",
    "ne",
    "in",
    "nin",
    "includes",
    "notincludes",
    "regex",
    "gt",
    "gte",
    "lt",
    "lte",
    "exists",
)


@dataclass
class GroupExpr:
    operator: str = "and"
    children: list[Expression] = field(default_factory=list)


@dataclass
class NotExpr:
    child: Expression


@dataclass
class CompareExpr:
    field: str = "content"
    operator: str = "eq"
    value: Any = None


Expression = Union[GroupExpr, NotExpr, CompareExpr]


@dataclass
class Target:
    type: TargetType = TargetType.GLOBAL
    values: list[str] = field(default_factory=list)


@dataclass
class Rule:
    id: str
    name: str = "new-rule"
    enabled: bool = True
    priority: int = 0
    action: RuleAction = RuleAction.BLOCK
    target: Target = field(default_factory=Target)
    condition: Expression = field(default_factory=GroupExpr)
    response: str = ""


@dataclass
class TargetOption:
    """Human-addressable handle for a live plugin instance."""

    key: str
    name: str
    ident: str
    label: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class CommandOption:
    name: str
    label: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


# ── Serialization ───────────────────────────────────────────────────────────


def expr_to_dict(expr: Expression) -> dict[str, Any]:
    if isinstance(expr, GroupExpr):
        return {
            "type": "group",
            "operator": expr.operator,
            "children": [expr_to_dict(child) for child in expr.children],
        }
    if isinstance(expr, NotExpr):
        return {"type": "not", "child": expr_to_dict(expr.child)}
    return {
        "type": "compare",
        "field": expr.field,
        "operator": expr.operator,
        "value": copy.deepcopy(expr.value),
    }


def target_to_dict(target: Target) -> dict[str, Any]:
    if target.type == TargetType.GLOBAL:
        return {"type": TargetType.GLOBAL.value}
    return {"type": target.type.value, "value": list(target.values)}


def rule_to_dict(rule: Rule) -> dict[str, Any]:
    return {
        "id": rule.id,
        "name": rule.name,
        "enabled": rule.enabled,
        "priority": rule.priority,
        "action": rule.action.value,
        "target": target_to_dict(rule.target),
        "condition": expr_to_dict(rule.condition),
        "response": rule.response,
    }
