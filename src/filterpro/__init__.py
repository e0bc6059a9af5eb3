"""filterpro: rule-based message and command filtering for plugin hosts."""

from filterpro.config import FilterSettings
from filterpro.console import AuthorityError, RuleConsole, UnknownOperationError
from filterpro.engine import FilterEngine
from filterpro.enforcement import FilterDecision, FilterVerdict
from filterpro.evaluator import evaluate
from filterpro.host import LifecycleEvent
from filterpro.models import (
    CommandOption,
    CompareExpr,
    GroupExpr,
    NotExpr,
    Rule,
    RuleAction,
    Target,
    TargetOption,
    TargetType,
)
from filterpro.rules import clone_expr, clone_rule, normalize_expr, normalize_rule, sort_rules

__all__ = [
    "AuthorityError",
    "CommandOption",
    "CompareExpr",
    "FilterDecision",
    "FilterEngine",
    "FilterSettings",
    "FilterVerdict",
    "GroupExpr",
    "LifecycleEvent",
    "NotExpr",
    "Rule",
    "RuleAction",
    "RuleConsole",
    "Target",
    "TargetOption",
    "TargetType",
    "UnknownOperationError",
    "clone_expr",
    "clone_rule",
    "evaluate",
    "normalize_expr",
    "normalize_rule",
    "sort_rules",
]
