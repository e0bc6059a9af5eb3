"""Rule enforcement: attribute maps and first-match decisions.

First matching rule wins (short-circuit):
  BYPASS → stop, let the event through
  BLOCK  → stop, drop the event (optionally answering with a response)

If no rule matches, the verdict is ALLOW.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from filterpro.evaluator import evaluate
from filterpro.models import Rule, RuleAction, TargetType
from filterpro.rules import match_target, sort_rules
from filterpro.tracing import Tracer, null_tracer


class FilterVerdict(Enum):
    ALLOW = "allow"
    BYPASS = "bypass"
    BLOCK = "block"


@dataclass
class FilterDecision:
    verdict: FilterVerdict = FilterVerdict.ALLOW
    response: str = ""
    rule_id: str = ""
    rule_name: str = ""

    @property
    def is_allowed(self) -> bool:
        return self.verdict != FilterVerdict.BLOCK

    @property
    def is_blocked(self) -> bool:
        return self.verdict == FilterVerdict.BLOCK


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def build_vars(session: Any, **extras: Any) -> dict[str, Any]:
    """Attribute map that rule conditions are evaluated against."""
    vars = {
        "platform": _text(getattr(session, "platform", None)),
        "selfId": _text(getattr(session, "self_id", None)),
        "userId": _text(getattr(session, "user_id", None)),
        "channelId": _text(getattr(session, "channel_id", None)),
        "guildId": _text(getattr(session, "guild_id", None)),
        "isDirect": getattr(session, "is_direct", None),
        "content": _text(getattr(session, "content", None)),
        "type": _text(getattr(session, "type", None)),
        "event": getattr(session, "event", None),
        "author": getattr(session, "author", None),
        "quote": getattr(session, "quote", None),
    }
    vars.update(extras)
    return vars


def decide(
    rules: Iterable[Rule],
    vars: dict[str, Any],
    target_type: TargetType,
    trace: Tracer = null_tracer,
    stage: str = "message",
) -> FilterDecision:
    for rule in sort_rules(rules):
        if not rule.enabled or rule.target.type != target_type:
            continue
        if not match_target(rule.target, vars):
            continue
        matched = evaluate(rule.condition, vars)
        trace(f"{stage}:evaluate", {
            "ruleId": rule.id,
            "ruleName": rule.name,
            "action": rule.action.value,
            "matched": matched,
        })
        if not matched:
            continue
        if rule.action == RuleAction.BYPASS:
            verdict = FilterVerdict.BYPASS
        else:
            verdict = FilterVerdict.BLOCK
        trace(f"{stage}:action", {"ruleId": rule.id, "action": verdict.value, "response": rule.response})
        return FilterDecision(
            verdict=verdict,
            response=rule.response if verdict == FilterVerdict.BLOCK else "",
            rule_id=rule.id,
            rule_name=rule.name,
        )
    trace(f"{stage}:pass", {"reason": "no-rule-matched"})
    return FilterDecision()


def evaluate_plugin_rules(
    plugin_key: str,
    rules: Iterable[Rule],
    session: Any,
    trace: Tracer = null_tracer,
) -> bool:
    """Admission result for ``plugin_key``: False only if a block rule matches."""
    vars = build_vars(session, pluginKey=plugin_key)
    decision = decide(rules, vars, TargetType.PLUGIN, trace, stage="native-filter")
    return decision.is_allowed


def collect_active_plugin_keys(rules: Iterable[Rule]) -> set[str]:
    keys: set[str] = set()
    for rule in rules:
        if rule.enabled and rule.target.type == TargetType.PLUGIN:
            keys.update(rule.target.values)
    return keys
