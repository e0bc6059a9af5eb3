"""In-memory rule state.

All operations are synchronous and complete without yielding, so two console
mutations can never interleave. Persisting and re-syncing after a mutation is
the caller's job (see ``FilterEngine.commit``).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from filterpro.models import Rule, rule_to_dict
from filterpro.rules import generate_id, normalize_rule, sort_rules

logger = logging.getLogger(__name__)


class RuleStore:
    def __init__(self, rules: Iterable[Rule] | None = None) -> None:
        self._rules: list[Rule] = []
        if rules is not None:
            self.replace(rules)

    @property
    def rules(self) -> list[Rule]:
        return self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def sorted(self) -> list[Rule]:
        return sort_rules(self._rules)

    def get(self, rule_id: str) -> Rule | None:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    def _fresh_id(self) -> str:
        taken = {rule.id for rule in self._rules}
        while True:
            candidate = generate_id()
            if candidate not in taken:
                return candidate

    def replace(self, rules: Iterable[Rule]) -> None:
        self._rules = []
        for rule in rules:
            if self.get(rule.id) is not None:
                new_id = self._fresh_id()
                logger.warning("Duplicate rule id %s, reassigned to %s", rule.id, new_id)
                rule.id = new_id
            self._rules.append(rule)

    def create(self, data: Mapping[str, Any] | None) -> Rule:
        rule = normalize_rule(data or {})
        if self.get(rule.id) is not None:
            rule.id = self._fresh_id()
        self._rules.append(rule)
        return rule

    def update(self, data: Mapping[str, Any] | None) -> Rule | None:
        if not isinstance(data, Mapping) or not data.get("id"):
            return None
        for index, prev in enumerate(self._rules):
            if prev.id == data["id"]:
                merged = {**rule_to_dict(prev), **data, "id": prev.id}
                self._rules[index] = normalize_rule(merged)
                return self._rules[index]
        return None

    def delete(self, rule_id: Any) -> bool:
        for index, rule in enumerate(self._rules):
            if rule.id == rule_id:
                del self._rules[index]
                return True
        return False

    def reorder(self, ids: Any) -> bool:
        """Assign priorities 0..n-1 in the order of ``ids``.

        Rules missing from ``ids`` go last, keeping their previous relative
        order. Returns False (and changes nothing) for a non-list payload.
        """
        if not isinstance(ids, (list, tuple)):
            return False
        rank = {rule_id: index for index, rule_id in enumerate(ids) if isinstance(rule_id, str)}
        unranked = len(rank)
        ordered = sorted(self.sorted(), key=lambda rule: rank.get(rule.id, unranked))
        for index, rule in enumerate(ordered):
            rule.priority = index
        self._rules = ordered
        return True

    def toggle(self, rule_id: Any, enabled: Any) -> Rule | None:
        if not rule_id:
            return None
        rule = self.get(rule_id)
        if rule is None:
            return None
        rule.enabled = bool(enabled)
        return rule
