"""Administrative operations over the rule set.

Every value handed out is a fresh dict, so callers cannot reach into the
engine's in-memory rules. Every mutation persists the rules, re-syncs
interception and pushes the refreshed list to subscribers.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from filterpro.engine import FilterEngine
from filterpro.models import Rule, rule_to_dict

logger = logging.getLogger(__name__)

RulesListener = Callable[[list[dict[str, Any]]], Awaitable[None]]


class AuthorityError(Exception):
    pass


class UnknownOperationError(Exception):
    pass


class RuleConsole:
    def __init__(self, engine: FilterEngine) -> None:
        self.engine = engine
        self._listeners: list[RulesListener] = []
        self._operations: dict[str, Callable[[Any], Awaitable[Any]]] = {
            "filter-pro/list": lambda _: self.list(),
            "filter-pro/targets": lambda _: self.list_targets(),
            "filter-pro/commands": lambda _: self.list_commands(),
            "filter-pro/create": self.create,
            "filter-pro/update": self.update,
            "filter-pro/delete": self.delete,
            "filter-pro/reorder": self.reorder,
            "filter-pro/toggle": self._toggle_payload,
        }

    @property
    def required_authority(self) -> int:
        return self.engine.settings.console_authority

    def subscribe(self, listener: RulesListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: RulesListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def dispatch(self, event: str, payload: Any = None, authority: int = 0) -> Any:
        operation = self._operations.get(event)
        if operation is None:
            raise UnknownOperationError(event)
        if authority < self.required_authority:
            raise AuthorityError(f"{event} requires authority {self.required_authority}, got {authority}")
        return await operation(payload)

    def _snapshot(self) -> list[dict[str, Any]]:
        return [rule_to_dict(rule) for rule in self.engine.store.sorted()]

    async def _refresh(self) -> None:
        await self.engine.commit()
        snapshot = self._snapshot()
        for listener in list(self._listeners):
            await listener(snapshot)

    # ── Queries ─────────────────────────────────────────────────────────────

    async def list(self) -> list[dict[str, Any]]:
        await self.engine.wait_ready()
        return self._snapshot()

    async def list_targets(self) -> list[dict[str, str]]:
        await self.engine.refresh_targets()
        return [item.to_dict() for item in self.engine.resolver.list()]

    async def list_commands(self) -> list[dict[str, str]]:
        return [item.to_dict() for item in self.engine.list_commands()]

    # ── Mutations ───────────────────────────────────────────────────────────

    async def create(self, data: Any) -> dict[str, Any]:
        await self.engine.wait_ready()
        rule = self.engine.store.create(data if isinstance(data, dict) else {})
        logger.info("Created rule %s (%s)", rule.id, rule.name)
        await self._refresh()
        return rule_to_dict(rule)

    async def update(self, data: Any) -> dict[str, Any] | None:
        await self.engine.wait_ready()
        rule = self.engine.store.update(data)
        if rule is None:
            return None
        logger.info("Updated rule %s", rule.id)
        await self._refresh()
        return rule_to_dict(rule)

    async def delete(self, rule_id: Any) -> bool:
        await self.engine.wait_ready()
        if not self.engine.store.delete(rule_id):
            return False
        logger.info("Deleted rule %s", rule_id)
        await self._refresh()
        return True

    async def reorder(self, ids: Any) -> list[dict[str, Any]]:
        await self.engine.wait_ready()
        if not self.engine.store.reorder(ids):
            return self._snapshot()
        await self._refresh()
        return self._snapshot()

    async def toggle(self, rule_id: Any, enabled: Any) -> dict[str, Any] | None:
        await self.engine.wait_ready()
        rule: Rule | None = self.engine.store.toggle(rule_id, enabled)
        if rule is None:
            return None
        logger.info("Rule %s %s", rule.id, "enabled" if rule.enabled else "disabled")
        await self._refresh()
        return rule_to_dict(rule)

    async def _toggle_payload(self, payload: Any) -> dict[str, Any] | None:
        if not isinstance(payload, dict):
            return None
        return await self.toggle(payload.get("id"), payload.get("enabled"))
