"""Admission-predicate wrapping for plugin-targeted rules.

Plugin rules are enforced before the host dispatches to a plugin by wrapping
the ``filter`` predicate of the plugin's host context. The manager keeps a
ledger of what it installed; every sync restores everything first and then
reinstalls from scratch, so there is never more than one of our wrappers on a
context.

A block from this path cannot carry a response text: the predicate only
returns a bool.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from filterpro.enforcement import collect_active_plugin_keys, evaluate_plugin_rules
from filterpro.host import FilterFn
from filterpro.models import Rule
from filterpro.tracing import Tracer, null_tracer

logger = logging.getLogger(__name__)


@dataclass
class Injection:
    context: Any
    original: FilterFn
    wrapper: FilterFn
    plugin_keys: list[str] = field(default_factory=list)


class InterceptionManager:
    def __init__(self, rules: Callable[[], Iterable[Rule]], trace: Tracer = null_tracer) -> None:
        self._rules = rules
        self._trace = trace
        self._ledger: dict[int, Injection] = {}

    @property
    def injections(self) -> list[Injection]:
        return list(self._ledger.values())

    def restore(self) -> None:
        """Put back every original predicate we replaced."""
        for injection in self._ledger.values():
            # The host may have replaced the predicate itself since; leave that alone.
            if injection.context.filter is injection.wrapper:
                injection.context.filter = injection.original
        self._ledger.clear()

    def _make_wrapper(self, original: FilterFn, plugin_keys: list[str]) -> FilterFn:
        def wrapped(session: Any) -> bool:
            if not original(session):
                return False
            rules = list(self._rules())
            return all(
                evaluate_plugin_rules(key, rules, session, self._trace)
                for key in plugin_keys
            )

        return wrapped

    def sync(self, forks: Mapping[str, Any]) -> None:
        self.restore()
        active = collect_active_plugin_keys(self._rules())
        self._trace("native-filter:sync:start", {
            "activeTargetCount": len(active),
            "discoveredForks": len(forks),
        })

        pending: dict[int, tuple[Any, list[str]]] = {}
        for key, fork in forks.items():
            context = getattr(fork, "parent", None)
            if context is None or not callable(getattr(context, "filter", None)):
                continue
            if key not in active:
                continue
            entry = pending.setdefault(id(context), (context, []))
            entry[1].append(key)

        for context_id, (context, keys) in pending.items():
            # Capture the current base predicate; the host may have swapped it since last sync.
            original = context.filter
            wrapper = self._make_wrapper(original, keys)
            context.filter = wrapper
            self._ledger[context_id] = Injection(context, original, wrapper, keys)

        logger.debug("Installed %d admission wrappers for %d active plugin keys", len(self._ledger), len(active))
        self._trace("native-filter:sync:done", {"activeTargetCount": len(active)})
