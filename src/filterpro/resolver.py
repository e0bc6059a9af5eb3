"""Target resolution over the host's live plugin tree.

The tree is reached through registration records hanging off context scopes.
Subtrees may be shared between forks, so every walk keeps a visited set keyed
by record identity.
"""

from __future__ import annotations

import logging
import weakref
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from filterpro.host import PathResolvingHost
from filterpro.models import TargetOption
from filterpro.tracing import Tracer, null_tracer

logger = logging.getLogger(__name__)

GROUP_PLUGIN = "group"


def normalize_key(raw_key: Any) -> str:
    """Strip the disabled-marker prefix from a registration key."""
    key = str(raw_key)
    return key[1:] if key.startswith("~") else key


def split_key(key: str) -> tuple[str, str]:
    name, _, ident = key.partition(":")
    return name, ident


def _records_of(context: Any) -> Mapping[str, Any] | None:
    scope = getattr(context, "scope", None)
    records = getattr(scope, "records", None)
    return records if isinstance(records, Mapping) else None


def iter_records(
    root: Any,
    prune: Callable[[Any], bool] | None = None,
) -> Iterator[tuple[str, Any]]:
    """Yield ``(key, fork)`` for every registration below ``root``.

    Forks for which ``prune`` returns True are skipped along with their subtree.
    """
    visited: set[int] = set()
    stack = [root]
    while stack:
        records = _records_of(stack.pop())
        if records is None or id(records) in visited:
            continue
        visited.add(id(records))
        children = []
        for raw_key, fork in list(records.items()):
            if prune is not None and prune(fork):
                continue
            yield normalize_key(raw_key), fork
            children.append(getattr(fork, "context", None))
        # Depth-first, in registration order
        stack.extend(reversed(children))


def _opted_out(fork: Any) -> bool:
    return getattr(fork, "filterable", True) is False


def collect_plugin_targets(root: Any) -> list[TargetOption]:
    targets: dict[str, TargetOption] = {}
    for key, _fork in iter_records(root, prune=_opted_out):
        name, ident = split_key(key)
        if not name or name == GROUP_PLUGIN or key in targets:
            continue
        targets[key] = TargetOption(
            key=key,
            name=name,
            ident=ident,
            label=f"{name}:{ident}" if ident else name,
        )
    return sorted(targets.values(), key=lambda item: item.key)


def collect_plugin_forks(root: Any) -> dict[str, Any]:
    return {key: fork for key, fork in iter_records(root)}


class TargetResolver:
    """Maps scopes and commands of the live tree to plugin targets."""

    def __init__(self, host: Any, trace: Tracer = null_tracer) -> None:
        self._host = host
        self._trace = trace
        self._targets: list[TargetOption] = []
        self._by_key: dict[str, TargetOption] = {}
        self._by_scope: dict[int, tuple[Any, TargetOption]] = {}
        # A command's owning plugin never changes; don't keep commands alive.
        self._by_command: weakref.WeakKeyDictionary[Any, TargetOption] = weakref.WeakKeyDictionary()
        self._stale = True

    def invalidate(self) -> None:
        self._stale = True

    def _ensure_fresh(self) -> None:
        if self._stale:
            self.rebuild()

    def rebuild(self) -> None:
        root = self._host.root
        self._targets = collect_plugin_targets(root)
        self._by_key = {item.key: item for item in self._targets}
        self._by_scope = {}
        self._trace("resolver:rebuild:start", {
            "targetCount": len(self._targets),
            "sample": [item.key for item in self._targets[:10]],
        })
        for key, fork in iter_records(root):
            target = self._by_key.get(key)
            scope = getattr(getattr(fork, "context", None), "scope", None)
            if target is not None and scope is not None:
                self._by_scope[id(scope)] = (scope, target)
        self._stale = False
        self._trace("resolver:rebuild:done", {
            "targetCount": len(self._targets),
            "scopeBindings": len(self._by_scope),
        })

    def list(self) -> list[TargetOption]:
        self._ensure_fresh()
        return list(self._targets)

    def get(self, key: str) -> TargetOption | None:
        self._ensure_fresh()
        return self._by_key.get(key)

    def resolve_by_scope(self, scope: Any) -> TargetOption | None:
        if scope is None:
            return None
        self._ensure_fresh()
        entry = self._by_scope.get(id(scope))
        if entry is not None and entry[0] is scope:
            return entry[1]
        if not isinstance(self._host, PathResolvingHost):
            return None
        for raw_key in self._host.paths(scope) or ():
            found = self._by_key.get(normalize_key(raw_key))
            if found is not None:
                return found
        return None

    def _remember(self, command: Any, target: TargetOption) -> None:
        try:
            self._by_command[command] = target
        except TypeError:
            logger.debug("Command %r is not weakly referenceable, not caching", command)

    def resolve_by_command(self, command: Any) -> TargetOption | None:
        name = str(getattr(command, "name", "") or "")
        try:
            cached = self._by_command.get(command)
        except TypeError:
            cached = None
        if cached is not None:
            self._trace("resolver:resolve:cache-hit", {"command": name, "pluginKey": cached.key})
            return cached
        resolved = self.resolve_by_scope(getattr(command, "scope", None))
        if resolved is None:
            self._trace("resolver:resolve:miss", {"command": name})
            return None
        self._remember(command, resolved)
        self._trace("resolver:resolve:resolved", {
            "command": name,
            "pluginKey": resolved.key,
            "pluginName": resolved.name,
        })
        return resolved

    def bind_command(self, command: Any) -> TargetOption | None:
        name = str(getattr(command, "name", "") or "")
        resolved = self.resolve_by_scope(getattr(command, "scope", None))
        if resolved is None:
            self._trace("resolver:bind:miss", {"command": name})
            return None
        self._remember(command, resolved)
        self._trace("resolver:bind:ok", {
            "command": name,
            "pluginKey": resolved.key,
            "pluginName": resolved.name,
        })
        return resolved
