"""Interfaces the host application provides to the engine.

The host owns a tree of plugin contexts. A context's ``scope`` may carry a
registration record mapping plugin keys (``~name:ident``) to forks; each fork
runs inside its own ``context`` and is admitted through the ``filter``
predicate of its ``parent`` context.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any, Protocol, runtime_checkable

FilterFn = Callable[[Any], bool]


class LifecycleEvent(str, Enum):
    READY = "ready"
    FORK = "fork"
    BEFORE_UPDATE = "before-update"
    UPDATE = "update"
    RUNTIME = "runtime"
    DISPOSE = "dispose"
    COMMAND_ADDED = "command-added"


# Events after which the plugin tree may have changed.
TREE_EVENTS = frozenset({
    LifecycleEvent.READY,
    LifecycleEvent.FORK,
    LifecycleEvent.BEFORE_UPDATE,
    LifecycleEvent.UPDATE,
    LifecycleEvent.RUNTIME,
})


class PluginScope(Protocol):
    records: Mapping[str, PluginFork] | None


class PluginContext(Protocol):
    scope: PluginScope | None
    filter: FilterFn


class PluginFork(Protocol):
    context: PluginContext | None
    parent: PluginContext | None
    filterable: bool


class Command(Protocol):
    name: str
    scope: PluginScope | None


class Session(Protocol):
    platform: str
    self_id: str
    user_id: str
    channel_id: str
    guild_id: str
    is_direct: bool
    content: str
    type: str
    event: Any
    author: Any
    quote: Any

    async def send(self, text: str) -> Any: ...


class PluginHost(Protocol):
    root: PluginContext

    def commands(self) -> Iterable[Command]: ...


@runtime_checkable
class PathResolvingHost(PluginHost, Protocol):
    """A host that can list the registration keys above a scope."""

    def paths(self, scope: PluginScope) -> Iterable[str]:
        """Registration keys of ``scope`` and its ancestors, nearest first."""
        ...
