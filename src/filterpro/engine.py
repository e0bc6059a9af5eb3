"""Filter engine: wires the rule store, resolver and interception to a host."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from filterpro.config import FilterSettings
from filterpro.enforcement import FilterDecision, FilterVerdict, build_vars, decide
from filterpro.host import LifecycleEvent, TREE_EVENTS
from filterpro.interception import InterceptionManager
from filterpro.models import CommandOption, TargetType
from filterpro.persistence import RulePersister, read_rules
from filterpro.resolver import TargetResolver, collect_plugin_forks
from filterpro.store import RuleStore
from filterpro.tracing import make_tracer

logger = logging.getLogger(__name__)


class FilterEngine:
    """One engine per host; ``dispose()`` undoes every change made to the host."""

    def __init__(self, host: Any, settings: FilterSettings | None = None) -> None:
        self.host = host
        self.settings = settings or FilterSettings()
        self.trace = make_tracer(logger, debug=self.settings.debug)
        self.store = RuleStore()
        self.persister = RulePersister(self.settings.rules_path)
        self.resolver = TargetResolver(host, trace=self.trace)
        self.interception = InterceptionManager(lambda: self.store.rules, trace=self.trace)
        self._ready: asyncio.Future[None] | None = None
        self._disposed = False

    # ── Lifecycle ───────────────────────────────────────────────────────────

    async def _initialize(self) -> None:
        loaded = await read_rules(self.settings.rules_path)
        if loaded is not None:
            self.store.replace(loaded)
            logger.info("Loaded %d rules from %s", len(loaded), self.settings.rules_path)
            return
        self.store.replace([])
        await self.persister.persist(self.store.rules)

    async def _load(self) -> None:
        try:
            await self._initialize()
        except Exception as e:
            logger.warning("Failed to initialize persistent rules: %s", e)
            self.store.replace([])

    def _ensure_loading(self) -> asyncio.Future[None]:
        if self._ready is None:
            self._ready = asyncio.ensure_future(self._load())
        return self._ready

    async def wait_ready(self) -> None:
        await self._ensure_loading()

    async def start(self) -> None:
        """Load the rules file once, then install admission wrappers."""
        self._ensure_loading()
        await self.sync()

    def dispose(self) -> None:
        self._disposed = True
        self.interception.restore()
        logger.info("Filter engine disposed, admission predicates restored")

    async def handle_event(self, event: LifecycleEvent, payload: Any = None) -> None:
        if event == LifecycleEvent.DISPOSE:
            self.dispose()
        elif event == LifecycleEvent.COMMAND_ADDED:
            self.resolver.bind_command(payload)
            self.trace("command:added", {"command": str(getattr(payload, "name", "") or "")})
        elif event in TREE_EVENTS:
            self.resolver.invalidate()
            await self.sync()

    # ── Targets ─────────────────────────────────────────────────────────────

    def _commands(self) -> list[Any]:
        commands = getattr(self.host, "commands", None)
        if not callable(commands):
            return []
        return list(commands() or [])

    async def refresh_targets(self) -> None:
        await self.wait_ready()
        self.resolver.rebuild()
        commands = self._commands()
        for command in commands:
            self.resolver.bind_command(command)
        self.trace("resolver:bind-existing:done", {"commandCount": len(commands)})

    def list_commands(self) -> list[CommandOption]:
        options = []
        for command in self._commands():
            name = str(getattr(command, "name", "") or "")
            options.append(CommandOption(name=name, label=name))
        return options

    async def sync(self) -> None:
        """Rebuild targets, then re-wrap plugin admission predicates."""
        await self.refresh_targets()
        if self._disposed:
            return
        self.interception.sync(collect_plugin_forks(self.host.root))

    async def commit(self) -> None:
        await self.persister.persist(self.store.rules)
        await self.sync()

    # ── Decision points ─────────────────────────────────────────────────────

    async def decide_message(self, session: Any) -> FilterDecision:
        await self.wait_ready()
        vars = build_vars(session)
        self.trace("message:incoming", {
            "platform": vars["platform"],
            "userId": vars["userId"],
            "channelId": vars["channelId"],
            "guildId": vars["guildId"],
            "isDirect": vars["isDirect"],
            "content": vars["content"],
            "ruleCount": len(self.store),
        })
        return decide(self.store.rules, vars, TargetType.GLOBAL, self.trace, stage="message")

    async def handle_message(self, session: Any, next_handler: Callable[[], Awaitable[Any]]) -> Any:
        """Message middleware: returns the response text on block, '' to swallow."""
        decision = await self.decide_message(session)
        if decision.is_blocked:
            return decision.response
        return await next_handler()

    async def decide_command(self, session: Any, command: Any) -> FilterDecision:
        await self.wait_ready()
        plugin = self.resolver.resolve_by_command(command)
        command_name = str(getattr(command, "name", "") or "")
        vars = build_vars(
            session,
            commandName=command_name,
            pluginKey=plugin.key if plugin else None,
            pluginName=plugin.name if plugin else None,
        )
        self.trace("command:incoming", {
            "command": command_name,
            "pluginKey": vars["pluginKey"],
            "pluginName": vars["pluginName"],
            "isDirect": vars["isDirect"],
            "guildId": vars["guildId"],
            "content": vars["content"],
            "ruleCount": len(self.store),
        })
        return decide(self.store.rules, vars, TargetType.COMMAND, self.trace, stage="command")

    async def before_command_execute(self, session: Any, command: Any) -> str | None:
        """Pre-execution hook: returns '' to cancel the command, None to let it run."""
        decision = await self.decide_command(session, command)
        if decision.verdict != FilterVerdict.BLOCK:
            return None
        if decision.response:
            await session.send(decision.response)
        return ""
