"""Tests for the filter engine: loading, decision points, lifecycle."""

import json
from unittest.mock import AsyncMock

import pytest

from filterpro.engine import FilterEngine
from filterpro.enforcement import FilterVerdict, build_vars
from filterpro.host import LifecycleEvent
from filterpro.rules import normalize_rule

from conftest import FakeCommand, FakeFork, FakeSession, compare, rule_input


def add_rules(engine, *inputs):
    for data in inputs:
        engine.store.create(data)


class TestBuildVars:
    def test_session_attributes(self):
        session = FakeSession(content="hi", guild_id="g", is_direct=False, author={"name": "bob"})
        vars = build_vars(session, commandName="help")
        assert vars["content"] == "hi"
        assert vars["guildId"] == "g"
        assert vars["isDirect"] is False
        assert vars["author"] == {"name": "bob"}
        assert vars["selfId"] == "bot"
        assert vars["commandName"] == "help"

    def test_missing_attributes_become_empty(self):
        vars = build_vars(object())
        assert vars["userId"] == ""
        assert vars["isDirect"] is None
        assert vars["quote"] is None


class TestLoading:
    async def test_missing_file_creates_canonical_file(self, engine, settings):
        assert engine.store.rules == []
        assert json.loads(settings.rules_path.read_text(encoding="utf-8")) == []

    async def test_loads_and_normalizes_existing_file(self, host, settings):
        settings.data_dir.mkdir(parents=True)
        settings.rules_path.write_text(
            json.dumps([rule_input(id="r1", condition=compare("content", "foo", "x"))]),
            encoding="utf-8",
        )
        engine = FilterEngine(host, settings)
        await engine.start()
        assert len(engine.store) == 1
        assert engine.store.rules[0].condition.operator == "eq"

    async def test_failed_initialization_recovers_empty(self, host, settings, monkeypatch):
        monkeypatch.setattr("filterpro.engine.read_rules", AsyncMock(side_effect=RuntimeError("disk gone")))
        engine = FilterEngine(host, settings)
        await engine.start()
        assert engine.store.rules == []
        decision = await engine.decide_message(FakeSession(content="spam"))
        assert decision.verdict == FilterVerdict.ALLOW

    async def test_decisions_wait_for_initial_load(self, host, settings):
        settings.data_dir.mkdir(parents=True)
        settings.rules_path.write_text(json.dumps([rule_input(id="r1")]), encoding="utf-8")
        engine = FilterEngine(host, settings)
        # No start(): the first decision triggers and awaits the load
        decision = await engine.decide_message(FakeSession(content="spam"))
        assert decision.is_blocked

    async def test_command_decisions_wait_for_initial_load(self, host, settings):
        settings.data_dir.mkdir(parents=True)
        settings.rules_path.write_text(
            json.dumps([rule_input(id="r1", target={"type": "command", "value": "forecast"}, response="later")]),
            encoding="utf-8",
        )
        engine = FilterEngine(host, settings)
        session = FakeSession(content="spam")
        assert await engine.before_command_execute(session, FakeCommand("forecast")) == ""
        assert session.sent == ["later"]
        assert len(engine.store) == 1


class TestMessageAdmission:
    async def test_block_silently(self, engine):
        add_rules(engine, rule_input(id="r1"))
        next_handler = AsyncMock(return_value="handled")
        assert await engine.handle_message(FakeSession(content="spam"), next_handler) == ""
        next_handler.assert_not_awaited()
        assert await engine.handle_message(FakeSession(content="ham"), next_handler) == "handled"

    async def test_block_with_response(self, engine):
        add_rules(engine, rule_input(id="r1", response="no spam please"))
        next_handler = AsyncMock()
        assert await engine.handle_message(FakeSession(content="spam"), next_handler) == "no spam please"
        next_handler.assert_not_awaited()

    async def test_first_match_bypass_wins(self, engine):
        add_rules(
            engine,
            rule_input(id="a", priority=0, action="bypass", condition=compare("guildId", "eq", "A")),
            rule_input(id="b", priority=1, action="block", condition=compare("isDirect", "eq", False)),
        )
        next_handler = AsyncMock(return_value="delivered")
        session = FakeSession(guild_id="A", is_direct=False)
        assert await engine.handle_message(session, next_handler) == "delivered"

        decision = await engine.decide_message(FakeSession(guild_id="B", is_direct=False))
        assert decision.is_blocked
        assert decision.rule_id == "b"

    async def test_disabled_and_targeted_rules_ignored(self, engine):
        add_rules(
            engine,
            rule_input(id="off", enabled=False),
            rule_input(id="plug", target={"type": "plugin", "value": "echo"}),
            rule_input(id="cmd", target={"type": "command", "value": "help"}),
        )
        decision = await engine.decide_message(FakeSession(content="spam"))
        assert decision.verdict == FilterVerdict.ALLOW

    async def test_equal_priority_ordered_by_id(self, engine):
        add_rules(
            engine,
            rule_input(id="b", action="block", response="from b"),
            rule_input(id="a", action="block", response="from a"),
        )
        decision = await engine.decide_message(FakeSession(content="spam"))
        assert decision.response == "from a"


class TestCommandExecution:
    @pytest.fixture
    def command(self, forks):
        return FakeCommand("forecast", forks["weather:main"].context.scope)

    async def test_block_sends_response_and_cancels(self, engine, command):
        add_rules(engine, rule_input(
            target={"type": "command", "value": ["forecast"]},
            condition=compare("pluginKey", "eq", "weather:main"),
            response="forecast disabled",
        ))
        session = FakeSession()
        assert await engine.before_command_execute(session, command) == ""
        assert session.sent == ["forecast disabled"]

    async def test_block_without_response(self, engine, command):
        add_rules(engine, rule_input(
            target={"type": "command", "value": "forecast"},
            condition=compare("commandName", "eq", "forecast"),
        ))
        session = FakeSession()
        assert await engine.before_command_execute(session, command) == ""
        assert session.sent == []

    async def test_bypass_and_no_match_allow(self, engine, command):
        add_rules(
            engine,
            rule_input(id="a", priority=0, action="bypass", target={"type": "command", "value": "forecast"},
                       condition=compare("userId", "eq", "u1")),
            rule_input(id="b", priority=1, target={"type": "command", "value": "forecast"},
                       condition={"type": "group", "operator": "and", "children": []}),
        )
        assert await engine.before_command_execute(FakeSession(user_id="u1"), command) is None
        assert await engine.before_command_execute(FakeSession(user_id="u2"), command) == ""
        other = FakeCommand("help")
        assert await engine.before_command_execute(FakeSession(user_id="u2"), other) is None

    async def test_plugin_name_exposed(self, engine, command):
        add_rules(engine, rule_input(
            target={"type": "command", "value": "forecast"},
            condition=compare("pluginName", "eq", "weather"),
        ))
        decision = await engine.decide_command(FakeSession(), command)
        assert decision.is_blocked

    async def test_global_rules_do_not_apply(self, engine, command):
        add_rules(engine, rule_input(condition=compare("commandName", "eq", "forecast")))
        assert await engine.before_command_execute(FakeSession(), command) is None


class TestLifecycle:
    async def test_start_wraps_plugin_rules(self, host, settings, forks):
        settings.data_dir.mkdir(parents=True)
        rule = rule_input(id="p", target={"type": "plugin", "value": "echo"})
        settings.rules_path.write_text(json.dumps([rule]), encoding="utf-8")
        engine = FilterEngine(host, settings)
        await engine.start()
        assert forks["echo"].parent.filter(FakeSession(content="spam")) is False
        engine.dispose()
        assert forks["echo"].parent.filter(FakeSession(content="spam")) is True

    async def test_fork_event_wraps_new_plugin(self, engine, host):
        engine.store.create(rule_input(target={"type": "plugin", "value": "late"}))
        late = FakeFork()
        host.root.scope.records["late"] = late
        await engine.handle_event(LifecycleEvent.FORK)
        assert late.parent.filter(FakeSession(content="spam")) is False
        assert "late" in [t.key for t in engine.resolver.list()]

    async def test_command_added_binds(self, engine, forks):
        command = FakeCommand("say", forks["echo"].context.scope)
        await engine.handle_event(LifecycleEvent.COMMAND_ADDED, command)
        command.scope = None
        assert engine.resolver.resolve_by_command(command).key == "echo"

    async def test_dispose_event_restores_and_stops_syncing(self, engine, forks):
        engine.store.create(rule_input(target={"type": "plugin", "value": "echo"}))
        await engine.sync()
        wrapped = forks["echo"].parent.filter
        await engine.handle_event(LifecycleEvent.DISPOSE)
        assert forks["echo"].parent.filter is not wrapped
        await engine.handle_event(LifecycleEvent.UPDATE)
        assert forks["echo"].parent.filter(FakeSession(content="spam")) is True

    async def test_list_commands(self, engine, host):
        host.command_list.append(FakeCommand("help"))
        assert [c.to_dict() for c in engine.list_commands()] == [{"name": "help", "label": "help"}]

    async def test_commit_persists(self, engine, settings):
        engine.store.replace([normalize_rule(rule_input(id="x"))])
        await engine.commit()
        data = json.loads(settings.rules_path.read_text(encoding="utf-8"))
        assert [item["id"] for item in data] == ["x"]
