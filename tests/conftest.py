"""Fake plugin host used across the test suite."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from filterpro.config import FilterSettings
from filterpro.engine import FilterEngine


def allow_all(session: Any) -> bool:
    return True


class FakeScope:
    def __init__(self, records: dict[str, Any] | None = None) -> None:
        self.records = records


class FakeContext:
    def __init__(self, records: dict[str, Any] | None = None, filter=allow_all) -> None:
        self.scope = FakeScope(records)
        self.filter = filter


class FakeFork:
    def __init__(self, children: dict[str, Any] | None = None, filterable: bool = True) -> None:
        self.parent = FakeContext()
        self.context = FakeContext(children)
        self.filterable = filterable


class FakeCommand:
    def __init__(self, name: str, scope: Any = None) -> None:
        self.name = name
        self.scope = scope


@dataclass
class FakeSession:
    content: str = ""
    platform: str = "test"
    self_id: str = "bot"
    user_id: str = "u1"
    channel_id: str = "c1"
    guild_id: str = ""
    is_direct: bool = True
    type: str = "message"
    event: Any = None
    author: Any = None
    quote: Any = None
    sent: list[str] = field(default_factory=list)

    async def send(self, text: str) -> None:
        self.sent.append(text)


class FakeHost:
    def __init__(self, records: dict[str, Any] | None = None) -> None:
        self.root = FakeContext(records or {})
        self.command_list: list[FakeCommand] = []
        self.ancestry: dict[int, list[str]] = {}

    def commands(self) -> list[FakeCommand]:
        return self.command_list

    def paths(self, scope: Any) -> list[str]:
        return self.ancestry.get(id(scope), [])


@pytest.fixture
def forks():
    """A small tree: echo, a group holding weather:main, and an opted-out admin."""
    weather = FakeFork()
    group = FakeFork({"~weather:main": weather})
    return {
        "echo": FakeFork(),
        "group:g1": group,
        "weather:main": weather,
        "admin": FakeFork(filterable=False),
    }


@pytest.fixture
def host(forks):
    return FakeHost({
        "echo": forks["echo"],
        "group:g1": forks["group:g1"],
        "admin": forks["admin"],
    })


@pytest.fixture
def settings(tmp_path):
    return FilterSettings(base_dir=str(tmp_path))


@pytest.fixture
async def engine(host, settings):
    e = FilterEngine(host, settings)
    await e.start()
    yield e
    e.dispose()


def compare(field: str, operator: str, value: Any = None) -> dict[str, Any]:
    return {"type": "compare", "field": field, "operator": operator, "value": value}


def rule_input(**overrides: Any) -> dict[str, Any]:
    data = {
        "name": "test-rule",
        "enabled": True,
        "priority": 0,
        "action": "block",
        "target": {"type": "global"},
        "condition": {"type": "group", "operator": "and", "children": [compare("content", "eq", "spam")]},
        "response": "",
    }
    data.update(overrides)
    return data
