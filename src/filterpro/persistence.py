"""JSON rule file: tolerant reader and single-writer persister."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from filterpro.models import Rule, rule_to_dict
from filterpro.rules import normalize_rule

logger = logging.getLogger(__name__)


def dump_rules(rules: Iterable[Rule]) -> str:
    return json.dumps([rule_to_dict(rule) for rule in rules], indent=2, ensure_ascii=False)


async def read_rules(path: Path) -> list[Rule] | None:
    """Load and normalize the rule file.

    Returns None when the file is missing or unparsable, and an empty list
    when it parses to something other than a JSON array.
    """
    try:
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        data = json.loads(raw)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.warning("Cannot read rules from %s: %s", path, e)
        return None
    if not isinstance(data, list):
        logger.warning("Rules file %s does not contain a list, ignoring it", path)
        return []
    return [normalize_rule(item) for item in data]


class RulePersister:
    """Serializes writes of the rule file.

    ``persist`` snapshots the rules when called and then waits for every
    earlier write (successful or not) before writing its own.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = asyncio.Lock()

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, self.path)

    async def persist(self, rules: Iterable[Rule]) -> bool:
        payload = dump_rules(rules)
        async with self._lock:
            try:
                await asyncio.to_thread(self._write, payload)
            except OSError as e:
                logger.warning("Failed to persist rules to %s: %s", self.path, e)
                return False
        return True
