"""Structured trace records for rule matching."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

Tracer = Callable[[str, dict[str, Any]], None]

# Stages promoted to INFO in debug mode, and only for records that matched.
PROMOTED_STAGES = frozenset({"native-filter:evaluate"})


def make_tracer(logger: logging.Logger, debug: bool = False) -> Tracer:
    """Emit ``[trace:<stage>] <json>`` records.

    Everything goes out at DEBUG. With ``debug`` set, matched evaluations on
    the plugin admission path are raised to INFO.
    """

    def trace(stage: str, payload: dict[str, Any]) -> None:
        level = logging.DEBUG
        if debug and stage in PROMOTED_STAGES and payload.get("matched"):
            level = logging.INFO
        if not logger.isEnabledFor(level):
            return
        logger.log(level, "[trace:%s] %s", stage, json.dumps(payload, default=str, ensure_ascii=False))

    return trace


def null_tracer(stage: str, payload: dict[str, Any]) -> None:
    return None
