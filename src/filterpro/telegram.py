"""aiogram integration: message admission as a dispatcher middleware."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from aiogram import BaseMiddleware
from aiogram.types import Message, TelegramObject

from filterpro.engine import FilterEngine

logger = logging.getLogger(__name__)


@dataclass
class TelegramSession:
    """Session view of an aiogram Message."""

    message: Message
    platform: str = "telegram"
    self_id: str = ""
    user_id: str = ""
    channel_id: str = ""
    guild_id: str = ""
    is_direct: bool = False
    content: str = ""
    type: str = "message"
    event: Any = None
    author: Any = None
    quote: Any = None

    @classmethod
    def from_message(cls, message: Message) -> TelegramSession:
        chat = message.chat
        is_direct = chat.type == "private"
        user = message.from_user
        reply = message.reply_to_message
        return cls(
            message=message,
            self_id=str(message.bot.id) if message.bot is not None else "",
            user_id=str(user.id) if user is not None else "",
            channel_id=str(chat.id),
            guild_id="" if is_direct else str(chat.id),
            is_direct=is_direct,
            content=message.text or message.caption or "",
            event=message.model_dump(exclude_none=True),
            author=user.model_dump(exclude_none=True) if user is not None else None,
            quote=reply.model_dump(exclude_none=True) if reply is not None else None,
        )

    async def send(self, text: str) -> Any:
        return await self.message.answer(text)


class RuleFilterMiddleware(BaseMiddleware):
    """Drops (or answers) messages blocked by global rules before any handler runs."""

    def __init__(self, engine: FilterEngine) -> None:
        self.engine = engine

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        if not isinstance(event, Message):
            return await handler(event, data)
        session = TelegramSession.from_message(event)
        decision = await self.engine.decide_message(session)
        if not decision.is_blocked:
            return await handler(event, data)
        logger.info("Message %s blocked by rule %s", event.message_id, decision.rule_id)
        if decision.response:
            await session.send(decision.response)
        return None
