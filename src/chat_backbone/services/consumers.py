"""Built-in chat consumers."""

from __future__ import annotations

from typing import Any

import structlog

from ..core.service import BaseService
from ..interfaces.capabilities import Chat
from ..models.message import Message

log = structlog.get_logger()


class Echo(BaseService):
    """Replies with the rest of any message starting with ``prefix``."""

    def __init__(self, *, chat: str, prefix: str = "!echo ", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.prefix = prefix
        self._chat_name = chat
        self._chat: Chat | None = None

    async def initialize(self) -> None:
        self._chat = self.lookup(self._chat_name, Chat)
        self._chat.register_consumer(self)

    def receive_message(self, message: Message) -> None:
        if self._chat is None or not message.text.startswith(self.prefix):
            return
        text = message.text[len(self.prefix) :].strip()
        if text:
            self._chat.send_reply(message, {"text": text})


class MessageLog(BaseService):
    """Logs every inbound message of the named chats. Nothing is stored."""

    def __init__(self, *, chats: list[str], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._chat_names = list(chats)

    async def initialize(self) -> None:
        for name in self._chat_names:
            self.lookup(name, Chat).register_consumer(self)

    def receive_message(self, message: Message) -> None:
        log.info(
            "chat_message",
            service=self.name,
            sender=message.from_.username,
            nickname=message.from_.nickname,
            group=message.group,
            to=message.to.username if message.to else None,
            text=message.text,
        )
