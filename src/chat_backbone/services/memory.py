"""In-process chat transport.

MemoryTransport keeps everything in memory: deliveries and joins are
recorded, inbound messages are injected by calling ``receive``. It is the
transport behind the MemoryChat service, useful for local runs and tests.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from ..core.transport_chat import TransportChat
from ..models.message import Identity, Message
from ..models.send import SendTarget

log = structlog.get_logger()


class MemoryTransport:
    """Transport that records traffic instead of sending it anywhere.

    Example:
        transport = MemoryTransport()
        await transport.connect(chat)
        transport.receive("hi", from_user="alice")
        assert transport.delivered == [(SendTarget(to="alice"), "hello")]
    """

    def __init__(self, auto_ready: bool = True) -> None:
        """Initialize the transport.

        Args:
            auto_ready: Mark the chat ready on the loop iteration after
                ``connect``; otherwise call ``open_session`` yourself
        """
        self.auto_ready = auto_ready
        self.delivered: list[tuple[SendTarget, str]] = []
        self.joined: list[tuple[str, Identity]] = []
        self._chat: Any = None

    @property
    def connected(self) -> bool:
        return self._chat is not None

    async def connect(self, chat: Any) -> None:
        self._chat = chat
        if self.auto_ready:
            asyncio.get_running_loop().call_soon(self.open_session)

    async def disconnect(self) -> None:
        self._chat = None

    def open_session(self) -> None:
        """Report the session as ready to the connected chat."""
        if self._chat is not None:
            self._chat.mark_ready()

    def deliver(self, target: SendTarget, text: str) -> None:
        if self._chat is None:
            raise ConnectionError("Memory transport is not connected")
        self.delivered.append((target, text))
        log.debug("memory_delivered", target=str(target), text=text)

    def join(self, group: str, identity: Identity) -> None:
        self.joined.append((group, identity))

    def receive(
        self,
        text: str,
        from_user: str,
        *,
        group: str | None = None,
        nickname: str | None = None,
    ) -> Message:
        """
        Inject an inbound message as if it came off the wire.

        Args:
            text: Message body
            from_user: Sender username
            group: Group the message was posted to; None for a direct message
            nickname: Sender display name

        Returns:
            The message handed to the chat

        Raises:
            ConnectionError: If no chat is connected
        """
        if self._chat is None:
            raise ConnectionError("Memory transport is not connected")

        message = Message(
            chat=self._chat,
            from_=Identity.of(from_user, nickname),
            to=None if group is not None else self._chat.identity,
            group=group,
            text=text,
        )
        self._chat.handle_inbound(message)
        return message


class MemoryChat(TransportChat):
    """Chat service over a MemoryTransport.

    Example (YAML):
        - name: chat
          service: MemoryChat
          params:
            nickname: helper
            groups: [ops]
    """

    def __init__(self, *, auto_ready: bool = True, **kwargs: Any) -> None:
        self._auto_ready = auto_ready
        super().__init__(**kwargs)

    def create_transport(self) -> MemoryTransport:
        return MemoryTransport(auto_ready=self._auto_ready)

    @property
    def memory(self) -> MemoryTransport:
        """The underlying transport, typed for inspection."""
        transport = self.transport
        if not isinstance(transport, MemoryTransport):
            raise TypeError(f"Chat {self.name!r} is not using a memory transport")
        return transport
