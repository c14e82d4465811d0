"""Routing chats that narrow a parent chat to one destination.

A routing chat consumes messages from a parent chat, re-broadcasts the ones
it cares about to its own consumers and dispatcher, and forwards sends to
the parent. Its own send policies are evaluated first; the verdict travels
upstream so the parent applies the most restrictive result of both.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..core.chat import ChatRouting
from ..core.service import BaseService
from ..interfaces.capabilities import Chat, GroupJoiner
from ..models.message import Message
from ..models.policy import SendPolicyResult
from ..models.send import SendParams, SendResult


class _ParentRouting(ChatRouting, BaseService):
    """Shared plumbing: attach to the parent chat named by ``chat``."""

    def __init__(self, *, chat: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._parent_name = chat
        self._parent: Chat | None = None

    @property
    def parent(self) -> Chat:
        if self._parent is None:
            raise RuntimeError(f"Chat {self.name!r} is not initialized")
        return self._parent

    async def initialize(self) -> None:
        await super().initialize()
        self._parent = self.lookup(self._parent_name, Chat)
        self._parent.register_consumer(self)

    def _send(self, params: SendParams, verdict: SendPolicyResult) -> SendResult:
        return self.parent.send_message(params, policy_result=verdict)


class GroupChat(_ParentRouting):
    """One group of a parent chat, presented as a chat of its own.

    On initialize it asks the parent to join the group. Sends without a
    target go to the group; sends anywhere else are rejected.

    Example (YAML):
        - name: ops
          service: GroupChat
          params:
            chat: jabber
            group: ops
            dispatcher: commands
    """

    def __init__(self, *, group: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.group = group

    async def initialize(self) -> None:
        await super().initialize()
        if isinstance(self.parent, GroupJoiner):
            self.parent.join_group(self.group)

    def receive_message(self, message: Message) -> None:
        if message.group == self.group:
            self.handle_inbound(message)

    def _coerce_params(self, params: SendParams | Mapping[str, Any]) -> SendParams:
        if not isinstance(params, SendParams) and params.get("to") is None:
            params = {**params, "group": params.get("group") or self.group}
        send = super()._coerce_params(params)
        if send.group != self.group:
            raise ValueError(f"Chat {self.name!r} only sends to group {self.group!r}")
        return send


class DirectChat(_ParentRouting):
    """The direct (one-to-one) messages of a parent chat."""

    def receive_message(self, message: Message) -> None:
        if message.is_direct:
            self.handle_inbound(message)

    def _coerce_params(self, params: SendParams | Mapping[str, Any]) -> SendParams:
        send = super()._coerce_params(params)
        if send.to is None:
            raise ValueError(f"Chat {self.name!r} only sends direct messages")
        return send
