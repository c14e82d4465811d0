"""Capability protocols for pluggable services.

A service implements whichever of these capabilities it supports. They are
independent of one another and are checked structurally, e.g.
``isinstance(service, ChatConsumer)``, never through a class hierarchy.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from ..models.message import Identity, Message
from ..models.policy import SendPolicyResult
from ..models.send import SendParams, SendResult, SendTarget

if TYPE_CHECKING:
    from ..core.bot import Bot


@runtime_checkable
class Service(Protocol):
    """A named component attached to a bot."""

    name: str

    @property
    def bot(self) -> Bot:
        """The owning bot (held weakly)."""
        ...

    async def initialize(self) -> None:
        """
        Start the service.

        Establish external connections and register callbacks here. This
        must not block the event loop; the registry awaits each service's
        initialize in turn before moving on to the next.
        """
        ...

    async def shutdown(self) -> None:
        """Stop the service and release its resources."""
        ...


@runtime_checkable
class ChatConsumer(Protocol):
    """Receives a copy of every inbound message of the chats it watches."""

    def receive_message(self, message: Message) -> None: ...


@runtime_checkable
class Dispatcher(Protocol):
    """Interprets inbound message text as commands."""

    def dispatch(self, message: Message) -> None: ...


@runtime_checkable
class SendPolicy(Protocol):
    """A rule evaluated against an outbound send."""

    def evaluate(self, params: SendParams) -> SendPolicyResult:
        """
        Decide whether a send may go out now, later, or not at all.

        Args:
            params: The send being evaluated

        Returns:
            Allow, Delay or Deny result
        """
        ...

    def commit(self, params: SendParams, result: SendPolicyResult) -> None:
        """
        Record a send that went out or was scheduled.

        Called only after every policy evaluated the send and the chat
        accepted it. ``evaluate`` must not change state; bookkeeping such as
        taking a rate limit token happens here.

        Args:
            params: The accepted send
            result: The final merged verdict it was accepted with
        """
        ...


@runtime_checkable
class GroupJoiner(Protocol):
    """Can join multi-party chat groups."""

    def join_group(self, name: str) -> None: ...


@runtime_checkable
class Chat(Protocol):
    """Sends and receives text for a user or group destination."""

    def register_consumer(self, consumer: ChatConsumer) -> None: ...

    def resend_message(self, message: Message) -> None: ...

    def send_message(
        self,
        params: SendParams | Mapping[str, Any],
        *,
        policy_result: SendPolicyResult | None = None,
    ) -> SendResult: ...

    def send_reply(
        self,
        message: Message,
        overrides: Mapping[str, Any] | None = None,
    ) -> SendResult: ...


@runtime_checkable
class Transport(Protocol):
    """Wire-protocol binding used by a transport-backed chat.

    The transport calls back into the chat it is connected to:
    ``chat.handle_inbound(message)`` for every decoded message and
    ``chat.mark_ready()`` once per established session.
    """

    async def connect(self, chat: Any) -> None:
        """
        Open the session and start delivering events to ``chat``.

        Raises:
            ConnectionError: If the connection cannot be established
        """
        ...

    async def disconnect(self) -> None:
        """Close the session."""
        ...

    def deliver(self, target: SendTarget, text: str) -> None:
        """
        Hand a message to the wire. Fire-and-forget.

        Raises:
            Exception: If delivery fails immediately
        """
        ...

    def join(self, group: str, identity: Identity) -> None:
        """Join a group under the given identity."""
        ...
