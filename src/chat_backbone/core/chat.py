"""Chat routing shared by every chat service.

This module implements the ChatRouting mixin. It:
- Fans inbound messages out to registered consumers, in registration order
- Hands inbound messages to the optional dispatcher
- Builds replies and validates outbound sends
- Runs every outbound send through the attached send policies, and lets
  them record the sends that were accepted

Where an allowed or delayed send finally goes is up to the concrete chat:
a transport-backed chat delivers it, a routing chat forwards it upstream
together with the verdict reached so far.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from ..errors import AmbiguousTargetError, ChatClosedError
from ..interfaces.capabilities import ChatConsumer, Dispatcher, SendPolicy
from ..models.message import Message
from ..models.policy import SendPolicyResult, Verdict
from ..models.send import SendParams, SendResult, SendStatus
from .send_policy import aggregate, commit_all

log = structlog.get_logger()


class ChatRouting:
    """Consumer fan-out, dispatch and the policy-checked send path.

    Mix into a ``BaseService`` subclass ahead of it. Collaborators can be
    given as objects (``attach_policy``, ``attach_dispatcher``) or by
    service name through the ``send_policies`` and ``dispatcher``
    parameters; names are looked up on the bot during ``initialize``.

    Subclasses implement ``_send``.
    """

    name: str

    def __init__(
        self,
        *,
        send_policies: list[str] | None = None,
        dispatcher: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._policy_names = list(send_policies or [])
        self._dispatcher_name = dispatcher
        self._consumers: list[ChatConsumer] = []
        self._policies: list[SendPolicy] = []
        self._dispatcher: Dispatcher | None = None
        self._closing = False

    async def initialize(self) -> None:
        for policy_name in self._policy_names:
            self.attach_policy(self.lookup(policy_name, SendPolicy))  # type: ignore[attr-defined]
        if self._dispatcher_name is not None:
            self.attach_dispatcher(self.lookup(self._dispatcher_name, Dispatcher))  # type: ignore[attr-defined]
        await super().initialize()  # type: ignore[misc]

    async def shutdown(self) -> None:
        """Refuse every send from now on."""
        self._closing = True
        await super().shutdown()  # type: ignore[misc]

    # -------------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------------

    @property
    def consumers(self) -> tuple[ChatConsumer, ...]:
        return tuple(self._consumers)

    @property
    def policies(self) -> tuple[SendPolicy, ...]:
        return tuple(self._policies)

    @property
    def dispatcher(self) -> Dispatcher | None:
        """The attached dispatcher, or None when the chat has none."""
        return self._dispatcher

    @property
    def has_dispatcher(self) -> bool:
        return self._dispatcher is not None

    @property
    def is_closing(self) -> bool:
        return self._closing

    def register_consumer(self, consumer: ChatConsumer) -> None:
        """Add a consumer; consumers receive messages in registration order."""
        self._consumers.append(consumer)
        log.debug("consumer_registered", chat=self.name, consumer=_describe(consumer))

    def attach_policy(self, policy: SendPolicy) -> None:
        """Attach a send policy; ties between policies go to the earlier one."""
        self._policies.append(policy)

    def attach_dispatcher(self, dispatcher: Dispatcher) -> None:
        self._dispatcher = dispatcher

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    def handle_inbound(self, message: Message) -> None:
        """Deliver an inbound message to all consumers, then the dispatcher."""
        self.resend_message(message)
        self.dispatch_if_present(message)

    def resend_message(self, message: Message) -> None:
        """
        Forward a message to every registered consumer, in order.

        A consumer that raises is logged and skipped; the remaining
        consumers still receive the message.

        Args:
            message: Inbound message
        """
        for consumer in list(self._consumers):
            try:
                consumer.receive_message(message)
            except Exception as e:
                log.exception(
                    "consumer_failed",
                    chat=self.name,
                    consumer=_describe(consumer),
                    error=str(e),
                )

    def dispatch_if_present(self, message: Message) -> None:
        """Hand a message to the dispatcher, if this chat has one."""
        if self._dispatcher is None:
            return
        try:
            self._dispatcher.dispatch(message)
        except Exception as e:
            log.exception(
                "dispatcher_failed",
                chat=self.name,
                dispatcher=_describe(self._dispatcher),
                error=str(e),
            )

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    def send_reply(
        self,
        message: Message,
        overrides: Mapping[str, Any] | None = None,
    ) -> SendResult:
        """
        Reply to wherever a message came from.

        Group messages are answered in the group, direct messages to the
        sender. ``overrides`` is applied last, so callers can retarget the
        reply or set its text.

        Args:
            message: The message being answered
            overrides: Send parameters that take precedence (usually ``text``)

        Returns:
            Result of the underlying send_message call
        """
        params: dict[str, Any] = (
            {"group": message.group} if message.group is not None else {"to": message.from_.username}
        )
        params.update(overrides or {})
        return self.send_message(params)

    def send_message(
        self,
        params: SendParams | Mapping[str, Any],
        *,
        policy_result: SendPolicyResult | None = None,
    ) -> SendResult:
        """
        Send a message to a user or a group.

        The send is checked against every attached policy. A denial is an
        ordinary result, not an error. The policies record the send only
        when it was accepted (SENT or PENDING), so a send refused here or
        further upstream leaves their state unchanged.

        Args:
            params: ``SendParams`` or a mapping with ``text`` and exactly
                one of ``to``/``group``
            policy_result: Verdict already reached by an upstream chat;
                merged with this chat's policies

        Returns:
            SendResult with status SENT, PENDING, DENIED, INVALID or FAILED
        """
        try:
            send = self._coerce_params(params)
        except (AmbiguousTargetError, ValueError) as e:
            log.warning("send_invalid", chat=self.name, error=str(e))
            return SendResult(SendStatus.INVALID, error=e)

        if self._closing:
            error = ChatClosedError(f"Chat {self.name!r} is shut down")
            log.warning("send_failed", chat=self.name, error=str(error))
            return SendResult(SendStatus.FAILED, params=send, error=error)

        verdict = aggregate(self._policies, send, policy_result)
        if verdict.verdict == Verdict.DENY:
            log.info("send_denied", chat=self.name, target=str(send.target), reason=verdict.reason)
            return SendResult(SendStatus.DENIED, params=send, policy=verdict)

        result = self._send(send, verdict)
        if result.ok:
            commit_all(self._policies, send, result.policy or verdict)
        return result

    def _coerce_params(self, params: SendParams | Mapping[str, Any]) -> SendParams:
        if isinstance(params, SendParams):
            return params
        return SendParams.from_mapping(params)

    def _send(self, params: SendParams, verdict: SendPolicyResult) -> SendResult:
        """Carry out an allowed or delayed send."""
        raise NotImplementedError


def _describe(obj: object) -> str:
    name = getattr(obj, "name", None)
    return name if isinstance(name, str) else type(obj).__name__
