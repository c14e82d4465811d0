"""Chat service bolted onto a wire-protocol transport.

This is the last hop of every outbound send: allowed sends are delivered
through the transport straight away, delayed sends become ScheduledSends
owned by this chat. Inbound messages enter here from the transport, and
group joins wait in a readiness gate until the transport session is up.

See chat_backbone.interfaces.capabilities.Transport for the transport side.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from ..interfaces.capabilities import Transport
from ..models.message import Identity
from ..models.policy import SendPolicyResult, Verdict
from ..models.send import ScheduledSend, SendParams, SendResult, SendStatus
from ..utils.retry import create_retry
from .chat import ChatRouting
from .group_gate import GroupJoinGate
from .service import BaseService

log = structlog.get_logger()


class TransportChat(ChatRouting, BaseService):
    """A chat whose sends reach an external transport.

    Subclasses either pass a ready ``transport`` or override
    ``create_transport``. The transport calls ``handle_inbound`` for every
    message it decodes and ``mark_ready`` once its session is usable.

    Shutdown stops the chat from scheduling anything new, cancels every
    outstanding ScheduledSend, and only then disconnects the transport, so
    nothing is delivered after shutdown returns.

    Example:
        chat = MemoryChat(name="chat", bot=bot, groups=["ops"])
        await chat.initialize()
        chat.send_message({"group": "ops", "text": "hello"})
    """

    def __init__(
        self,
        *,
        transport: Transport | None = None,
        nickname: str | None = None,
        groups: list[str] | None = None,
        connect_attempts: int = 3,
        connect_min_wait: float = 1.0,
        connect_max_wait: float = 30.0,
        **kwargs: Any,
    ) -> None:
        """Initialize the chat.

        Args:
            transport: Transport to use; built by ``create_transport`` if None
            nickname: Name the bot uses in groups (defaults to service name)
            groups: Groups to join once the session is ready
            connect_attempts: Connection attempts before giving up
            connect_min_wait: Shortest backoff between attempts, in seconds
            connect_max_wait: Longest backoff between attempts, in seconds
            **kwargs: Passed on (name, bot, send_policies, dispatcher)
        """
        super().__init__(**kwargs)
        self._transport = transport
        self.nickname = nickname or self.name
        self._connect_attempts = connect_attempts
        self._connect_min_wait = connect_min_wait
        self._connect_max_wait = connect_max_wait

        self._gate = GroupJoinGate(self._join)
        self._scheduled: set[ScheduledSend] = set()

        for group in groups or []:
            self.join_group(group)

    def create_transport(self) -> Transport:
        """Build the transport when none was given."""
        raise NotImplementedError(f"{type(self).__name__} needs a transport")

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            self._transport = self.create_transport()
        return self._transport

    @property
    def identity(self) -> Identity:
        return Identity.of(self.nickname)

    @property
    def session_ready(self) -> bool:
        return self._gate.is_ready

    @property
    def groups(self) -> tuple[str, ...]:
        """Groups joined or waiting for the session to become ready."""
        return self._gate.desired_groups

    @property
    def scheduled_sends(self) -> tuple[ScheduledSend, ...]:
        return tuple(s for s in self._scheduled if not s.cancelled)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Resolve collaborators and connect the transport, with retries."""
        await super().initialize()

        connect = create_retry(
            max_attempts=self._connect_attempts,
            min_wait=self._connect_min_wait,
            max_wait=self._connect_max_wait,
        )(self.transport.connect)
        await connect(self)
        log.info("transport_connected", chat=self.name, transport=type(self.transport).__name__)

    async def shutdown(self) -> None:
        """Cancel every scheduled send, then disconnect the transport."""
        self._closing = True
        self.cancel_scheduled()
        await self.transport.disconnect()
        log.info("transport_disconnected", chat=self.name)
        await super().shutdown()

    def cancel_scheduled(self) -> int:
        """
        Cancel every outstanding ScheduledSend.

        Returns:
            Number of sends cancelled
        """
        pending, self._scheduled = self._scheduled, set()
        count = 0
        for scheduled in pending:
            if not scheduled.cancelled:
                scheduled.cancel()
                count += 1
        if count:
            log.info("scheduled_send_cancelled", chat=self.name, count=count)
        return count

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    def join_group(self, name: str) -> None:
        """Join a group now if the session is ready, otherwise once it is."""
        self._gate.request_join(name)

    def mark_ready(self) -> None:
        """Called by the transport once per session when it can join groups."""
        self._gate.mark_ready()

    def reset_session(self) -> None:
        """Start a new session gate, keeping the groups already desired.

        Transports call this when they reconnect, then ``mark_ready`` again
        once the new session is up.
        """
        self._gate = GroupJoinGate(self._join, self._gate.desired_groups)

    def _join(self, group: str) -> None:
        try:
            self.transport.join(group, self.identity)
        except Exception as e:
            log.exception("group_join_failed", chat=self.name, group=group, error=str(e))

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    def _send(self, params: SendParams, verdict: SendPolicyResult) -> SendResult:
        if verdict.verdict == Verdict.DELAY:
            return self._schedule(params, verdict)

        try:
            self.transport.deliver(params.target, params.text)
        except Exception as e:
            log.error("send_failed", chat=self.name, target=str(params.target), error=str(e))
            return SendResult(SendStatus.FAILED, params=params, policy=verdict, error=e)
        return SendResult(SendStatus.SENT, params=params, policy=verdict)

    def _schedule(self, params: SendParams, verdict: SendPolicyResult) -> SendResult:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            log.error("send_failed", chat=self.name, error="no running event loop for delayed send")
            return SendResult(SendStatus.FAILED, params=params, policy=verdict, error=e)

        scheduled = ScheduledSend(
            target=params.target,
            text=params.text,
            fire_time=loop.time() + verdict.delay,
        )
        scheduled.handle = loop.call_at(scheduled.fire_time, self._fire, scheduled)
        self._scheduled.add(scheduled)

        log.info(
            "send_delayed",
            chat=self.name,
            target=str(params.target),
            delay=verdict.delay,
            reason=verdict.reason,
        )
        return SendResult(SendStatus.PENDING, params=params, policy=verdict, scheduled=scheduled)

    def _fire(self, scheduled: ScheduledSend) -> None:
        self._scheduled.discard(scheduled)
        if scheduled.cancelled or self._closing:
            return

        try:
            self.transport.deliver(scheduled.target, scheduled.text)
        except Exception as e:
            log.exception(
                "scheduled_send_failed",
                chat=self.name,
                target=str(scheduled.target),
                error=str(e),
            )
