"""Data models for outbound sends."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import AmbiguousTargetError
from .policy import SendPolicyResult


@dataclass(frozen=True)
class SendTarget:
    """Where an outbound message goes: one user or one group."""

    to: str | None = None
    group: str | None = None

    def __post_init__(self) -> None:
        if self.to is not None and self.group is not None:
            raise AmbiguousTargetError(
                f"Send names both user {self.to!r} and group {self.group!r}"
            )
        if self.to is None and self.group is None:
            raise AmbiguousTargetError("Send names neither a user nor a group")

    @property
    def is_group(self) -> bool:
        return self.group is not None

    def __str__(self) -> str:
        return f"group:{self.group}" if self.group is not None else f"user:{self.to}"


@dataclass(frozen=True)
class SendParams:
    """A validated outbound send request."""

    target: SendTarget
    text: str

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> SendParams:
        """
        Build send parameters from a ``{to|group, text}`` mapping.

        Args:
            params: Mapping with ``text`` and exactly one of ``to``/``group``

        Returns:
            Validated SendParams

        Raises:
            AmbiguousTargetError: If both or neither of to/group are given
            ValueError: If text is missing
        """
        target = SendTarget(to=params.get("to"), group=params.get("group"))
        text = params.get("text")
        if text is None:
            raise ValueError("Send requires 'text'")
        return cls(target=target, text=str(text))

    @property
    def to(self) -> str | None:
        return self.target.to

    @property
    def group(self) -> str | None:
        return self.target.group


class SendStatus(Enum):
    """Outcome of a send_message call."""

    SENT = "sent"  # Handed to the transport
    PENDING = "pending"  # Scheduled for later delivery
    DENIED = "denied"  # Refused by a send policy
    INVALID = "invalid"  # Malformed request
    FAILED = "failed"  # Transport or chat failure


@dataclass(eq=False)
class ScheduledSend:
    """A delayed send waiting on an event loop timer.

    Owned by the chat that scheduled it; cancelling drops the send.
    """

    target: SendTarget
    text: str
    fire_time: float  # Event loop time
    handle: asyncio.TimerHandle | None = field(default=None, repr=False)
    cancelled: bool = False

    def cancel(self) -> None:
        """Cancel the send if it has not fired yet."""
        self.cancelled = True
        if self.handle is not None:
            self.handle.cancel()


@dataclass(frozen=True)
class SendResult:
    """What happened to an outbound send."""

    status: SendStatus
    params: SendParams | None = None
    policy: SendPolicyResult | None = None
    scheduled: ScheduledSend | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        """Return True if the message was sent or is scheduled to be."""
        return self.status in (SendStatus.SENT, SendStatus.PENDING)

    @property
    def reason(self) -> str:
        if self.error is not None:
            return str(self.error)
        if self.policy is not None:
            return self.policy.reason
        return ""
