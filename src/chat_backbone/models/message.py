"""Data models for chat messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..interfaces.capabilities import Chat


@dataclass(frozen=True)
class Identity:
    """A chat participant."""

    username: str  # Stable routing key (e.g. protocol-level address)
    nickname: str  # Display only

    @classmethod
    def of(cls, username: str, nickname: str | None = None) -> Identity:
        """Build an identity whose nickname defaults to the username."""
        return cls(username=username, nickname=nickname if nickname is not None else username)


@dataclass(frozen=True)
class Message:
    """An inbound message received by a chat.

    A direct message has ``to`` set and ``group`` None; a group message has
    ``group`` set and ``to`` None.
    """

    chat: Chat | None = field(compare=False, repr=False)
    from_: Identity
    text: str
    to: Identity | None = None
    group: str | None = None

    # Transport-specific metadata
    raw_event: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        if (self.to is None) == (self.group is None):
            raise ValueError("Message must have exactly one of 'to' or 'group'")

    @property
    def is_group(self) -> bool:
        """Return True if the message was posted to a group."""
        return self.group is not None

    @property
    def is_direct(self) -> bool:
        """Return True if the message was sent directly to a user."""
        return self.to is not None
