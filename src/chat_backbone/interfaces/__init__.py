"""Protocol definitions for pluggable services."""

from .capabilities import (
    Chat,
    ChatConsumer,
    Dispatcher,
    GroupJoiner,
    SendPolicy,
    Service,
    Transport,
)

__all__ = [
    "Chat",
    "ChatConsumer",
    "Dispatcher",
    "GroupJoiner",
    "SendPolicy",
    "Service",
    "Transport",
]
