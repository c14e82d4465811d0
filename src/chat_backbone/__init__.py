"""Pluggable service runtime and message router for chat bots."""

from chat_backbone._version import __version__
from chat_backbone.core import BaseService, Bot, ChatRouting, GroupJoinGate, TransportChat
from chat_backbone.models import (
    Identity,
    Message,
    SendParams,
    SendPolicyResult,
    SendResult,
    SendStatus,
    SendTarget,
    Verdict,
)

__all__ = [
    "BaseService",
    "Bot",
    "ChatRouting",
    "GroupJoinGate",
    "Identity",
    "Message",
    "SendParams",
    "SendPolicyResult",
    "SendResult",
    "SendStatus",
    "SendTarget",
    "TransportChat",
    "Verdict",
    "__version__",
]
