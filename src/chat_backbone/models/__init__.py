"""Data models and transfer objects."""

from .message import Identity, Message
from .policy import SendPolicyResult, Verdict
from .send import ScheduledSend, SendParams, SendResult, SendStatus, SendTarget

__all__ = [
    # Message models
    "Identity",
    "Message",
    # Policy models
    "SendPolicyResult",
    "Verdict",
    # Send models
    "ScheduledSend",
    "SendParams",
    "SendResult",
    "SendStatus",
    "SendTarget",
]
