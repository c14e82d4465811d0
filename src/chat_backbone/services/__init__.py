"""Built-in services.

Service references without a ``.`` or ``=`` prefix resolve in this package,
so ``service: MemoryChat`` in a bot definition means
``chat_backbone.services.MemoryChat``.
"""

from .consumers import Echo, MessageLog
from .memory import MemoryChat, MemoryTransport
from .policies import (
    MaximumRepetitionPolicy,
    MinimumIntervalPolicy,
    PolicyService,
    RateLimitPolicy,
)
from .routing import DirectChat, GroupChat

__all__ = [
    # Chats
    "DirectChat",
    "GroupChat",
    "MemoryChat",
    "MemoryTransport",
    # Consumers
    "Echo",
    "MessageLog",
    # Send policies
    "MaximumRepetitionPolicy",
    "MinimumIntervalPolicy",
    "PolicyService",
    "RateLimitPolicy",
]
