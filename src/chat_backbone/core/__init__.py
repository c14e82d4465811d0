"""Core runtime components.

This module exports the main runtime classes:
- Bot: Service registry that builds services and drives their lifecycle
- BaseService: Name, bot back-reference and lifecycle state for services
- ChatRouting: Consumer fan-out, dispatch and policy-checked sends
- TransportChat: Chat whose sends reach an external transport
- GroupJoinGate: Buffers group joins until a session is ready
"""

from chat_backbone.core.bot import BUILTIN_NAMESPACE, Bot, ServiceDefinition
from chat_backbone.core.chat import ChatRouting
from chat_backbone.core.group_gate import GateState, GroupJoinGate
from chat_backbone.core.send_policy import (
    MaximumRepetition,
    MinimumInterval,
    RateLimit,
    aggregate,
    commit_all,
    most_restrictive,
)
from chat_backbone.core.service import BaseService, ServiceState
from chat_backbone.core.transport_chat import TransportChat

__all__ = [
    "BUILTIN_NAMESPACE",
    "BaseService",
    "Bot",
    "ChatRouting",
    "GateState",
    "GroupJoinGate",
    "MaximumRepetition",
    "MinimumInterval",
    "RateLimit",
    "ServiceDefinition",
    "ServiceState",
    "TransportChat",
    "aggregate",
    "commit_all",
    "most_restrictive",
]
