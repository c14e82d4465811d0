"""Readiness gate for joining chat groups.

Transport sessions come up asynchronously, but other services often ask to
join groups during their own startup. The gate records every requested
group and issues the actual joins once the session is marked ready.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

import structlog

log = structlog.get_logger()


class GateState(Enum):
    """States of a readiness gate. The only transition is to READY."""

    NOT_READY = "not_ready"
    READY = "ready"


class GroupJoinGate:
    """Buffers group joins until a transport session is ready.

    The desired-membership list keeps each group once, in first-request
    order. A reconnecting transport gets a fresh gate.

    Example:
        gate = GroupJoinGate(transport_join)
        gate.request_join("ops")  # queued
        gate.mark_ready()         # joins "ops"
        gate.request_join("dev")  # joins "dev" immediately
    """

    def __init__(self, join: Callable[[str], None], groups: tuple[str, ...] = ()) -> None:
        """Initialize the gate.

        Args:
            join: Performs the protocol-level join for one group
            groups: Groups already desired, e.g. carried over from a
                previous session
        """
        self._join = join
        self._state = GateState.NOT_READY
        self._desired: list[str] = []
        for group in groups:
            self._remember(group)

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == GateState.READY

    @property
    def desired_groups(self) -> tuple[str, ...]:
        """Groups joined or waiting to be joined, in first-request order."""
        return tuple(self._desired)

    def _remember(self, group: str) -> None:
        if group not in self._desired:
            self._desired.append(group)

    def request_join(self, group: str) -> None:
        """
        Ask to join a group.

        The group is always recorded. If the session is ready it is also
        joined right away, even when it was requested before.

        Args:
            group: Short group name
        """
        self._remember(group)
        if self.is_ready:
            log.debug("group_join_immediate", group=group)
            self._join(group)
        else:
            log.debug("group_join_queued", group=group, pending=len(self._desired))

    def mark_ready(self) -> None:
        """Open the gate and join every desired group in request order.

        Call once per session; later calls are ignored.
        """
        if self.is_ready:
            log.warning("group_gate_already_ready", groups=len(self._desired))
            return

        self._state = GateState.READY
        log.info("group_gate_ready", groups=list(self._desired))
        for group in list(self._desired):
            self._join(group)
