"""Data models for send policy verdicts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class Verdict(IntEnum):
    """Outcome of a send policy, ordered by restrictiveness."""

    ALLOW = 0
    DELAY = 1
    DENY = 2


@dataclass(frozen=True)
class SendPolicyResult:
    """The decision a send policy makes about one outbound send."""

    verdict: Verdict
    delay: float = 0.0  # Seconds, meaningful only for DELAY
    reason: str = ""

    def __post_init__(self) -> None:
        if self.delay < 0:
            raise ValueError("Delay must not be negative")

    @classmethod
    def allow(cls, reason: str = "") -> SendPolicyResult:
        return cls(Verdict.ALLOW, 0.0, reason)

    @classmethod
    def delay_for(cls, seconds: float, reason: str = "") -> SendPolicyResult:
        return cls(Verdict.DELAY, seconds, reason)

    @classmethod
    def deny(cls, reason: str = "") -> SendPolicyResult:
        return cls(Verdict.DENY, 0.0, reason)

    @property
    def restrictiveness(self) -> tuple[int, float]:
        """Sort key: verdict first, then delay among DELAY results."""
        return (int(self.verdict), self.delay if self.verdict == Verdict.DELAY else 0.0)

    def is_more_restrictive_than(self, other: SendPolicyResult) -> bool:
        """Return True if this result strictly outranks ``other``."""
        return self.restrictiveness > other.restrictiveness
