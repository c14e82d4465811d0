"""Send policy aggregation and the built-in send policies.

Every outbound send is checked against the policies attached to the chat it
goes through. The single most restrictive verdict wins: Deny over Delay over
Allow, and the longer of two delays. Ties keep the earlier result.

Policies work in two steps. ``evaluate`` judges a send without changing any
state, so a send that is denied elsewhere leaves no trace. ``commit`` records
a send once it was accepted, with the final merged result. Each stateful
policy documents the window it tracks; all of them take an injectable
``clock``.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable, Iterable

import structlog

from ..interfaces.capabilities import SendPolicy
from ..models.policy import SendPolicyResult, Verdict
from ..models.send import SendParams, SendTarget

log = structlog.get_logger()

Clock = Callable[[], float]

ALLOW = SendPolicyResult.allow()


def most_restrictive(current: SendPolicyResult, candidate: SendPolicyResult) -> SendPolicyResult:
    """Return ``candidate`` only if it strictly outranks ``current``."""
    return candidate if candidate.is_more_restrictive_than(current) else current


def aggregate(
    policies: Iterable[SendPolicy],
    params: SendParams,
    initial: SendPolicyResult | None = None,
) -> SendPolicyResult:
    """
    Evaluate every policy against one send and merge the verdicts.

    Args:
        policies: Policies in attachment order
        params: The send being evaluated
        initial: Verdict already reached upstream; ranks ahead of all policies

    Returns:
        The most restrictive result, or Allow when there is nothing to merge
    """
    result = initial
    for policy in policies:
        verdict = policy.evaluate(params)
        result = verdict if result is None else most_restrictive(result, verdict)
    return result if result is not None else ALLOW


def commit_all(
    policies: Iterable[SendPolicy],
    params: SendParams,
    result: SendPolicyResult,
) -> None:
    """Record an accepted send with every policy that evaluated it."""
    for policy in policies:
        policy.commit(params, result)


class RateLimit:
    """Token bucket limit on outbound sends.

    Tokens refill continuously at ``rate`` per second up to ``capacity``.
    A send that finds a token is allowed. Otherwise, with ``queue`` set, it
    is delayed until the next token would have refilled; without ``queue``
    it is denied.

    Only committed sends take a token. A queued send that commits reserves
    the next token ahead of time (the bucket goes negative), so the sends
    behind it wait progressively longer.

    Example:
        limit = RateLimit(rate=1.0, capacity=3)  # bursts of 3, then 1/s
    """

    def __init__(
        self,
        rate: float,
        capacity: float | None = None,
        queue: bool = True,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize the rate limit.

        Args:
            rate: Sends allowed per second
            capacity: Burst size; defaults to ``rate``, but at least one send
            queue: Delay excess sends instead of denying them
            clock: Monotonic time source in seconds
        """
        if rate <= 0:
            raise ValueError("Rate must be positive")
        self._rate = rate
        self._capacity = capacity if capacity is not None else max(1.0, rate)
        if self._capacity < 1:
            raise ValueError("Capacity must allow at least one send")
        self._queue = queue
        self._clock = clock
        self._tokens = self._capacity
        self._last_update = clock()

    @property
    def available_tokens(self) -> float:
        return self._tokens_at(self._clock())

    def _tokens_at(self, now: float) -> float:
        elapsed = now - self._last_update
        return min(self._capacity, self._tokens + elapsed * self._rate)

    def evaluate(self, params: SendParams) -> SendPolicyResult:
        tokens = self._tokens_at(self._clock())
        if tokens >= 1:
            return SendPolicyResult.allow()

        if not self._queue:
            log.debug("rate_limit_denied", target=str(params.target))
            return SendPolicyResult.deny(f"rate limit of {self._rate}/s exceeded")

        wait_time = (1 - tokens) / self._rate
        log.debug("rate_limit_delayed", target=str(params.target), wait_time=wait_time)
        return SendPolicyResult.delay_for(wait_time, f"rate limit of {self._rate}/s")

    def commit(self, params: SendParams, result: SendPolicyResult) -> None:
        now = self._clock()
        self._tokens = self._tokens_at(now) - 1
        self._last_update = now


class MinimumInterval:
    """At least ``interval`` seconds between consecutive sends.

    Tracks the slot of the last committed send: the time it goes out, which
    is later than the commit for a delayed send. A send arriving before
    ``last slot + interval`` is delayed to that time, or is denied when
    ``queue`` is off.
    """

    def __init__(self, interval: float, queue: bool = True, clock: Clock = time.monotonic) -> None:
        if interval < 0:
            raise ValueError("Interval must not be negative")
        self._interval = interval
        self._queue = queue
        self._clock = clock
        self._last_slot: float | None = None

    def evaluate(self, params: SendParams) -> SendPolicyResult:
        now = self._clock()
        if self._last_slot is None or now >= self._last_slot + self._interval:
            return SendPolicyResult.allow()

        if not self._queue:
            return SendPolicyResult.deny(f"less than {self._interval}s since the last send")

        slot = self._last_slot + self._interval
        return SendPolicyResult.delay_for(slot - now, f"minimum interval of {self._interval}s")

    def commit(self, params: SendParams, result: SendPolicyResult) -> None:
        # The committed delay already covers this policy's own slot
        delay = result.delay if result.verdict == Verdict.DELAY else 0.0
        self._last_slot = self._clock() + delay


class MaximumRepetition:
    """Deny repeating the same text to the same target too often.

    Keeps a rolling window of the last ``window`` seconds of committed
    sends. A send whose (target, text) pair already appears ``repetitions``
    times in the window is denied.
    """

    def __init__(self, repetitions: int, window: float, clock: Clock = time.monotonic) -> None:
        if repetitions < 1:
            raise ValueError("Repetitions must be at least 1")
        self._repetitions = repetitions
        self._window = window
        self._clock = clock
        self._history: deque[tuple[float, SendTarget, str]] = deque()

    def _expire(self, now: float) -> None:
        while self._history and self._history[0][0] <= now - self._window:
            self._history.popleft()

    def evaluate(self, params: SendParams) -> SendPolicyResult:
        horizon = self._clock() - self._window
        seen = sum(
            1
            for sent_at, target, text in self._history
            if sent_at > horizon and target == params.target and text == params.text
        )
        if seen >= self._repetitions:
            log.debug("repetition_denied", target=str(params.target), seen=seen)
            return SendPolicyResult.deny(
                f"same message sent {seen} times in the last {self._window}s"
            )
        return SendPolicyResult.allow()

    def commit(self, params: SendParams, result: SendPolicyResult) -> None:
        now = self._clock()
        self._expire(now)
        self._history.append((now, params.target, params.text))


__all__ = [
    "ALLOW",
    "MaximumRepetition",
    "MinimumInterval",
    "RateLimit",
    "SendPolicyResult",
    "Verdict",
    "aggregate",
    "commit_all",
    "most_restrictive",
]
