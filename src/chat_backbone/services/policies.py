"""Send policies packaged as services.

Declare one in configuration, then list its name in a chat's
``send_policies`` parameter.

Example (YAML):
    - name: throttle
      service: RateLimitPolicy
      params: {rate: 1.0, capacity: 5}
    - name: chat
      service: MemoryChat
      params: {send_policies: [throttle]}
"""

from __future__ import annotations

from typing import Any

from ..core.send_policy import MaximumRepetition, MinimumInterval, RateLimit
from ..core.service import BaseService
from ..interfaces.capabilities import SendPolicy
from ..models.policy import SendPolicyResult
from ..models.send import SendParams


class PolicyService(BaseService):
    """A service that evaluates and records sends with a wrapped policy."""

    policy: SendPolicy

    def evaluate(self, params: SendParams) -> SendPolicyResult:
        return self.policy.evaluate(params)

    def commit(self, params: SendParams, result: SendPolicyResult) -> None:
        self.policy.commit(params, result)


class RateLimitPolicy(PolicyService):
    def __init__(
        self,
        *,
        rate: float,
        capacity: float | None = None,
        queue: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.policy = RateLimit(rate, capacity, queue)


class MinimumIntervalPolicy(PolicyService):
    def __init__(self, *, interval: float, queue: bool = True, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.policy = MinimumInterval(interval, queue)


class MaximumRepetitionPolicy(PolicyService):
    def __init__(self, *, repetitions: int, window: float, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.policy = MaximumRepetition(repetitions, window)
