"""Retry, backoff and fallback policy as an explicit state machine.

The router feeds the outcome of every attempt into ``RetryState.on_outcome``
and follows the returned decision. Nothing here performs I/O, so the policy
is testable without a provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AttemptOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    TRANSIENT_FAILURE = "TRANSIENT_FAILURE"
    PERMANENT_FAILURE = "PERMANENT_FAILURE"
    MALFORMED = "MALFORMED"


class RouterAction(str, Enum):
    DONE = "DONE"
    RETRY_PRIMARY = "RETRY_PRIMARY"
    FALLBACK = "FALLBACK"
    CORRECTIVE_REPROMPT = "CORRECTIVE_REPROMPT"
    FAIL_UNAVAILABLE = "FAIL_UNAVAILABLE"
    FAIL_SCHEMA = "FAIL_SCHEMA"


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Primary model gets ``max_attempts`` dispatches; the backup gets exactly one."""

    max_attempts: int = 2
    backoff_base_seconds: float = 1.0
    backoff_factor: float = 2.0

    def backoff(self, failures: int) -> float:
        """Delay before the next dispatch after ``failures`` transport failures."""

        if failures <= 0:
            return 0.0
        return self.backoff_base_seconds * (self.backoff_factor ** (failures - 1))


@dataclass(frozen=True, slots=True)
class RetryDecision:
    action: RouterAction
    delay_seconds: float = 0.0


@dataclass(slots=True)
class RetryState:
    policy: RetryPolicy
    has_backup: bool
    attempt: int = 0
    primary_attempts: int = 0
    transport_failures: int = 0
    fallback_used: bool = False
    corrective_used: bool = False
    next_delay: float = 0.0

    @property
    def on_backup(self) -> bool:
        return self.fallback_used

    def begin_attempt(self) -> int:
        """Register a dispatch and return its 1-based attempt number."""

        self.attempt += 1
        if not self.fallback_used:
            self.primary_attempts += 1
        self.next_delay = 0.0
        return self.attempt

    def on_outcome(self, outcome: AttemptOutcome) -> RetryDecision:
        if outcome is AttemptOutcome.SUCCESS:
            return RetryDecision(RouterAction.DONE)

        if outcome is AttemptOutcome.MALFORMED:
            if self.corrective_used:
                return RetryDecision(RouterAction.FAIL_SCHEMA)
            self.corrective_used = True
            return RetryDecision(RouterAction.CORRECTIVE_REPROMPT)

        self.transport_failures += 1
        if (
            outcome is AttemptOutcome.TRANSIENT_FAILURE
            and not self.fallback_used
            and self.primary_attempts < self.policy.max_attempts
        ):
            self.next_delay = self.policy.backoff(self.transport_failures)
            return RetryDecision(RouterAction.RETRY_PRIMARY, self.next_delay)
        if not self.fallback_used and self.has_backup:
            self.fallback_used = True
            self.next_delay = self.policy.backoff(self.transport_failures)
            return RetryDecision(RouterAction.FALLBACK, self.next_delay)
        return RetryDecision(RouterAction.FAIL_UNAVAILABLE)
