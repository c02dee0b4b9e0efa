"""Model router: role resolution, retry/fallback and usage metering."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from time import perf_counter
from typing import TypeVar

from pydantic import BaseModel

from assessor.errors import ModelUnavailable, SchemaViolation
from assessor.models.usage_log_entry import UsageAction, UsageLogEntry, UsageOutcome
from assessor.routing.gateway import GatewayError, GatewayResponse, GatewayTimeout, ModelGateway
from assessor.routing.retry import AttemptOutcome, RetryPolicy, RetryState, RouterAction
from assessor.routing.structured import ParsedOk, corrective_prompt, parse_structured
from assessor.services.model_catalog import ModelRole, ModelRoutingConfig, ResolvedModel
from assessor.services.usage_ledger import UsageLedger, compute_cost

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class CallContext:
    """Who is paying for a call: the ledger keys every entry by these fields."""

    action: UsageAction
    report_id: int | None = None
    project_id: int | None = None


@dataclass(slots=True)
class _AttemptResult:
    outcome: AttemptOutcome
    entry: UsageLogEntry
    payload: BaseModel | None = None
    error: str = ""


class ModelRouter:
    """Executes one logical model call with retry, fallback and schema validation.

    Every dispatch to the gateway produces exactly one ledger entry.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        ledger: UsageLedger,
        routing: ModelRoutingConfig,
        *,
        policy: RetryPolicy | None = None,
        store_snapshots: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._gateway = gateway
        self._ledger = ledger
        self._routing = routing
        self._policy = policy or RetryPolicy()
        self._store_snapshots = store_snapshots
        self._sleep = sleep

    @property
    def routing(self) -> ModelRoutingConfig:
        return self._routing

    def invoke(
        self,
        role: ModelRole | str,
        system_prompt: str,
        user_prompt: str,
        expected_schema: type[SchemaT],
        context: CallContext,
    ) -> tuple[SchemaT, UsageLogEntry]:
        binding = self._routing.binding(role)
        state = RetryState(policy=self._policy, has_backup=binding.backup is not None)
        model = binding.primary
        prompt = user_prompt
        last_error = ""

        while True:
            attempt_number = state.begin_attempt()
            result = self._attempt(
                model,
                role=binding.role,
                system_prompt=system_prompt,
                user_prompt=prompt,
                expected_schema=expected_schema,
                context=context,
                attempt_number=attempt_number,
                is_fallback=state.on_backup,
            )
            if result.outcome is AttemptOutcome.SUCCESS and result.payload is not None:
                return result.payload, result.entry  # type: ignore[return-value]

            last_error = result.error
            decision = state.on_outcome(result.outcome)
            logger.warning(
                "router.attempt_failed role=%s model_id=%s attempt=%d outcome=%s next=%s delay_s=%.2f action=%s report_id=%s",
                binding.role,
                model.model_id,
                attempt_number,
                result.outcome.value,
                decision.action.value,
                decision.delay_seconds,
                context.action.value,
                context.report_id,
            )

            if decision.action is RouterAction.RETRY_PRIMARY:
                self._sleep(decision.delay_seconds)
            elif decision.action is RouterAction.FALLBACK:
                self._sleep(decision.delay_seconds)
                if binding.backup is not None:
                    model = binding.backup
            elif decision.action is RouterAction.CORRECTIVE_REPROMPT:
                prompt = corrective_prompt(user_prompt, result.error)
            elif decision.action is RouterAction.FAIL_SCHEMA:
                raise SchemaViolation(
                    f"{context.action.value}: model output failed validation after a corrective retry ({last_error})"
                )
            else:
                raise ModelUnavailable(
                    f"{context.action.value}: role {binding.role!r} exhausted primary and backup models ({last_error})"
                )

    def _attempt(
        self,
        model: ResolvedModel,
        *,
        role: str,
        system_prompt: str,
        user_prompt: str,
        expected_schema: type[BaseModel],
        context: CallContext,
        attempt_number: int,
        is_fallback: bool,
    ) -> _AttemptResult:
        started = perf_counter()
        try:
            response = self._gateway.call(
                model.model_id,
                system_prompt,
                user_prompt,
                temperature=model.call_temperature,
            )
        except GatewayError as exc:
            outcome = AttemptOutcome.TRANSIENT_FAILURE if exc.transient else AttemptOutcome.PERMANENT_FAILURE
            error_code = "TIMEOUT" if isinstance(exc, GatewayTimeout) else "PROVIDER_ERROR"
            entry = self._record(
                model,
                role=role,
                context=context,
                attempt_number=attempt_number,
                is_fallback=is_fallback,
                response=GatewayResponse(text="", input_tokens=exc.input_tokens, output_tokens=exc.output_tokens),
                prompt=user_prompt,
                system_prompt=system_prompt,
                duration_ms=int((perf_counter() - started) * 1000),
                outcome=UsageOutcome.FAILED,
                error_code=error_code,
                error_message=str(exc),
            )
            return _AttemptResult(outcome=outcome, entry=entry, error=error_code)

        duration_ms = int((perf_counter() - started) * 1000)
        parsed = parse_structured(response.text, expected_schema)
        if isinstance(parsed, ParsedOk):
            entry = self._record(
                model,
                role=role,
                context=context,
                attempt_number=attempt_number,
                is_fallback=is_fallback,
                response=response,
                prompt=user_prompt,
                system_prompt=system_prompt,
                duration_ms=duration_ms,
                outcome=UsageOutcome.SUCCESS,
            )
            return _AttemptResult(outcome=AttemptOutcome.SUCCESS, entry=entry, payload=parsed.payload)

        entry = self._record(
            model,
            role=role,
            context=context,
            attempt_number=attempt_number,
            is_fallback=is_fallback,
            response=response,
            prompt=user_prompt,
            system_prompt=system_prompt,
            duration_ms=duration_ms,
            outcome=UsageOutcome.FAILED,
            error_code="SCHEMA_VIOLATION",
            error_message=parsed.error,
        )
        return _AttemptResult(outcome=AttemptOutcome.MALFORMED, entry=entry, error=parsed.error)

    def _record(
        self,
        model: ResolvedModel,
        *,
        role: str,
        context: CallContext,
        attempt_number: int,
        is_fallback: bool,
        response: GatewayResponse,
        prompt: str,
        system_prompt: str,
        duration_ms: int,
        outcome: UsageOutcome,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> UsageLogEntry:
        entry = UsageLogEntry(
            report_id=context.report_id,
            project_id=context.project_id,
            action=context.action.value,
            role=role,
            model_id=model.model_id,
            attempt_number=attempt_number,
            is_fallback=is_fallback,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            input_cost_per_million=model.input_cost_per_million,
            output_cost_per_million=model.output_cost_per_million,
            cost_usd=compute_cost(
                response.input_tokens,
                response.output_tokens,
                model.input_cost_per_million,
                model.output_cost_per_million,
            ),
            duration_ms=duration_ms,
            outcome=outcome.value,
            error_code=error_code,
            error_message=error_message,
            prompt_snapshot=f"{system_prompt}\n\n{prompt}" if self._store_snapshots else None,
            response_snapshot=response.text if self._store_snapshots else None,
        )
        self._ledger.record(entry)
        return entry
