"""Model router behavior against a scripted provider and a real SQLite ledger."""

from __future__ import annotations

import unittest
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import select

from assessor.config import Settings
from assessor.errors import ModelUnavailable, SchemaViolation
from assessor.models.usage_log_entry import UsageAction, UsageLogEntry
from assessor.routing.gateway import GatewayError, GatewayResponse, GatewayTimeout
from assessor.routing.retry import RetryPolicy
from assessor.routing.router import CallContext, ModelRouter
from assessor.services.model_catalog import (
    ModelRole,
    ModelRoutingConfig,
    ResolvedModel,
    RoleBinding,
    resolve_routing_config,
    seed_default_catalog,
)
from assessor.services.usage_ledger import UsageLedger

from pipeline_fixtures import make_session_factory, no_sleep


class _Answer(BaseModel):
    answer: str


class _ScriptedGateway:
    def __init__(self, *responses: object) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, str, float | None]] = []

    def call(self, model_id: str, system_prompt: str, user_prompt: str, temperature: float | None = None):
        self.calls.append((model_id, user_prompt, temperature))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return GatewayResponse(text=str(response), input_tokens=1000, output_tokens=500)


def _model(model_id: str, *, supports_temperature: bool = True) -> ResolvedModel:
    return ResolvedModel(
        model_id=model_id,
        temperature=0.4,
        supports_temperature=supports_temperature,
        input_cost_per_million=Decimal("1.00"),
        output_cost_per_million=Decimal("2.00"),
    )


def _routing(primary: ResolvedModel, backup: ResolvedModel | None) -> ModelRoutingConfig:
    return ModelRoutingConfig(bindings=(RoleBinding(role=ModelRole.JUDGMENT.value, primary=primary, backup=backup),))


class ModelRouterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, self.SessionLocal = make_session_factory()
        self.ledger = UsageLedger(self.SessionLocal)
        self.delays: list[float] = []
        self.context = CallContext(action=UsageAction.KB_FULFILLMENT, report_id=7, project_id=3)

    def tearDown(self) -> None:
        self.engine.dispose()

    def _router(self, gateway: _ScriptedGateway, *, backup: ResolvedModel | None = None, primary=None) -> ModelRouter:
        return ModelRouter(
            gateway,
            self.ledger,
            _routing(primary or _model("primary/model"), backup if backup is not None else _model("backup/model")),
            policy=RetryPolicy(max_attempts=2, backoff_base_seconds=1.0, backoff_factor=2.0),
            sleep=no_sleep(self.delays),
        )

    def _entries(self) -> list[UsageLogEntry]:
        with self.SessionLocal() as db:
            return list(db.scalars(select(UsageLogEntry).order_by(UsageLogEntry.id)))

    def test_success_records_one_priced_entry(self) -> None:
        router = self._router(_ScriptedGateway('```json\n{"answer": "yes"}\n```'))

        payload, entry = router.invoke(ModelRole.JUDGMENT, "system", "user", _Answer, self.context)

        self.assertEqual(payload.answer, "yes")
        entries = self._entries()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].outcome, "SUCCESS")
        self.assertEqual(entries[0].action, "KB_FULFILLMENT")
        self.assertEqual(entries[0].report_id, 7)
        self.assertEqual(entries[0].cost_usd, Decimal("0.00200000"))
        self.assertEqual(entry.attempt_number, 1)
        self.assertFalse(entry.is_fallback)

    def test_malformed_output_gets_corrective_reprompt(self) -> None:
        gateway = _ScriptedGateway('{"wrong": 1}', '{"answer": "fixed"}')
        router = self._router(gateway)

        payload, _ = router.invoke(ModelRole.JUDGMENT, "system", "user", _Answer, self.context)

        self.assertEqual(payload.answer, "fixed")
        self.assertIn("CORRECTION", gateway.calls[1][1])
        self.assertEqual([entry.outcome for entry in self._entries()], ["FAILED", "SUCCESS"])
        self.assertEqual(self._entries()[0].error_code, "SCHEMA_VIOLATION")
        self.assertEqual(self.delays, [])

    def test_second_malformed_output_raises_schema_violation(self) -> None:
        router = self._router(_ScriptedGateway("not json", "still not json"))

        with self.assertRaises(SchemaViolation):
            router.invoke(ModelRole.JUDGMENT, "system", "user", _Answer, self.context)
        self.assertEqual(len(self._entries()), 2)

    def test_primary_timeouts_fall_back_to_backup(self) -> None:
        gateway = _ScriptedGateway(GatewayTimeout("slow"), GatewayTimeout("slow"), '{"answer": "backup"}')
        router = self._router(gateway)

        payload, entry = router.invoke(ModelRole.JUDGMENT, "system", "user", _Answer, self.context)

        self.assertEqual(payload.answer, "backup")
        self.assertEqual([call[0] for call in gateway.calls], ["primary/model", "primary/model", "backup/model"])
        self.assertEqual(self.delays, [1.0, 2.0])
        entries = self._entries()
        self.assertEqual([(e.model_id, e.outcome) for e in entries], [
            ("primary/model", "FAILED"),
            ("primary/model", "FAILED"),
            ("backup/model", "SUCCESS"),
        ])
        self.assertEqual([e.attempt_number for e in entries], [1, 2, 3])
        self.assertTrue(entry.is_fallback)

    def test_permanent_error_goes_straight_to_backup(self) -> None:
        gateway = _ScriptedGateway(GatewayError("HTTP 401", transient=False, status_code=401), '{"answer": "ok"}')
        router = self._router(gateway)

        router.invoke(ModelRole.JUDGMENT, "system", "user", _Answer, self.context)

        self.assertEqual([call[0] for call in gateway.calls], ["primary/model", "backup/model"])

    def test_exhausted_models_raise_model_unavailable(self) -> None:
        gateway = _ScriptedGateway(GatewayError("503"), GatewayError("503"), GatewayError("503"))
        router = self._router(gateway)

        with self.assertRaises(ModelUnavailable):
            router.invoke(ModelRole.JUDGMENT, "system", "user", _Answer, self.context)
        entries = self._entries()
        self.assertEqual(len(entries), 3)
        self.assertTrue(all(entry.outcome == "FAILED" for entry in entries))
        self.assertTrue(all(entry.error_code == "PROVIDER_ERROR" for entry in entries))

    def test_temperature_omitted_for_models_without_support(self) -> None:
        gateway = _ScriptedGateway('{"answer": "a"}')
        router = self._router(gateway, primary=_model("openai/gpt-5.1", supports_temperature=False))

        router.invoke(ModelRole.JUDGMENT, "system", "user", _Answer, self.context)

        self.assertIsNone(gateway.calls[0][2])

    def test_snapshots_not_stored_when_disabled(self) -> None:
        router = ModelRouter(
            _ScriptedGateway('{"answer": "a"}'),
            self.ledger,
            _routing(_model("primary/model"), None),
            store_snapshots=False,
            sleep=no_sleep(),
        )

        router.invoke(ModelRole.JUDGMENT, "system", "user", _Answer, self.context)

        entry = self._entries()[0]
        self.assertIsNone(entry.prompt_snapshot)
        self.assertIsNone(entry.response_snapshot)


class DefaultRoutingTests(unittest.TestCase):
    def test_default_backup_differs_from_every_primary(self) -> None:
        engine, SessionLocal = make_session_factory()
        self.addCleanup(engine.dispose)
        settings = Settings(_env_file=None, database_url="sqlite+pysqlite:///:memory:")

        with SessionLocal() as db:
            seed_default_catalog(db)
            routing = resolve_routing_config(db, settings)

        for role in (ModelRole.JUDGMENT, ModelRole.NARRATIVE, ModelRole.ASK_AI):
            binding = routing.binding(role.value)
            self.assertIsNotNone(binding.backup)
            self.assertNotEqual(binding.backup.model_id, binding.primary.model_id)


if __name__ == "__main__":
    unittest.main()
