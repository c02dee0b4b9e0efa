"""End-to-end orchestration tests over in-memory SQLite and a scripted provider."""

from __future__ import annotations

import unittest
from decimal import Decimal

from sqlalchemy import select

from assessor.errors import InvalidState, LedgerUnavailable, StorageUnavailable
from assessor.models.ai_model_config import AIModelConfig
from assessor.models.competency_analysis import CompetencyAnalysis
from assessor.models.evidence import Evidence
from assessor.models.executive_summary import ExecutiveSummary
from assessor.models.key_behavior_analysis import KeyBehaviorAnalysis
from assessor.models.project import SimulationMethodGuide, SystemSetting
from assessor.models.report import Report, ReportStatus
from assessor.models.usage_log_entry import UsageLogEntry
from assessor.pipeline.ask_ai import AskAiContextType, AskAiRequest
from assessor.pipeline.orchestrator import NewDocument
from assessor.pipeline.phases import PHASE_SEQUENCE
from assessor.routing.gateway import GatewayTimeout
from assessor.services.model_catalog import ModelRole, assign_role_model
from assessor.services.runtime import build_runtime
from assessor.services.stores import GLOBAL_CONTEXT_GUIDE_KEY
from assessor.services.usage_ledger import UsageFilter, UsageLedger

from pipeline_fixtures import (
    BACKUP_MODEL,
    DOCUMENTS,
    JUDGMENT_MODEL,
    NARRATIVE_MODEL,
    NO_TEMPERATURE_MODEL,
    FakeProvider,
    GatewayCall,
    make_session_factory,
    make_settings,
    no_sleep,
    seed_project,
)

_TASK_ORDER = [
    "EVIDENCE_EXTRACTION",
    "KB_FULFILLMENT",
    "LEVEL_AND_NARRATIVE",
    "DEVELOPMENT_RECOMMENDATIONS",
    "EXECUTIVE_SUMMARY_DRAFT",
    "EXECUTIVE_SUMMARY_CRITIQUE",
]


class _BrokenLedger(UsageLedger):
    def record(self, entry: UsageLogEntry) -> int:
        raise LedgerUnavailable("usage ledger write failed")


class _CrashingDocumentStore:
    def get_extracted_text(self, document_id: int) -> str:
        raise RuntimeError(f"object storage lost document {document_id}")


class ReportPipelineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, self.SessionLocal = make_session_factory()
        self.provider = FakeProvider()
        self.delays: list[float] = []
        self.settings = make_settings()
        self.runtime = build_runtime(
            self.SessionLocal,
            self.provider,
            settings=self.settings,
            sleep=no_sleep(self.delays),
        )
        self.db = self.SessionLocal()
        self.project_id = seed_project(self.db)

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def _create_report(self, target_level: int = 2) -> int:
        report = self.runtime.orchestrator.create_report(
            self.db,
            project_id=self.project_id,
            title="Assessment of J. Doe",
            target_levels={"PS": target_level},
            specific_context="Promotion to section head.",
            documents=[
                NewDocument(file_ref=file_ref, simulation_method=method, extracted_text=text)
                for file_ref, method, text in DOCUMENTS
            ],
        )
        return report.id

    def _submit_and_run(self, report_id: int) -> str:
        job = self.runtime.orchestrator.submit(self.db, report_id)
        self.assertIsNotNone(job)
        return self.runtime.orchestrator.run(report_id, job.id)

    def _report(self, report_id: int) -> Report:
        self.db.expire_all()
        return self.db.get(Report, report_id)

    def test_phases_run_in_fixed_order_and_report_completes(self) -> None:
        report_id = self._create_report()

        final_status = self._submit_and_run(report_id)

        self.assertEqual(final_status, ReportStatus.COMPLETE.value)
        report = self._report(report_id)
        self.assertEqual(report.status, ReportStatus.COMPLETE.value)
        self.assertIsNone(report.current_phase)
        self.assertIsNone(report.active_job_id)
        self.assertEqual(report.completed_phases_json, [phase.value for phase in PHASE_SEQUENCE])

        first_seen = []
        for task in self.provider.tasks():
            if task not in first_seen:
                first_seen.append(task)
        self.assertEqual(first_seen, _TASK_ORDER)
        last_index = {task: idx for idx, task in enumerate(self.provider.tasks())}
        first_index = {task: self.provider.tasks().index(task) for task in _TASK_ORDER}
        for earlier, later in zip(_TASK_ORDER, _TASK_ORDER[1:]):
            self.assertLess(last_index[earlier], first_index[later])

        summary = self.db.scalar(select(ExecutiveSummary).where(ExecutiveSummary.report_id == report_id))
        self.assertTrue(summary.is_final)
        self.assertTrue(summary.critique_applied)
        self.assertEqual(summary.overview, "Final overview.")
        self.assertEqual(summary.draft_json["overview"], "Draft overview.")

    def test_level_one_assigned_when_level_two_key_behavior_not_observed(self) -> None:
        report_id = self._create_report(target_level=2)

        self._submit_and_run(report_id)

        evidence = list(self.db.scalars(select(Evidence).where(Evidence.report_id == report_id)))
        self.assertEqual(len(evidence), 3)
        self.assertTrue(all(item.is_ai_generated for item in evidence))
        verdicts = {
            row.key_behavior_id: row.status
            for row in self.db.scalars(select(KeyBehaviorAnalysis).where(KeyBehaviorAnalysis.report_id == report_id))
        }
        self.assertEqual(
            verdicts,
            {"PS.L1.KB1": "FULFILLED", "PS.L1.KB2": "FULFILLED", "PS.L2.KB1": "NOT_OBSERVED"},
        )
        analysis = self.db.scalar(select(CompetencyAnalysis).where(CompetencyAnalysis.report_id == report_id))
        self.assertEqual(analysis.target_level, 2)
        self.assertEqual(analysis.achieved_level, 1)
        self.assertIn("### Training", analysis.development_recommendations)
        self.assertEqual(set(analysis.recommendations_json), {"individual", "assignment", "training"})

    def test_contra_indicator_evidence_blocks_fulfilled_verdict(self) -> None:
        self.provider.evidence_by_method["Case Study"] = [
            {
                "competency_id": "PS",
                "level": 1,
                "key_behavior_id": "PS.L1.KB2",
                "quote": "I decided without looking at any numbers.",
                "reasoning": "Skips data gathering.",
                "is_contra_indicator": True,
            }
        ]
        report_id = self._create_report()

        self._submit_and_run(report_id)

        verdict = self.db.scalar(
            select(KeyBehaviorAnalysis).where(
                KeyBehaviorAnalysis.report_id == report_id,
                KeyBehaviorAnalysis.key_behavior_id == "PS.L1.KB2",
            )
        )
        self.assertEqual(verdict.status, "CONTRA_INDICATOR")
        analysis = self.db.scalar(select(CompetencyAnalysis).where(CompetencyAnalysis.report_id == report_id))
        self.assertEqual(analysis.achieved_level, 0)

    def test_primary_timeouts_fall_back_to_backup_model(self) -> None:
        self.provider.fail_next(
            JUDGMENT_MODEL,
            GatewayTimeout("Provider call exceeded 120s"),
            GatewayTimeout("Provider call exceeded 120s"),
        )
        report_id = self._create_report()

        final_status = self._submit_and_run(report_id)

        self.assertEqual(final_status, ReportStatus.COMPLETE.value)
        entries = self.runtime.ledger.list_entries(UsageFilter(report_id=report_id, action="EXTRACTION"), limit=50)
        failed_primary = [e for e in entries if e.model_id == JUDGMENT_MODEL and e.outcome == "FAILED"]
        backup_success = [e for e in entries if e.model_id == BACKUP_MODEL and e.outcome == "SUCCESS"]
        self.assertEqual(len(failed_primary), 2)
        self.assertTrue(all(e.error_code == "TIMEOUT" for e in failed_primary))
        self.assertEqual(len(backup_success), 1)
        self.assertTrue(backup_success[0].is_fallback)
        self.assertEqual(self.delays[:2], [1.0, 2.0])

    def test_failed_phase_keeps_prior_output_and_resume_skips_completed_phases(self) -> None:
        self.provider.failing_tasks.add("DEVELOPMENT_RECOMMENDATIONS")
        report_id = self._create_report()

        final_status = self._submit_and_run(report_id)

        self.assertEqual(final_status, ReportStatus.PHASE_FAILED.value)
        report = self._report(report_id)
        self.assertEqual(report.failed_phase, "RECOMMENDATIONS")
        self.assertEqual(report.failure_reason_code, "MODEL_UNAVAILABLE")
        self.assertNotIn("503", report.failure_message)
        self.assertEqual(
            report.completed_phases_json,
            ["EXTRACTION", "KB_FULFILLMENT", "LEVEL_AND_NARRATIVE"],
        )
        self.assertEqual(len(list(self.db.scalars(select(Evidence).where(Evidence.report_id == report_id)))), 3)
        self.assertIsNotNone(
            self.db.scalar(select(CompetencyAnalysis).where(CompetencyAnalysis.report_id == report_id))
        )

        with self.assertRaises(InvalidState):
            self.runtime.orchestrator.submit(self.db, report_id)

        self.provider.failing_tasks.clear()
        calls_before = len(self.provider.calls)
        job = self.runtime.orchestrator.resume(self.db, report_id)
        final_status = self.runtime.orchestrator.run(report_id, job.id)

        self.assertEqual(final_status, ReportStatus.COMPLETE.value)
        resumed_tasks = self.provider.tasks()[calls_before:]
        self.assertNotIn("EVIDENCE_EXTRACTION", resumed_tasks)
        self.assertNotIn("KB_FULFILLMENT", resumed_tasks)
        self.assertNotIn("LEVEL_AND_NARRATIVE", resumed_tasks)
        self.assertEqual(resumed_tasks[0], "DEVELOPMENT_RECOMMENDATIONS")
        analysis = self.db.scalar(select(CompetencyAnalysis).where(CompetencyAnalysis.report_id == report_id))
        self.assertEqual(analysis.achieved_level, 1)
        self.assertEqual(self._report(report_id).failure_reason_code, None)

    def test_resume_uses_models_resolved_at_first_run(self) -> None:
        self.provider.failing_tasks.add("EXECUTIVE_SUMMARY_DRAFT")
        report_id = self._create_report()
        self._submit_and_run(report_id)

        assign_role_model(self.db, ModelRole.NARRATIVE, NO_TEMPERATURE_MODEL, temperature=0.3)
        self.provider.failing_tasks.clear()
        calls_before = len(self.provider.calls)
        job = self.runtime.orchestrator.resume(self.db, report_id)
        self.runtime.orchestrator.run(report_id, job.id)

        resumed = self.provider.calls[calls_before:]
        self.assertTrue(resumed)
        self.assertTrue(all(call.model_id == NARRATIVE_MODEL for call in resumed))

    def test_every_attempt_is_metered_and_costs_add_up(self) -> None:
        self.provider.fail_next(JUDGMENT_MODEL, GatewayTimeout("timeout"))
        report_id = self._create_report()

        self._submit_and_run(report_id)

        entries = list(self.db.scalars(select(UsageLogEntry).where(UsageLogEntry.report_id == report_id)))
        self.assertEqual(len(entries), len(self.provider.calls))
        total = sum((entry.cost_usd for entry in entries), Decimal("0"))
        self.assertEqual(self.runtime.ledger.total_cost(UsageFilter(report_id=report_id)), total)
        self.assertEqual(
            [entry.outcome for entry in entries if entry.model_id == JUDGMENT_MODEL].count("FAILED"),
            1,
        )

    def test_cancel_queued_report_is_terminal(self) -> None:
        report_id = self._create_report()
        job = self.runtime.orchestrator.submit(self.db, report_id)

        view = self.runtime.orchestrator.cancel(self.db, report_id)
        self.assertEqual(view.status, ReportStatus.CANCELLED.value)

        final_status = self.runtime.orchestrator.run(report_id, job.id)
        self.assertEqual(final_status, ReportStatus.CANCELLED.value)
        self.assertEqual(self.provider.calls, [])
        with self.assertRaises(InvalidState):
            self.runtime.orchestrator.cancel(self.db, report_id)
        with self.assertRaises(InvalidState):
            self.runtime.orchestrator.resume(self.db, report_id)

    def test_cancel_while_running_takes_effect_at_next_phase_boundary(self) -> None:
        report_id = self._create_report()

        def _cancel_during_kb(call: GatewayCall) -> None:
            if call.task == "KB_FULFILLMENT":
                with self.SessionLocal() as other:
                    self.runtime.orchestrator.cancel(other, report_id)

        self.provider.on_call = _cancel_during_kb

        final_status = self._submit_and_run(report_id)

        self.assertEqual(final_status, ReportStatus.CANCELLED.value)
        report = self._report(report_id)
        self.assertEqual(report.status, ReportStatus.CANCELLED.value)
        self.assertEqual(report.completed_phases_json, ["EXTRACTION", "KB_FULFILLMENT"])
        self.assertNotIn("LEVEL_AND_NARRATIVE", self.provider.tasks())

    def test_submit_is_noop_while_running(self) -> None:
        report_id = self._create_report()
        report = self.db.get(Report, report_id)
        report.status = ReportStatus.RUNNING.value
        self.db.commit()

        self.assertIsNone(self.runtime.orchestrator.submit(self.db, report_id))
        self.assertEqual(self.runtime.queue.stats().waiting, 0)

    def test_duplicate_submit_returns_existing_job(self) -> None:
        report_id = self._create_report()

        first = self.runtime.orchestrator.submit(self.db, report_id)
        second = self.runtime.orchestrator.submit(self.db, report_id)

        self.assertEqual(first.id, second.id)
        self.assertEqual(self.runtime.queue.stats().waiting, 1)
        self.assertEqual(self.runtime.orchestrator.run(report_id, "stale-job"), ReportStatus.QUEUED.value)

    def test_recovery_fails_orphaned_running_reports_and_requeues_queued(self) -> None:
        running_id = self._create_report()
        queued_id = self._create_report()
        running = self.db.get(Report, running_id)
        running.status = ReportStatus.RUNNING.value
        running.current_phase = "KB_FULFILLMENT"
        running.active_job_id = "lost-job"
        self.db.commit()

        recovered = self.runtime.orchestrator.recover_interrupted()

        self.assertEqual(recovered, 1)
        running = self._report(running_id)
        self.assertEqual(running.status, ReportStatus.PHASE_FAILED.value)
        self.assertEqual(running.failed_phase, "KB_FULFILLMENT")
        self.assertEqual(running.failure_reason_code, "WORKER_LOST")
        self.assertIsNotNone(self.runtime.queue.find(queued_id))
        self.assertIsNone(self.runtime.queue.find(running_id))

    def test_ledger_failure_aborts_without_marking_phase_complete(self) -> None:
        runtime = build_runtime(
            self.SessionLocal,
            self.provider,
            settings=self.settings,
            sleep=no_sleep(),
        )
        runtime.orchestrator._ledger = _BrokenLedger(self.SessionLocal)  # noqa: SLF001
        report_id = self._create_report()
        job = runtime.orchestrator.submit(self.db, report_id)

        with self.assertRaises(StorageUnavailable):
            runtime.orchestrator.run(report_id, job.id)

        report = self._report(report_id)
        self.assertEqual(report.completed_phases_json, [])
        self.assertEqual(report.status, ReportStatus.PHASE_FAILED.value)
        self.assertEqual(report.failure_reason_code, "STORAGE_UNAVAILABLE")
        self.assertEqual(list(self.db.scalars(select(Evidence).where(Evidence.report_id == report_id))), [])

    def test_ask_ai_rejected_unless_report_complete(self) -> None:
        report_id = self._create_report()
        report = self.db.get(Report, report_id)
        report.status = ReportStatus.RUNNING.value
        self.db.commit()

        with self.assertRaises(InvalidState):
            self.runtime.ask_ai.refine(
                self.db,
                report_id,
                AskAiRequest(text="Some text", instruction="Shorten", context_type=AskAiContextType.SUMMARY),
            )
        self.assertEqual(list(self.db.scalars(select(UsageLogEntry))), [])
        self.assertEqual(self.provider.calls, [])

    def test_ask_ai_on_complete_report_omits_temperature_when_unsupported(self) -> None:
        report_id = self._create_report()
        self._submit_and_run(report_id)
        assign_role_model(self.db, ModelRole.ASK_AI, NO_TEMPERATURE_MODEL, temperature=0.7)

        result = self.runtime.ask_ai.refine(
            self.db,
            report_id,
            AskAiRequest(
                text="Candidate identifies problems.",
                instruction="Make it more formal",
                context_type=AskAiContextType.COMPETENCY,
                competency_id="PS",
            ),
        )

        self.assertEqual(result.refined_content, "Refined text.")
        last_call = self.provider.calls[-1]
        self.assertEqual(last_call.model_id, NO_TEMPERATURE_MODEL)
        self.assertIsNone(last_call.temperature)
        entries = self.runtime.ledger.list_entries(UsageFilter(action="ASK_AI_REFINE"))
        self.assertEqual(len(entries), 1)
        self.assertEqual(self._report(report_id).status, ReportStatus.COMPLETE.value)

    def test_resumed_run_matches_uninterrupted_run(self) -> None:
        baseline_id = self._create_report()
        self._submit_and_run(baseline_id)

        self.provider.failing_tasks.add("DEVELOPMENT_RECOMMENDATIONS")
        resumed_id = self._create_report()
        self._submit_and_run(resumed_id)
        self.provider.failing_tasks.clear()
        job = self.runtime.orchestrator.resume(self.db, resumed_id)
        self.assertEqual(self.runtime.orchestrator.run(resumed_id, job.id), ReportStatus.COMPLETE.value)

        self.assertEqual(self._output(resumed_id), self._output(baseline_id))

    def _output(self, report_id: int) -> dict:
        self.db.expire_all()
        evidence = {
            item.id: (item.competency_id, item.level, item.key_behavior_id, item.quote, item.is_contra_indicator)
            for item in self.db.scalars(select(Evidence).where(Evidence.report_id == report_id))
        }
        verdicts = [
            (
                row.key_behavior_id,
                row.status,
                row.reasoning,
                row.evaluated,
                sorted(evidence[evidence_id] for evidence_id in row.evidence_ids_json),
            )
            for row in self.db.scalars(
                select(KeyBehaviorAnalysis)
                .where(KeyBehaviorAnalysis.report_id == report_id)
                .order_by(KeyBehaviorAnalysis.key_behavior_id)
            )
        ]
        analyses = [
            (
                row.competency_id,
                row.target_level,
                row.achieved_level,
                row.explanation,
                row.development_recommendations,
                row.recommendations_json,
            )
            for row in self.db.scalars(
                select(CompetencyAnalysis)
                .where(CompetencyAnalysis.report_id == report_id)
                .order_by(CompetencyAnalysis.competency_id)
            )
        ]
        summary = self.db.scalar(select(ExecutiveSummary).where(ExecutiveSummary.report_id == report_id))
        return {
            "evidence": sorted(evidence.values()),
            "verdicts": verdicts,
            "analyses": analyses,
            "summary": (summary.overview, summary.strengths, summary.weaknesses, summary.recommendations),
        }

    def test_global_and_simulation_method_guides_reach_prompts(self) -> None:
        self.db.add(SystemSetting(key=GLOBAL_CONTEXT_GUIDE_KEY, value="Write every finding in formal language."))
        self.db.add(
            SimulationMethodGuide(
                project_id=self.project_id,
                method_name="In-Basket",
                context_guide="Twelve memos answered in 60 minutes.",
            )
        )
        self.db.commit()
        report_id = self._create_report()

        self._submit_and_run(report_id)

        prompts = {call.task: call.user_prompt for call in self.provider.calls}
        global_section = "=== GLOBAL GUIDELINES ===\nWrite every finding in formal language."
        method_section = "=== SIMULATION METHOD CONTEXTS ===\n[In-Basket]: Twelve memos answered in 60 minutes."
        for task in ("EVIDENCE_EXTRACTION", "KB_FULFILLMENT", "LEVEL_AND_NARRATIVE"):
            self.assertIn(global_section, prompts[task])
            self.assertIn(method_section, prompts[task])
        self.assertIn(global_section, prompts["DEVELOPMENT_RECOMMENDATIONS"])
        self.assertNotIn("SIMULATION METHOD CONTEXTS", prompts["DEVELOPMENT_RECOMMENDATIONS"])
        snapshot = self._report(report_id).config_snapshot_json
        self.assertEqual(snapshot["global_context"], "Write every finding in formal language.")
        self.assertEqual(snapshot["simulation_method_guides"], {"In-Basket": "Twelve memos answered in 60 minutes."})

    def test_model_removed_before_claim_fails_report_instead_of_leaving_it_running(self) -> None:
        report_id = self._create_report()
        job = self.runtime.orchestrator.submit(self.db, report_id)
        narrative = self.db.scalar(select(AIModelConfig).where(AIModelConfig.model_id == NARRATIVE_MODEL))
        narrative.is_active = False
        self.db.commit()

        final_status = self.runtime.orchestrator.run(report_id, job.id)

        self.assertEqual(final_status, ReportStatus.PHASE_FAILED.value)
        report = self._report(report_id)
        self.assertEqual(report.status, ReportStatus.PHASE_FAILED.value)
        self.assertEqual(report.failure_reason_code, "CONFIGURATION_INVALID")
        self.assertIsNone(report.worker_job_id)
        self.assertIsNone(report.config_snapshot_json)
        self.assertEqual(self.provider.calls, [])

        narrative.is_active = True
        self.db.commit()
        job = self.runtime.orchestrator.resume(self.db, report_id)
        self.assertEqual(self.runtime.orchestrator.run(report_id, job.id), ReportStatus.COMPLETE.value)

    def test_unexpected_error_fails_report_and_propagates(self) -> None:
        self.runtime.orchestrator._documents = _CrashingDocumentStore()  # noqa: SLF001
        report_id = self._create_report()
        job = self.runtime.orchestrator.submit(self.db, report_id)

        with self.assertRaises(RuntimeError):
            self.runtime.orchestrator.run(report_id, job.id)

        report = self._report(report_id)
        self.assertEqual(report.status, ReportStatus.PHASE_FAILED.value)
        self.assertEqual(report.failed_phase, "EXTRACTION")
        self.assertEqual(report.failure_reason_code, "INTERNAL_ERROR")
        self.assertIsNotNone(self.runtime.orchestrator.resume(self.db, report_id))

    def test_cancel_racing_a_claim_becomes_a_running_cancel(self) -> None:
        report_id = self._create_report()
        job = self.runtime.orchestrator.submit(self.db, report_id)
        orchestrator = self.runtime.orchestrator
        read_report = orchestrator._get  # noqa: SLF001

        def _read_then_worker_claims(db, claimed_id):
            report = read_report(db, claimed_id)
            with self.SessionLocal() as worker_db:
                self.assertTrue(orchestrator._claim(worker_db, claimed_id, job.id))  # noqa: SLF001
            return report

        orchestrator._get = _read_then_worker_claims  # noqa: SLF001
        try:
            view = orchestrator.cancel(self.db, report_id)
        finally:
            del orchestrator._get  # noqa: SLF001

        self.assertEqual(view.status, ReportStatus.RUNNING.value)
        self.assertTrue(view.cancel_requested)
        report = self._report(report_id)
        self.assertEqual(report.status, ReportStatus.RUNNING.value)
        self.assertEqual(report.worker_job_id, job.id)
        self.assertTrue(report.cancel_requested)

    def test_worker_stops_when_report_changes_status_under_it(self) -> None:
        report_id = self._create_report()

        def _cancel_behind_workers_back(call: GatewayCall) -> None:
            if call.task == "KB_FULFILLMENT":
                with self.SessionLocal() as other:
                    other.get(Report, report_id).status = ReportStatus.CANCELLED.value
                    other.commit()

        self.provider.on_call = _cancel_behind_workers_back

        final_status = self._submit_and_run(report_id)

        self.assertEqual(final_status, ReportStatus.CANCELLED.value)
        self.assertEqual(self._report(report_id).status, ReportStatus.CANCELLED.value)
        self.assertNotIn("LEVEL_AND_NARRATIVE", self.provider.tasks())

    def test_resume_while_failed_job_is_still_active_enqueues_a_new_job(self) -> None:
        self.provider.failing_tasks.add("EVIDENCE_EXTRACTION")
        report_id = self._create_report()
        self.runtime.orchestrator.submit(self.db, report_id)
        old_job = self.runtime.queue.dequeue(timeout=0)
        self.assertFalse(self.runtime.handle_job(old_job))

        resumed = self.runtime.orchestrator.resume(self.db, report_id)
        self.runtime.queue.ack(old_job, success=False, error="phase failed")

        self.assertNotEqual(resumed.id, old_job.id)
        self.assertEqual(self._report(report_id).active_job_id, resumed.id)
        self.assertEqual(self.runtime.queue.stats().waiting, 1)
        self.provider.failing_tasks.clear()
        next_job = self.runtime.queue.dequeue(timeout=0)
        self.assertEqual(next_job.id, resumed.id)
        self.assertTrue(self.runtime.handle_job(next_job))
        self.assertEqual(self._report(report_id).status, ReportStatus.COMPLETE.value)


if __name__ == "__main__":
    unittest.main()
