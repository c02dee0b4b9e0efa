from __future__ import annotations

import unittest
from decimal import Decimal

from assessor.models.usage_log_entry import UsageLogEntry
from assessor.services.usage_ledger import UsageFilter, UsageLedger, compute_cost

from pipeline_fixtures import make_session_factory


def _entry(*, report_id: int, project_id: int, model_id: str, action: str, cost: str, outcome: str = "SUCCESS"):
    return UsageLogEntry(
        report_id=report_id,
        project_id=project_id,
        action=action,
        role="judgment",
        model_id=model_id,
        attempt_number=1,
        is_fallback=False,
        input_tokens=100,
        output_tokens=50,
        input_cost_per_million=Decimal("1.00"),
        output_cost_per_million=Decimal("2.00"),
        cost_usd=Decimal(cost),
        duration_ms=12,
        outcome=outcome,
    )


class ComputeCostTests(unittest.TestCase):
    def test_cost_is_tokens_times_rate_per_million(self) -> None:
        self.assertEqual(
            compute_cost(1200, 300, Decimal("0.10"), Decimal("0.40")),
            Decimal("0.00024000"),
        )

    def test_cost_rounds_half_to_even(self) -> None:
        self.assertEqual(compute_cost(1, 0, Decimal("0.005"), Decimal("0")), Decimal("0E-8"))
        self.assertEqual(compute_cost(3, 0, Decimal("0.005"), Decimal("0")), Decimal("0.00000002"))
        self.assertEqual(compute_cost(5, 0, Decimal("0.005"), Decimal("0")), Decimal("0.00000002"))

    def test_negative_token_counts_are_clamped(self) -> None:
        self.assertEqual(compute_cost(-5, -5, Decimal("1"), Decimal("1")), Decimal("0E-8"))


class UsageLedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, self.SessionLocal = make_session_factory()
        self.ledger = UsageLedger(self.SessionLocal)
        self.ledger.record(_entry(report_id=1, project_id=10, model_id="m/a", action="EXTRACTION", cost="0.00100000"))
        self.ledger.record(
            _entry(report_id=1, project_id=10, model_id="m/b", action="KB_FULFILLMENT", cost="0.00200000", outcome="FAILED")
        )
        self.ledger.record(_entry(report_id=2, project_id=11, model_id="m/a", action="EXTRACTION", cost="0.00400000"))

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_total_cost_sums_all_entries(self) -> None:
        self.assertEqual(self.ledger.total_cost(), Decimal("0.00700000"))

    def test_total_cost_respects_filters(self) -> None:
        self.assertEqual(self.ledger.total_cost(UsageFilter(report_id=1)), Decimal("0.00300000"))
        self.assertEqual(self.ledger.total_cost(UsageFilter(project_id=11)), Decimal("0.00400000"))
        self.assertEqual(self.ledger.total_cost(UsageFilter(model_id="m/a")), Decimal("0.00500000"))
        self.assertEqual(
            self.ledger.total_cost(UsageFilter(model_id="m/a", action="EXTRACTION", report_id=1)),
            Decimal("0.00100000"),
        )
        self.assertEqual(self.ledger.total_cost(UsageFilter(report_id=99)), Decimal("0"))

    def test_summary_counts_tokens_and_failures(self) -> None:
        summary = self.ledger.summary(UsageFilter(project_id=10))

        self.assertEqual(summary.entries, 2)
        self.assertEqual(summary.failed_entries, 1)
        self.assertEqual(summary.input_tokens, 200)
        self.assertEqual(summary.output_tokens, 100)
        self.assertEqual(summary.total_cost, Decimal("0.00300000"))

    def test_list_entries_pages_newest_first(self) -> None:
        entries = self.ledger.list_entries(limit=2)
        self.assertEqual(len(entries), 2)
        self.assertEqual(entries[0].report_id, 2)

        rest = self.ledger.list_entries(limit=2, offset=2)
        self.assertEqual([entry.model_id for entry in rest], ["m/a"])


if __name__ == "__main__":
    unittest.main()
