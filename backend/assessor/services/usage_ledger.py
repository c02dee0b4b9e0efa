"""Append-only usage ledger for AI calls."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assessor.errors import LedgerUnavailable
from assessor.models.usage_log_entry import UsageLogEntry, UsageOutcome

logger = logging.getLogger(__name__)

COST_QUANTUM = Decimal("0.00000001")
_PER_MILLION = Decimal(1_000_000)


def compute_cost(
    input_tokens: int,
    output_tokens: int,
    input_cost_per_million: Decimal,
    output_cost_per_million: Decimal,
) -> Decimal:
    """Return ``tokens × rate`` in USD, rounded half-even to the ledger quantum."""

    raw = (
        Decimal(max(0, int(input_tokens))) * Decimal(input_cost_per_million)
        + Decimal(max(0, int(output_tokens))) * Decimal(output_cost_per_million)
    ) / _PER_MILLION
    return raw.quantize(COST_QUANTUM, rounding=ROUND_HALF_EVEN)


@dataclass(slots=True)
class UsageFilter:
    """Admin filter over ledger entries. ``end`` is exclusive."""

    start: datetime | None = None
    end: datetime | None = None
    project_id: int | None = None
    report_id: int | None = None
    model_id: str | None = None
    action: str | None = None

    def apply(self, stmt: Select) -> Select:
        if self.start is not None:
            stmt = stmt.where(UsageLogEntry.created_at >= self.start)
        if self.end is not None:
            stmt = stmt.where(UsageLogEntry.created_at < self.end)
        if self.project_id is not None:
            stmt = stmt.where(UsageLogEntry.project_id == self.project_id)
        if self.report_id is not None:
            stmt = stmt.where(UsageLogEntry.report_id == self.report_id)
        if self.model_id is not None:
            stmt = stmt.where(UsageLogEntry.model_id == self.model_id)
        if self.action is not None:
            stmt = stmt.where(UsageLogEntry.action == self.action)
        return stmt


@dataclass(slots=True)
class UsageSummary:
    entries: int
    failed_entries: int
    input_tokens: int
    output_tokens: int
    total_cost: Decimal


class UsageLedger:
    """Records one entry per model invocation, each in its own transaction."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def record(self, entry: UsageLogEntry) -> int:
        """Append an entry and return its id. Storage failures raise ``LedgerUnavailable``."""

        db = self._session_factory()
        try:
            db.add(entry)
            db.commit()
            db.refresh(entry)
            entry_id = entry.id
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception(
                "ledger.record_failed report_id=%s model_id=%s action=%s",
                entry.report_id,
                entry.model_id,
                entry.action,
            )
            raise LedgerUnavailable("usage ledger write failed") from exc
        finally:
            db.close()
        return entry_id

    def total_cost(self, usage_filter: UsageFilter | None = None) -> Decimal:
        """Sum the cost of all matching entries."""

        stmt = (usage_filter or UsageFilter()).apply(select(UsageLogEntry.cost_usd))
        with self._session_factory() as db:
            costs = list(db.scalars(stmt))
        return _sum_costs(costs)

    def list_entries(
        self,
        usage_filter: UsageFilter | None = None,
        *,
        limit: int = 100,
        offset: int = 0,
    ) -> list[UsageLogEntry]:
        stmt = (usage_filter or UsageFilter()).apply(select(UsageLogEntry))
        stmt = stmt.order_by(UsageLogEntry.created_at.desc(), UsageLogEntry.id.desc()).limit(limit).offset(offset)
        with self._session_factory() as db:
            rows = list(db.scalars(stmt))
            db.expunge_all()
        return rows

    def summary(self, usage_filter: UsageFilter | None = None) -> UsageSummary:
        active_filter = usage_filter or UsageFilter()
        totals_stmt = active_filter.apply(
            select(
                func.count(UsageLogEntry.id),
                func.coalesce(func.sum(UsageLogEntry.input_tokens), 0),
                func.coalesce(func.sum(UsageLogEntry.output_tokens), 0),
            )
        )
        failed_stmt = active_filter.apply(
            select(func.count(UsageLogEntry.id)).where(UsageLogEntry.outcome == UsageOutcome.FAILED.value)
        )
        with self._session_factory() as db:
            count, input_tokens, output_tokens = db.execute(totals_stmt).one()
            failed = db.scalar(failed_stmt) or 0
        return UsageSummary(
            entries=int(count),
            failed_entries=int(failed),
            input_tokens=int(input_tokens),
            output_tokens=int(output_tokens),
            total_cost=self.total_cost(active_filter),
        )


def _sum_costs(costs: list[Decimal | None]) -> Decimal:
    total = sum((Decimal(cost) for cost in costs if cost is not None), Decimal("0"))
    return total.quantize(COST_QUANTUM, rounding=ROUND_HALF_EVEN)
