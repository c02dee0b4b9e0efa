"""Level threshold policy: turns key-behavior verdicts into an achieved level."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from assessor.competency.dictionary import Competency
from assessor.models.key_behavior_analysis import KeyBehaviorStatus


class Verdict(Protocol):
    key_behavior_id: str
    status: str
    evaluated: bool


@dataclass(frozen=True, slots=True)
class LevelThresholdPolicy:
    """A level is met when the fulfilled share of its key behaviors reaches ``fulfilled_ratio``.

    ``fulfilled_ratio=1.0`` is the strict "all key behaviors fulfilled" rule.
    Unevaluated key behaviors never count as fulfilled, and a level with no
    key behaviors cannot be met.
    """

    fulfilled_ratio: float = 1.0
    contra_indicator_blocks_level: bool = True

    def __post_init__(self) -> None:
        if not 0.0 < self.fulfilled_ratio <= 1.0:
            raise ValueError("fulfilled_ratio must be in (0, 1]")

    def level_met(self, statuses: list[tuple[str, bool]]) -> bool:
        if not statuses:
            return False
        if self.contra_indicator_blocks_level and any(
            status == KeyBehaviorStatus.CONTRA_INDICATOR.value for status, _ in statuses
        ):
            return False
        fulfilled = sum(
            1 for status, evaluated in statuses if evaluated and status == KeyBehaviorStatus.FULFILLED.value
        )
        return fulfilled / len(statuses) >= self.fulfilled_ratio - 1e-9

    def achieved_level(self, competency: Competency, verdicts: Iterable[Verdict]) -> int:
        """Highest L such that every level 1..L is met; 0 when level 1 is not."""

        by_kb = {verdict.key_behavior_id: verdict for verdict in verdicts}
        achieved = 0
        for level in competency.levels:
            statuses: list[tuple[str, bool]] = []
            for kb in level.key_behaviors:
                verdict = by_kb.get(kb.id)
                if verdict is None:
                    statuses.append((KeyBehaviorStatus.NOT_OBSERVED.value, False))
                else:
                    statuses.append((verdict.status, verdict.evaluated))
            if not self.level_met(statuses):
                break
            achieved = level.number
        return achieved

    def to_dict(self) -> dict[str, object]:
        return {
            "fulfilled_ratio": self.fulfilled_ratio,
            "contra_indicator_blocks_level": self.contra_indicator_blocks_level,
        }
