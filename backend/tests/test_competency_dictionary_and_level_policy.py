from __future__ import annotations

import unittest
from dataclasses import dataclass

from assessor.competency.dictionary import DictionarySnapshot
from assessor.competency.level_policy import LevelThresholdPolicy

from pipeline_fixtures import DICTIONARY_CONTENT

_INDONESIAN_CONTENT = {
    "kompetensi": [
        {
            "namaKompetensi": "Kerja Sama",
            "definisi": "Bekerja efektif dengan orang lain.",
            "level": [
                {"nomor": 2, "penjelasan": "Aktif", "keyBehavior": ["Menawarkan bantuan"]},
                {"nomor": 1, "penjelasan": "Dasar", "keyBehavior": ["Berbagi informasi", "Hadir rapat"]},
            ],
        }
    ]
}


@dataclass
class _Verdict:
    key_behavior_id: str
    status: str
    evaluated: bool = True


class DictionarySnapshotTests(unittest.TestCase):
    def test_english_shape_assigns_default_key_behavior_ids(self) -> None:
        snapshot = DictionarySnapshot.from_content("Leadership", DICTIONARY_CONTENT)

        competency = snapshot.competency("PS")
        self.assertEqual(competency.max_level, 2)
        self.assertEqual(
            competency.key_behavior_levels(),
            {"PS.L1.KB1": 1, "PS.L1.KB2": 1, "PS.L2.KB1": 2},
        )
        self.assertTrue(snapshot.has_tag("PS", 2, "PS.L2.KB1"))
        self.assertFalse(snapshot.has_tag("PS", 1, "PS.L2.KB1"))
        self.assertFalse(snapshot.has_tag("XX", 1, "PS.L1.KB1"))

    def test_indonesian_shape_is_normalized_and_sorted(self) -> None:
        snapshot = DictionarySnapshot.from_content("Kamus", _INDONESIAN_CONTENT)

        competency = snapshot.competencies[0]
        self.assertEqual(competency.id, "kerja-sama")
        self.assertEqual(competency.name, "Kerja Sama")
        self.assertEqual([level.number for level in competency.levels], [1, 2])
        self.assertEqual(competency.levels[0].key_behaviors[1].id, "kerja-sama.L1.KB2")
        self.assertEqual(competency.levels[1].description, "Aktif")

    def test_snapshot_round_trips_through_json_storage(self) -> None:
        snapshot = DictionarySnapshot.from_content("Leadership", DICTIONARY_CONTENT)

        restored = DictionarySnapshot.model_validate(snapshot.model_dump(mode="json"))

        self.assertEqual(restored, snapshot)


class LevelThresholdPolicyTests(unittest.TestCase):
    def setUp(self) -> None:
        self.competency = DictionarySnapshot.from_content("Leadership", DICTIONARY_CONTENT).competency("PS")

    def test_strict_policy_requires_every_key_behavior(self) -> None:
        policy = LevelThresholdPolicy()
        verdicts = [
            _Verdict("PS.L1.KB1", "FULFILLED"),
            _Verdict("PS.L1.KB2", "NOT_OBSERVED"),
            _Verdict("PS.L2.KB1", "FULFILLED"),
        ]

        self.assertEqual(policy.achieved_level(self.competency, verdicts), 0)

    def test_levels_are_cumulative(self) -> None:
        policy = LevelThresholdPolicy()
        verdicts = [
            _Verdict("PS.L1.KB1", "FULFILLED"),
            _Verdict("PS.L1.KB2", "FULFILLED"),
            _Verdict("PS.L2.KB1", "FULFILLED"),
        ]

        self.assertEqual(policy.achieved_level(self.competency, verdicts), 2)

    def test_ratio_policy_accepts_partial_fulfillment(self) -> None:
        policy = LevelThresholdPolicy(fulfilled_ratio=0.5)
        verdicts = [
            _Verdict("PS.L1.KB1", "FULFILLED"),
            _Verdict("PS.L1.KB2", "NOT_OBSERVED"),
            _Verdict("PS.L2.KB1", "NOT_OBSERVED"),
        ]

        self.assertEqual(policy.achieved_level(self.competency, verdicts), 1)

    def test_unevaluated_key_behaviors_never_count(self) -> None:
        policy = LevelThresholdPolicy(fulfilled_ratio=0.5)
        verdicts = [
            _Verdict("PS.L1.KB1", "FULFILLED", evaluated=False),
            _Verdict("PS.L1.KB2", "NOT_OBSERVED"),
        ]

        self.assertEqual(policy.achieved_level(self.competency, verdicts), 0)

    def test_contra_indicator_blocks_level_when_configured(self) -> None:
        verdicts = [
            _Verdict("PS.L1.KB1", "FULFILLED"),
            _Verdict("PS.L1.KB2", "CONTRA_INDICATOR"),
        ]

        self.assertEqual(LevelThresholdPolicy(fulfilled_ratio=0.5).achieved_level(self.competency, verdicts), 0)
        self.assertEqual(
            LevelThresholdPolicy(fulfilled_ratio=0.5, contra_indicator_blocks_level=False).achieved_level(
                self.competency, verdicts
            ),
            1,
        )

    def test_ratio_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            LevelThresholdPolicy(fulfilled_ratio=0.0)


if __name__ == "__main__":
    unittest.main()
