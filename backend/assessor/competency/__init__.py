"""Competency dictionary snapshots and level assignment."""

from assessor.competency.dictionary import Competency, DictionarySnapshot, KeyBehavior, Level
from assessor.competency.level_policy import LevelThresholdPolicy

__all__ = ["Competency", "DictionarySnapshot", "KeyBehavior", "Level", "LevelThresholdPolicy"]
