"""Typed evidence outputs independent of persistence."""

from dataclasses import dataclass, field


@dataclass(slots=True)
class DocumentText:
    """Clean text of one source document as handed over by the document store."""

    document_id: int | None
    simulation_method: str
    text: str


@dataclass(slots=True)
class ExtractedEvidence:
    """Quote tagged with a competency/level/key-behavior triple present in the dictionary."""

    document_id: int | None
    competency_id: str
    level: int
    key_behavior_id: str
    quote: str
    reasoning: str = ""
    source: str = ""
    is_contra_indicator: bool = False


@dataclass(slots=True)
class KeyBehaviorVerdict:
    """Verdict for one key behavior; ``evaluated`` is False when the model returned nothing for it."""

    competency_id: str
    level: int
    key_behavior_id: str
    key_behavior_text: str
    status: str
    reasoning: str = ""
    evidence_ids: list[int] = field(default_factory=list)
    evaluated: bool = True
