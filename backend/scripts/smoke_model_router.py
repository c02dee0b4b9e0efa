"""Run one real evidence-extraction call through the model router.

Usage (from repo root):
    python backend/scripts/smoke_model_router.py

Usage (from backend/):
    python scripts/smoke_model_router.py

Needs OPENROUTER_API_KEY and a reachable database for the usage ledger.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from assessor.competency.dictionary import DictionarySnapshot
from assessor.config import get_settings
from assessor.db.session import SessionLocal
from assessor.evidence.resolver import EvidenceResolver
from assessor.evidence.types import DocumentText
from assessor.pipeline.config import retry_policy_from_settings
from assessor.prompts import PromptSet
from assessor.routing.router import ModelRouter
from assessor.services.model_catalog import resolve_routing_config, seed_default_catalog
from assessor.services.runtime import get_default_gateway
from assessor.services.usage_ledger import UsageFilter, UsageLedger

_DICTIONARY = {
    "competencies": [
        {
            "id": "PS",
            "name": "Problem Solving",
            "levels": [
                {
                    "number": 1,
                    "description": "Identifies problems",
                    "key_behaviors": ["Identifies the core problem", "Gathers relevant data"],
                }
            ],
        }
    ]
}

_DOCUMENT = DocumentText(
    document_id=None,
    simulation_method="In-Basket",
    text=(
        "The main issue is the delayed shipment from the vendor. "
        "Before answering I checked last quarter's delivery logs."
    ),
)


def main() -> None:
    settings = get_settings()
    with SessionLocal() as db:
        seed_default_catalog(db)
        routing = resolve_routing_config(db, settings)

    ledger = UsageLedger(SessionLocal)
    router = ModelRouter(
        get_default_gateway(settings),
        ledger,
        routing,
        policy=retry_policy_from_settings(settings),
        store_snapshots=settings.store_prompt_snapshots,
    )
    resolver = EvidenceResolver(router, PromptSet.defaults())
    evidence = resolver.extract_document_evidence(
        _DOCUMENT,
        DictionarySnapshot.from_content("Smoke Dictionary", _DICTIONARY),
    )
    print(
        json.dumps(
            {
                "model_id": routing.binding("judgment").primary.model_id,
                "evidence": [
                    {
                        "competency_id": item.competency_id,
                        "level": item.level,
                        "key_behavior_id": item.key_behavior_id,
                        "quote": item.quote,
                        "is_contra_indicator": item.is_contra_indicator,
                    }
                    for item in evidence
                ],
                "ledger_entries": len(ledger.list_entries(UsageFilter(action="EXTRACTION"), limit=1000)),
                "ledger_cost_usd": str(ledger.total_cost(UsageFilter(action="EXTRACTION"))),
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    main()
