"""Seed a demo project with a competency dictionary and queue one report.

Usage (from repository root):
    python backend/scripts/seed_demo.py

Usage (from backend directory):
    python scripts/seed_demo.py
    # or
    python -m scripts.seed_demo --run
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import select

# Make `assessor` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from assessor.db.session import SessionLocal
from assessor.models.project import CompetencyDictionaryRecord, Project
from assessor.pipeline.orchestrator import NewDocument
from assessor.services.model_catalog import seed_default_catalog
from assessor.services.runtime import get_runtime


DEFAULT_PROJECT_NAME = "Supervisor Assessment Demo"

DEMO_DICTIONARY = {
    "competencies": [
        {
            "id": "PS",
            "name": "Problem Solving",
            "definition": "Finds root causes and proposes workable solutions.",
            "levels": [
                {
                    "number": 1,
                    "description": "Identifies problems",
                    "key_behaviors": ["Identifies the core problem", "Gathers relevant data"],
                },
                {
                    "number": 2,
                    "description": "Analyzes causes",
                    "key_behaviors": ["Proposes alternative solutions", "Weighs risks of each option"],
                },
            ],
        },
        {
            "id": "TW",
            "name": "Teamwork",
            "definition": "Works with others toward shared goals.",
            "levels": [
                {
                    "number": 1,
                    "description": "Cooperates",
                    "key_behaviors": ["Shares information with the team"],
                },
            ],
        },
    ]
}

DEMO_DOCUMENTS = [
    NewDocument(
        file_ref="demo://in-basket.txt",
        simulation_method="In-Basket",
        extracted_text=(
            "Memo 1: The main issue is the delayed shipment from the vendor. I checked last quarter's "
            "delivery logs before replying. Memo 2: I forwarded the logs to the warehouse team so "
            "everyone works from the same numbers."
        ),
    ),
    NewDocument(
        file_ref="demo://case-study.txt",
        simulation_method="Case Study",
        extracted_text=(
            "Root cause: no backup supplier. Option A is to qualify a second vendor, option B is to "
            "hold more safety stock; A costs more upfront but removes the single point of failure."
        ),
    ),
]


def ensure_project(db, name: str) -> int:
    """Return the demo project id, creating the project and dictionary if needed."""

    project = db.scalar(select(Project).where(Project.name == name))
    if project is not None:
        return project.id
    dictionary = CompetencyDictionaryRecord(name="Demo Dictionary", content_json=DEMO_DICTIONARY)
    db.add(dictionary)
    db.flush()
    project = Project(
        name=name,
        dictionary_id=dictionary.id,
        context_guide="Candidates are first-line supervisors in a logistics company.",
        prompt_overrides_json={},
    )
    db.add(project)
    db.commit()
    return project.id


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed a demo project and queue one assessment report.")
    parser.add_argument(
        "--project-name",
        default=DEFAULT_PROJECT_NAME,
        help=f"Project to seed or reuse (default: {DEFAULT_PROJECT_NAME})",
    )
    parser.add_argument(
        "--run",
        action="store_true",
        help="Generate the report synchronously in this process instead of leaving it QUEUED.",
    )
    return parser.parse_args()


def main() -> None:
    """Seed demo data and print a short summary."""

    args = parse_args()
    runtime = get_runtime()

    with SessionLocal() as db:
        models_inserted = seed_default_catalog(db)
        project_id = ensure_project(db, args.project_name)
        report = runtime.orchestrator.create_report(
            db,
            project_id=project_id,
            title="Demo assessee",
            target_levels={"PS": 2, "TW": 1},
            specific_context="Candidate for warehouse shift supervisor.",
            documents=DEMO_DOCUMENTS,
        )
        report_id = report.id
        job = runtime.orchestrator.submit(db, report_id)
        final_status = report.status

    if args.run and job is not None:
        final_status = runtime.orchestrator.run(report_id, job.id)

    print("Seed complete")
    print(f"models_inserted={models_inserted}")
    print(f"project_id={project_id}")
    print(f"report_id={report_id}")
    print(f"status={final_status}")
    print()
    print("Inspect:")
    print(f"  GET /reports/{report_id}/status")
    print(f"  GET /reports/{report_id}")
    print(f"  GET /admin/usage/summary?report_id={report_id}")


if __name__ == "__main__":
    main()
