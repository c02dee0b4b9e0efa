"""Process-wide pipeline wiring: gateway, ledger, queue, orchestrator and ask-ai."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy.orm import Session

from assessor.config import Settings, get_settings
from assessor.db.session import SessionLocal
from assessor.models.report import ReportStatus
from assessor.pipeline.ask_ai import AskAiService
from assessor.pipeline.orchestrator import PipelineOrchestrator
from assessor.routing.gateway import ModelGateway, OpenRouterGateway
from assessor.services.job_queue import InProcessJobQueue, Job
from assessor.services.stores import SqlDocumentStore, SqlProjectStore
from assessor.services.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineRuntime:
    queue: InProcessJobQueue
    ledger: UsageLedger
    orchestrator: PipelineOrchestrator
    ask_ai: AskAiService

    def handle_job(self, job: Job) -> bool:
        """Queue handler: a job fails only when its report ends PHASE_FAILED."""

        final_status = self.orchestrator.run(job.report_id, job.id)
        return final_status != ReportStatus.PHASE_FAILED.value

    def start(self) -> None:
        self.orchestrator.recover_interrupted()
        self.queue.start(self.handle_job)

    def stop(self) -> None:
        self.queue.stop()


def get_default_gateway(settings: Settings | None = None) -> ModelGateway:
    active_settings = settings or get_settings()
    if not active_settings.openrouter_api_key:
        logger.warning("runtime.gateway_unconfigured detail=OPENROUTER_API_KEY is not set; model calls will fail")
    return OpenRouterGateway(
        api_key=active_settings.openrouter_api_key or "",
        base_url=active_settings.openrouter_base_url,
        timeout_seconds=active_settings.model_timeout_seconds,
        app_title=active_settings.openrouter_app_title,
    )


def build_runtime(
    session_factory: Callable[[], Session],
    gateway: ModelGateway,
    *,
    settings: Settings | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PipelineRuntime:
    active_settings = settings or get_settings()
    ledger = UsageLedger(session_factory)
    queue = InProcessJobQueue(concurrency=active_settings.worker_pool_size)
    orchestrator = PipelineOrchestrator(
        session_factory,
        queue,
        gateway,
        ledger,
        SqlDocumentStore(session_factory),
        SqlProjectStore(session_factory),
        settings=active_settings,
        sleep=sleep,
    )
    return PipelineRuntime(
        queue=queue,
        ledger=ledger,
        orchestrator=orchestrator,
        ask_ai=AskAiService(gateway, ledger, settings=active_settings, sleep=sleep),
    )


@lru_cache
def get_runtime() -> PipelineRuntime:
    """Return the process-wide runtime bound to the application database."""

    return build_runtime(SessionLocal, get_default_gateway())
