"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from assessor.db.session import SessionLocal
from assessor.routers import admin, reports
from assessor.services.model_catalog import seed_default_catalog
from assessor.services.runtime import get_runtime

logger = logging.getLogger(__name__)


def _prepare_backend_state() -> None:
    """Check the DB connection and make sure the default model catalog exists."""

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
            inserted = seed_default_catalog(db)
            if inserted:
                logger.info("startup.catalog_seeded models=%d", inserted)
    except Exception:
        logger.exception("Backend warm-up failed; continuing without catalog seeding.")


@asynccontextmanager
async def lifespan(_: FastAPI):
    _prepare_backend_state()
    runtime = get_runtime()
    runtime.start()
    try:
        yield
    finally:
        runtime.stop()


app = FastAPI(title="Assessor Report Pipeline API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(reports.router, tags=["reports"])
app.include_router(admin.router, tags=["admin"])


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}
