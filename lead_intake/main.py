"""
FastAPI application hosting the lead intake pipeline.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from lead_intake.config import settings
from lead_intake.core.logging import configure_logging, get_logger
from lead_intake.pipeline import build_pipeline
from lead_intake.routers.health import router as health_router
from lead_intake.routers.leads import router as leads_router

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    configure_logging(settings.log_level, settings.log_json)
    log.info("application_starting")

    pipeline = build_pipeline(settings)
    app.state.pipeline = pipeline

    if pipeline.start():
        log.info("lead_ingestion_enabled", folder=settings.imap_folder)
    else:
        log.warning("lead_ingestion_disabled", reason="mailbox not connected, CSV import still available")

    yield

    # Shutdown
    pipeline.stop()
    log.info("application_stopped")


app = FastAPI(
    title="Lead Intake",
    description="Mailbox and CSV lead ingestion",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(leads_router)


# Run with: uvicorn lead_intake.main:app --host 0.0.0.0 --port 8010
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8010)
