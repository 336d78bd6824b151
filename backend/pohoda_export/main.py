"""Pohoda Export API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map PohodaExportError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager
    - The export worker runs as a lifespan-owned task and is stopped before the
      engine is disposed

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Missing Pohoda credentials only log a warning: probes and job admin keep working
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pohoda_export.api.error_handlers import register_error_handlers
from pohoda_export.api.routes import export_jobs, health, invoices
from pohoda_export.config import get_settings
from pohoda_export.infrastructure import database
from pohoda_export.infrastructure.observability import setup_logging
from pohoda_export.services.export_worker import PohodaExportWorker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    if not settings.pohoda_credentials_configured:
        logger.warning("POHODA_USERNAME is not set; Pohoda calls will be rejected")

    stop_event = asyncio.Event()
    worker_task: asyncio.Task | None = None
    if settings.pohoda_export_worker_enabled:
        worker = PohodaExportWorker(database.get_db_manager(), settings)
        worker_task = asyncio.create_task(worker.run(stop_event))
    logger.info("Pohoda export API started")
    yield
    logger.info("Pohoda export API shutting down")
    stop_event.set()
    if worker_task is not None:
        await worker_task
    await database.get_db_manager().dispose()


app = FastAPI(
    title="Pohoda Export API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(health.router)
app.include_router(invoices.router)
app.include_router(export_jobs.router)
