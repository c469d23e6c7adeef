"""
Campaign Set Sync API: FastAPI backend.
Keeps generated campaign sets, validates them against ad-platform limits,
previews sync readiness and pushes them to Reddit Ads as background jobs.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from adsync.auth import require_auth
from adsync.config import get_settings
from adsync.crypto import TokenCipher
from adsync.database import check_db_connection, init_db
from adsync.errors import (
    ApiError,
    api_error_handler,
    http_exception_handler,
    request_validation_handler,
    unhandled_error_handler,
)
from adsync.routers import campaign_sets, jobs
from adsync.services.job_queue import JobQueue
from adsync.services.sync_events import SyncEventBroker
from adsync.services.sync_service import SYNC_CAMPAIGN_SET_JOB, CampaignSetSyncHandler
from adsync.services.validation.service import SyncValidationService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Campaign Set Sync API...")
    try:
        await init_db()
        logger.info("Database initialized, all tables ready.")
    except Exception as e:
        logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
        # Still yield so app can serve /api/health (degraded) and logs are visible

    validation_service = SyncValidationService()
    broker = SyncEventBroker()
    job_queue = JobQueue(concurrency=settings.job_queue_concurrency, retention=settings.job_retention)
    job_queue.register(
        SYNC_CAMPAIGN_SET_JOB,
        CampaignSetSyncHandler(
            broker,
            cipher=TokenCipher.from_settings(),
            validation_service=validation_service,
        ),
    )
    await job_queue.start()

    app.state.validation_service = validation_service
    app.state.event_broker = broker
    app.state.job_queue = job_queue
    yield
    logger.info("Shutting down...")
    await job_queue.stop()


app = FastAPI(
    title="Campaign Set Sync API",
    description="Validate, preview and sync generated ad campaign sets",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Register Routers (all require auth) ──────────────────────────────
_auth = [Depends(require_auth)]
app.include_router(campaign_sets.router, prefix="/api/v1/campaign-sets", tags=["Campaign Sets"], dependencies=_auth)
app.include_router(jobs.router, prefix="/api/v1/jobs", tags=["Jobs"], dependencies=_auth)


@app.get("/api/health")
async def health_check():
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "Campaign Set Sync API",
        "database": "connected" if db_ok else "disconnected",
    }
