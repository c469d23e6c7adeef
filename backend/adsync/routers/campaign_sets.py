"""
Campaign Sets Router: CRUD over campaign sets and their generated campaigns,
plus the sync workflow (validate, preview-sync, sync, sync-stream).

Every route is scoped to the team named in the X-Team-Id header. A set that
belongs to another team is reported as not found.
"""

import asyncio
import logging
import time
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from adsync.auth import TeamContext, get_team_context
from adsync.config import get_settings
from adsync.database import get_db
from adsync.dependencies import get_event_broker, get_job_queue, get_validation_service
from adsync.errors import ApiError, ErrorCode, forbidden_error, internal_error, not_found_error, validation_error
from adsync.models import CampaignSetStatus, Platform, SyncStatus
from adsync.schemas.campaign_sets import (
    CampaignListResponse,
    CampaignSetListResponse,
    CreateCampaignSetRequest,
    PauseResponse,
    QueuedJobResponse,
    ResumeResponse,
    SyncPreviewResponse,
    UpdateCampaignSetRequest,
    ValidateRequest,
)
from adsync.schemas.hierarchy import CampaignNode, CampaignSetTree
from adsync.services import campaign_set_service as sets
from adsync.services.job_queue import JobQueue, JobQueueError, JobState
from adsync.services.sync_events import DONE, SyncEventBroker, format_sse
from adsync.services.sync_preview import preview_sync
from adsync.services.sync_service import SYNC_CAMPAIGN_SET_JOB, completion_summary
from adsync.services.validation.service import SyncValidationService, format_validation_summary
from adsync.services.validation.types import ValidationResult
from adsync.utils import parse_uuid

logger = logging.getLogger(__name__)

router = APIRouter()

SUPPORTED_SYNC_PLATFORMS = (Platform.REDDIT,)
HEARTBEAT = ": heartbeat\n\n"


# ── Helpers ──────────────────────────────────────────────────────────────

async def _load_set(db: AsyncSession, set_id: str, ctx: TeamContext):
    return await sets.get_campaign_set_for_team(db, parse_uuid(set_id, "setId"), ctx.team_id)


async def _sync_event_stream(
    job_id: str,
    job_queue: JobQueue,
    broker: SyncEventBroker,
    timeout: float,
    heartbeat: float,
) -> AsyncIterator[str]:
    # Subscribe before reading the job state so nothing published in between is lost
    async with broker.subscribe(job_id) as queue:
        job = job_queue.get_job(SYNC_CAMPAIGN_SET_JOB, job_id)
        state = job.state if job is not None else JobState.FAILED

        if state == JobState.COMPLETED:
            logger.info(f"[SSE] Job {job_id} already completed, sending result")
            yield format_sse("completed", completion_summary(job.output))
            return
        if state == JobState.FAILED:
            logger.info(f"[SSE] Job {job_id} already failed, sending error")
            yield format_sse("error", {"error": "Job failed"})
            return

        yield format_sse("connected", {"jobId": job_id, "state": state.value})

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        # Heartbeats keep a fixed schedule; relayed events do not push them back
        next_heartbeat = loop.time() + heartbeat
        while True:
            now = loop.time()
            if now >= deadline:
                logger.info(f"[SSE] Stream timed out for job {job_id}")
                return
            if now >= next_heartbeat:
                yield HEARTBEAT
                next_heartbeat = now + heartbeat
                continue
            try:
                item = await asyncio.wait_for(queue.get(), timeout=min(next_heartbeat, deadline) - now)
            except asyncio.TimeoutError:
                continue
            if item is DONE:
                logger.info(f"[SSE] Job {job_id} completed, closing stream")
                return
            yield format_sse(item.type, item.data)


# ── Campaign set CRUD ────────────────────────────────────────────────────

@router.get("", response_model=CampaignSetListResponse)
async def list_campaign_sets(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[CampaignSetStatus] = Query(None),
    sync_status: Optional[SyncStatus] = Query(None, alias="syncStatus"),
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
):
    data, pagination = await sets.list_campaign_sets(
        db, ctx.team_id, page=page, limit=limit, status=status, sync_status=sync_status,
    )
    return CampaignSetListResponse(data=data, pagination=pagination)


@router.post("", response_model=CampaignSetTree, status_code=201)
async def create_campaign_set(
    body: CreateCampaignSetRequest,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
):
    campaign_set = await sets.create_campaign_set(db, ctx.team_id, body)
    return sets.to_tree(campaign_set)


@router.get("/{set_id}", response_model=CampaignSetTree)
async def get_campaign_set(
    set_id: str,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
):
    campaign_set = await _load_set(db, set_id, ctx)
    return await sets.load_campaign_set_tree(db, campaign_set)


@router.put("/{set_id}", response_model=CampaignSetTree)
async def update_campaign_set(
    set_id: str,
    body: UpdateCampaignSetRequest,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
):
    campaign_set = await _load_set(db, set_id, ctx)
    campaign_set = await sets.update_campaign_set(db, campaign_set, body)
    return sets.to_tree(campaign_set)


@router.delete("/{set_id}", status_code=204)
async def delete_campaign_set(
    set_id: str,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
):
    campaign_set = await _load_set(db, set_id, ctx)
    await sets.delete_campaign_set(db, campaign_set)
    return Response(status_code=204)


# ── Validation and preview ───────────────────────────────────────────────

@router.post("/{set_id}/validate", response_model=ValidationResult)
async def validate_campaign_set(
    set_id: str,
    body: Optional[ValidateRequest] = None,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
    validation_service: SyncValidationService = Depends(get_validation_service),
):
    """Dry-run validation of the whole set. Always 200; errors are in the body."""
    campaign_set = await _load_set(db, set_id, ctx)
    tree = await sets.load_campaign_set_tree(db, campaign_set)
    platform = Platform(body.platform) if body and body.platform else None
    result = validation_service.validate_campaign_set(tree, platform)
    logger.info(f"[Validate] Campaign set {set_id}: {format_validation_summary(result)}")
    return result


@router.post("/{set_id}/preview-sync", response_model=SyncPreviewResponse)
async def preview_campaign_set_sync(
    set_id: str,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
    validation_service: SyncValidationService = Depends(get_validation_service),
):
    """
    Report which ads would sync as-is, which would sync with fallback content
    and which would be skipped. Reads only; safe to call repeatedly.
    """
    started_at = time.perf_counter()
    campaign_set = await _load_set(db, set_id, ctx)
    tree = await sets.load_campaign_set_tree(db, campaign_set)
    return preview_sync(
        tree,
        validation_service=validation_service,
        skip_rate_threshold=get_settings().skip_rate_warning_threshold,
        started_at=started_at,
    )


# ── Sync ─────────────────────────────────────────────────────────────────

@router.post("/{set_id}/sync", response_model=QueuedJobResponse, status_code=202)
async def sync_campaign_set(
    set_id: str,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
    job_queue: JobQueue = Depends(get_job_queue),
):
    campaign_set = await _load_set(db, set_id, ctx)
    config = sets.campaign_set_config(campaign_set)

    selected = config.selected_platforms
    if not any(p in SUPPORTED_SYNC_PLATFORMS for p in selected):
        found = ", ".join(p.value for p in selected)
        raise validation_error(f"Unsupported platform. Currently only Reddit is supported. Found: {found}")

    if not config.ad_account_id:
        raise validation_error(
            "Ad account ID is required for Reddit sync. Please configure the campaign set with an ad account."
        )

    ad_account = await sets.get_team_ad_account(db, ctx.team_id, config.ad_account_id)
    if ad_account is None:
        raise validation_error("Invalid or unauthorized ad account")

    promoted = await sets.promote_draft_campaigns(db, campaign_set.id)
    if promoted:
        logger.info(f"[Sync] Promoted {promoted} draft campaigns to pending for set {set_id}")
    # The job runs in its own session, so the promotion must be visible first
    await db.commit()

    job_data = {
        "campaignSetId": str(campaign_set.id),
        "teamId": str(ctx.team_id),
        "adAccountId": str(ad_account.id),
        "fundingInstrumentId": config.funding_instrument_id,
        "platform": Platform.REDDIT.value,
    }
    try:
        job_id = await job_queue.send(
            SYNC_CAMPAIGN_SET_JOB, job_data, singleton_key=f"sync-campaign-set-{campaign_set.id}",
        )
    except JobQueueError as e:
        logger.error(f"[Sync] Failed to queue sync job for campaign set {set_id}: {e}")
        raise internal_error(f"Failed to queue sync job: {e}")

    if not job_id:
        logger.error(f"[Sync] Failed to queue sync job for campaign set {set_id}: sync already in progress")
        raise internal_error("Failed to queue sync job")

    logger.info(f"[Sync] Queued sync job {job_id} for campaign set {set_id}")
    return QueuedJobResponse(
        job_id=job_id,
        message="Sync job has been queued. Use GET /api/v1/jobs/{jobId} to check status.",
    )


@router.get("/{set_id}/sync-stream")
async def stream_sync_progress(
    set_id: str,
    job_id: Optional[str] = Query(None, alias="jobId"),
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
    job_queue: JobQueue = Depends(get_job_queue),
    broker: SyncEventBroker = Depends(get_event_broker),
):
    """Server-Sent Events for one sync job of this set."""
    if not job_id:
        raise validation_error("Invalid or missing jobId query parameter")
    job_id = str(parse_uuid(job_id, "jobId"))

    campaign_set = await _load_set(db, set_id, ctx)

    job = job_queue.get_job(SYNC_CAMPAIGN_SET_JOB, job_id)
    if job is None:
        raise ApiError(404, ErrorCode.NOT_FOUND, "Job not found")

    if job.data.get("campaignSetId") != str(campaign_set.id) or job.data.get("teamId") != str(ctx.team_id):
        logger.info(
            f"[SSE] Access denied: job {job_id} belongs to campaign set {job.data.get('campaignSetId')}, "
            f"requested by {campaign_set.id}/{ctx.team_id}"
        )
        raise forbidden_error("Access denied to this job")

    settings = get_settings()
    return StreamingResponse(
        _sync_event_stream(
            job_id,
            job_queue,
            broker,
            timeout=settings.sync_stream_timeout_seconds,
            heartbeat=settings.sync_heartbeat_seconds,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ── Pause / resume ───────────────────────────────────────────────────────

@router.post("/{set_id}/pause", response_model=PauseResponse)
async def pause_campaign_set(
    set_id: str,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
):
    campaign_set = await _load_set(db, set_id, ctx)
    paused = await sets.pause_campaign_set(db, campaign_set)
    logger.info(f"Paused {paused} campaign(s) in set {set_id}")
    return PauseResponse(paused=paused)


@router.post("/{set_id}/resume", response_model=ResumeResponse)
async def resume_campaign_set(
    set_id: str,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
):
    campaign_set = await _load_set(db, set_id, ctx)
    resumed = await sets.resume_campaign_set(db, campaign_set)
    logger.info(f"Resumed {resumed} campaign(s) in set {set_id}")
    return ResumeResponse(resumed=resumed)


# ── Campaigns in a set ───────────────────────────────────────────────────

@router.get("/{set_id}/campaigns", response_model=CampaignListResponse)
async def list_campaigns(
    set_id: str,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
):
    campaign_set = await _load_set(db, set_id, ctx)
    campaigns = await sets.load_campaigns(db, campaign_set.id)
    return CampaignListResponse(campaigns=campaigns)


@router.get("/{set_id}/campaigns/{campaign_id}", response_model=CampaignNode)
async def get_campaign(
    set_id: str,
    campaign_id: str,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
):
    campaign_set = await _load_set(db, set_id, ctx)
    cid = parse_uuid(campaign_id, "campaignId")
    campaigns = await sets.load_campaigns(db, campaign_set.id, campaign_id=cid)
    if not campaigns:
        raise not_found_error("Campaign", cid)
    return campaigns[0]


@router.delete("/{set_id}/campaigns/{campaign_id}", status_code=204)
async def delete_campaign(
    set_id: str,
    campaign_id: str,
    ctx: TeamContext = Depends(get_team_context),
    db: AsyncSession = Depends(get_db),
):
    campaign_set = await _load_set(db, set_id, ctx)
    await sets.delete_campaign(db, campaign_set.id, parse_uuid(campaign_id, "campaignId"))
    return Response(status_code=204)
