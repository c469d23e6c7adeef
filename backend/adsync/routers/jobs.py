"""
Jobs Router: status lookups for background sync jobs.
"""

import logging

from fastapi import APIRouter, Depends

from adsync.auth import TeamContext, get_team_context
from adsync.dependencies import get_job_queue
from adsync.errors import ApiError, ErrorCode
from adsync.schemas.campaign_sets import JobStatusResponse
from adsync.services.job_queue import JobQueue
from adsync.services.sync_service import SYNC_CAMPAIGN_SET_JOB

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    ctx: TeamContext = Depends(get_team_context),
    job_queue: JobQueue = Depends(get_job_queue),
):
    job = job_queue.get_job(SYNC_CAMPAIGN_SET_JOB, job_id)
    # Another team's job is reported exactly like a missing one
    if job is None or job.data.get("teamId") != str(ctx.team_id):
        raise ApiError(404, ErrorCode.NOT_FOUND, "Job not found")
    return JobStatusResponse(
        id=job.id,
        name=job.name,
        state=job.state.value,
        data=job.data,
        output=job.output,
        error=job.error,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )
