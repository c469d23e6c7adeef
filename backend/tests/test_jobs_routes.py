"""
Tests for the job status route.
"""

import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from adsync.auth import TeamContext, get_team_context, require_auth
from adsync.dependencies import get_job_queue
from adsync.main import app
from adsync.services.job_queue import Job, JobState
from adsync.services.sync_service import SYNC_CAMPAIGN_SET_JOB

TEAM_ID = uuid.uuid4()


@pytest.fixture
def job_queue():
    queue = MagicMock()
    app.dependency_overrides[require_auth] = lambda: "test"
    app.dependency_overrides[get_team_context] = lambda: TeamContext(team=SimpleNamespace(id=TEAM_ID))
    app.dependency_overrides[get_job_queue] = lambda: queue
    yield queue
    app.dependency_overrides.clear()


async def _get(job_id: str):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.get(f"/api/v1/jobs/{job_id}")


@pytest.mark.anyio
async def test_job_status_for_own_team(job_queue):
    job = Job(
        id=str(uuid.uuid4()),
        name=SYNC_CAMPAIGN_SET_JOB,
        data={"campaignSetId": str(uuid.uuid4()), "teamId": str(TEAM_ID)},
        state=JobState.COMPLETED,
        output={"synced": 1, "failed": 0, "skipped": 0, "errors": []},
    )
    job_queue.get_job.return_value = job

    response = await _get(job.id)

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == job.id
    assert body["state"] == "completed"
    assert body["output"]["synced"] == 1
    assert body["error"] is None
    job_queue.get_job.assert_called_once_with(SYNC_CAMPAIGN_SET_JOB, job.id)


@pytest.mark.anyio
async def test_other_teams_job_is_not_found(job_queue):
    job_queue.get_job.return_value = Job(
        id="j1", name=SYNC_CAMPAIGN_SET_JOB, data={"teamId": str(uuid.uuid4())},
    )
    response = await _get("j1")
    assert response.status_code == 404
    assert response.json() == {"error": "Job not found", "code": "NOT_FOUND"}


@pytest.mark.anyio
async def test_unknown_job_is_not_found(job_queue):
    job_queue.get_job.return_value = None
    response = await _get("missing")
    assert response.status_code == 404
