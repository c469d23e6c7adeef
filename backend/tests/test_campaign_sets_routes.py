"""
Tests for the campaign-set routes: tenancy, preview, validate and sync queueing.

The database session is an AsyncMock; service helpers are patched where a
test is about the route rather than the query.
"""

import uuid
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from adsync.auth import TeamContext, get_team_context, require_auth
from adsync.database import get_db
from adsync.dependencies import get_event_broker, get_job_queue, get_validation_service
from adsync.main import app
from adsync.models import CampaignSetStatus, SyncStatus
from adsync.schemas.common import Pagination
from adsync.services.job_queue import JobQueueError
from adsync.services.sync_events import SyncEventBroker
from adsync.services.validation.service import SyncValidationService

SERVICE = "adsync.services.campaign_set_service"
TEAM_ID = uuid.uuid4()


def _row(team_id=TEAM_ID, **config):
    now = datetime(2025, 1, 1, 12, 0, 0)
    return SimpleNamespace(
        id=uuid.uuid4(),
        team_id=team_id,
        name="Spring set",
        description=None,
        data_source_id=None,
        template_id=None,
        config={"selectedPlatforms": ["reddit"], "adAccountId": str(uuid.uuid4()), **config},
        status=CampaignSetStatus.DRAFT,
        sync_status=SyncStatus.PENDING,
        last_synced_at=None,
        created_at=now,
        updated_at=now,
    )


def _db_returning(row) -> AsyncMock:
    db = AsyncMock()
    db.execute.return_value = MagicMock(scalar_one_or_none=MagicMock(return_value=row))
    return db


@pytest.fixture
def job_queue():
    queue = MagicMock()
    queue.send = AsyncMock(return_value="job-123")
    return queue


@pytest.fixture
def overrides(job_queue):
    state = SimpleNamespace(db=AsyncMock())
    app.dependency_overrides[require_auth] = lambda: "test"
    app.dependency_overrides[get_db] = lambda: state.db
    app.dependency_overrides[get_team_context] = lambda: TeamContext(team=SimpleNamespace(id=TEAM_ID))
    app.dependency_overrides[get_job_queue] = lambda: job_queue
    app.dependency_overrides[get_event_broker] = lambda: SyncEventBroker()
    app.dependency_overrides[get_validation_service] = lambda: SyncValidationService()
    yield state
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ── Tenancy ──────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_team_header_required(overrides):
    del app.dependency_overrides[get_team_context]
    async with _client() as client:
        response = await client.post(f"/api/v1/campaign-sets/{uuid.uuid4()}/preview-sync")
    assert response.status_code == 400
    assert response.json() == {
        "error": "Team ID required. Include header: X-Team-Id: <team id>",
        "code": "VALIDATION_ERROR",
    }


@pytest.mark.anyio
async def test_preview_for_other_teams_set_is_not_found(overrides):
    row = _row(team_id=uuid.uuid4())
    overrides.db = _db_returning(row)
    async with _client() as client:
        response = await client.post(f"/api/v1/campaign-sets/{row.id}/preview-sync")
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.anyio
async def test_invalid_set_id_is_validation_error(overrides):
    async with _client() as client:
        response = await client.get("/api/v1/campaign-sets/not-a-uuid")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid UUID for 'setId': 'not-a-uuid'"


# ── Preview / validate ───────────────────────────────────────────────────

@pytest.mark.anyio
async def test_preview_sync_returns_breakdown(overrides, make_tree, make_ad):
    row = _row()
    overrides.db = _db_returning(row)
    tree = make_tree([make_ad(), make_ad(), make_ad(final_url=None)])
    with patch(f"{SERVICE}.load_campaign_set_tree", new_callable=AsyncMock, return_value=tree):
        async with _client() as client:
            first = await client.post(f"/api/v1/campaign-sets/{row.id}/preview-sync")
            second = await client.post(f"/api/v1/campaign-sets/{row.id}/preview-sync")

    assert first.status_code == 200
    body = first.json()
    assert body["breakdown"] == {"valid": 2, "fallback": 0, "skipped": 1}
    assert body["totalAds"] == 3
    assert body["canProceed"] is True
    assert body["warnings"][0].startswith("High skip rate (33.3%)")
    assert body["skippedAds"][0]["errorCode"] == "REQUIRED_FIELD"
    assert isinstance(body["validationTimeMs"], int)

    again = second.json()
    assert again["breakdown"] == body["breakdown"]
    assert again["canProceed"] == body["canProceed"]


@pytest.mark.anyio
async def test_preview_when_nothing_can_sync_is_still_200(overrides, make_tree, make_ad):
    row = _row()
    overrides.db = _db_returning(row)
    tree = make_tree([make_ad(final_url="nope")])
    with patch(f"{SERVICE}.load_campaign_set_tree", new_callable=AsyncMock, return_value=tree):
        async with _client() as client:
            response = await client.post(f"/api/v1/campaign-sets/{row.id}/preview-sync")
    assert response.status_code == 200
    assert response.json()["canProceed"] is False


@pytest.mark.anyio
async def test_validate_with_and_without_platform(overrides, make_tree, make_ad):
    row = _row()
    overrides.db = _db_returning(row)
    tree = make_tree([make_ad()])
    tree.campaigns[0].campaign_data = {}
    with patch(f"{SERVICE}.load_campaign_set_tree", new_callable=AsyncMock, return_value=tree):
        async with _client() as client:
            plain = await client.post(f"/api/v1/campaign-sets/{row.id}/validate")
            reddit = await client.post(f"/api/v1/campaign-sets/{row.id}/validate", json={"platform": "reddit"})

    assert plain.status_code == 200
    assert plain.json()["isValid"] is False
    assert plain.json()["totalErrors"] == 2
    # Reddit supplies objective and special ad categories
    assert reddit.json()["isValid"] is True


@pytest.mark.anyio
async def test_validate_rejects_unknown_platform(overrides):
    async with _client() as client:
        response = await client.post(f"/api/v1/campaign-sets/{uuid.uuid4()}/validate", json={"platform": "facebook"})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


# ── Sync ─────────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_sync_rejects_unsupported_platform(overrides, job_queue):
    row = _row(selectedPlatforms=["google", "facebook"])
    overrides.db = _db_returning(row)
    async with _client() as client:
        response = await client.post(f"/api/v1/campaign-sets/{row.id}/sync")
    assert response.status_code == 400
    assert response.json() == {
        "error": "Unsupported platform. Currently only Reddit is supported. Found: google, facebook",
        "code": "VALIDATION_ERROR",
    }
    job_queue.send.assert_not_awaited()


@pytest.mark.anyio
async def test_sync_requires_ad_account(overrides):
    row = _row(adAccountId=None)
    overrides.db = _db_returning(row)
    async with _client() as client:
        response = await client.post(f"/api/v1/campaign-sets/{row.id}/sync")
    assert response.status_code == 400
    assert response.json()["error"].startswith("Ad account ID is required for Reddit sync.")


@pytest.mark.anyio
async def test_sync_rejects_other_teams_ad_account(overrides):
    row = _row()
    overrides.db = _db_returning(row)
    with patch(f"{SERVICE}.get_team_ad_account", new_callable=AsyncMock, return_value=None) as get_account:
        async with _client() as client:
            response = await client.post(f"/api/v1/campaign-sets/{row.id}/sync")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or unauthorized ad account"
    assert get_account.await_args.args[1] == TEAM_ID


@pytest.mark.anyio
async def test_sync_promotes_drafts_and_queues_job(overrides, job_queue):
    row = _row()
    account = SimpleNamespace(id=uuid.uuid4())
    overrides.db = _db_returning(row)
    with patch(f"{SERVICE}.get_team_ad_account", new_callable=AsyncMock, return_value=account), \
            patch(f"{SERVICE}.promote_draft_campaigns", new_callable=AsyncMock, return_value=2) as promote:
        async with _client() as client:
            response = await client.post(f"/api/v1/campaign-sets/{row.id}/sync")

    assert response.status_code == 202
    assert response.json() == {
        "jobId": "job-123",
        "status": "queued",
        "message": "Sync job has been queued. Use GET /api/v1/jobs/{jobId} to check status.",
    }
    promote.assert_awaited_once()
    overrides.db.commit.assert_awaited()

    name, data = job_queue.send.await_args.args
    assert name == "sync-campaign-set"
    assert data["campaignSetId"] == str(row.id)
    assert data["teamId"] == str(TEAM_ID)
    assert data["adAccountId"] == str(account.id)
    assert data["platform"] == "reddit"
    assert job_queue.send.await_args.kwargs["singleton_key"] == f"sync-campaign-set-{row.id}"


@pytest.mark.anyio
async def test_sync_collision_is_internal_error(overrides, job_queue):
    row = _row()
    overrides.db = _db_returning(row)
    job_queue.send.return_value = None
    with patch(f"{SERVICE}.get_team_ad_account", new_callable=AsyncMock, return_value=SimpleNamespace(id=uuid.uuid4())), \
            patch(f"{SERVICE}.promote_draft_campaigns", new_callable=AsyncMock, return_value=0):
        async with _client() as client:
            response = await client.post(f"/api/v1/campaign-sets/{row.id}/sync")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to queue sync job", "code": "INTERNAL_ERROR"}


@pytest.mark.anyio
async def test_sync_queue_failure_is_wrapped(overrides, job_queue):
    row = _row()
    overrides.db = _db_returning(row)
    job_queue.send.side_effect = JobQueueError("Job queue is not running")
    with patch(f"{SERVICE}.get_team_ad_account", new_callable=AsyncMock, return_value=SimpleNamespace(id=uuid.uuid4())), \
            patch(f"{SERVICE}.promote_draft_campaigns", new_callable=AsyncMock, return_value=0):
        async with _client() as client:
            response = await client.post(f"/api/v1/campaign-sets/{row.id}/sync")
    assert response.status_code == 500
    assert response.json()["error"] == "Failed to queue sync job: Job queue is not running"


# ── CRUD and campaigns ───────────────────────────────────────────────────

@pytest.mark.anyio
async def test_list_passes_filters(overrides):
    pagination = Pagination(page=2, limit=5, total=6, total_pages=2)
    with patch(f"{SERVICE}.list_campaign_sets", new_callable=AsyncMock, return_value=([], pagination)) as list_sets:
        async with _client() as client:
            response = await client.get(
                "/api/v1/campaign-sets", params={"page": 2, "limit": 5, "syncStatus": "synced"},
            )
    assert response.status_code == 200
    assert response.json() == {"data": [], "pagination": {"page": 2, "limit": 5, "total": 6, "totalPages": 2}}
    kwargs = list_sets.await_args.kwargs
    assert kwargs["sync_status"] == SyncStatus.SYNCED
    assert kwargs["status"] is None


@pytest.mark.anyio
async def test_create_returns_201_with_tree(overrides):
    row = _row(fallbackStrategy="truncate")
    with patch(f"{SERVICE}.create_campaign_set", new_callable=AsyncMock, return_value=row) as create:
        async with _client() as client:
            response = await client.post(
                "/api/v1/campaign-sets",
                json={"name": "Spring set", "config": {"selectedPlatforms": ["reddit"], "fallbackStrategy": "truncate"}},
            )
    assert response.status_code == 201
    body = response.json()
    assert body["id"] == str(row.id)
    assert body["config"]["fallbackStrategy"] == "truncate"
    assert body["campaigns"] == []
    assert create.await_args.args[1] == TEAM_ID


@pytest.mark.anyio
async def test_create_rejects_empty_name(overrides):
    async with _client() as client:
        response = await client.post("/api/v1/campaign-sets", json={"name": ""})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


@pytest.mark.anyio
async def test_pause_and_resume_report_counts(overrides):
    row = _row()
    overrides.db = _db_returning(row)
    with patch(f"{SERVICE}.pause_campaign_set", new_callable=AsyncMock, return_value=3), \
            patch(f"{SERVICE}.resume_campaign_set", new_callable=AsyncMock, return_value=2):
        async with _client() as client:
            paused = await client.post(f"/api/v1/campaign-sets/{row.id}/pause")
            resumed = await client.post(f"/api/v1/campaign-sets/{row.id}/resume")
    assert paused.json() == {"paused": 3}
    assert resumed.json() == {"resumed": 2}


@pytest.mark.anyio
async def test_get_missing_campaign_is_not_found(overrides):
    row = _row()
    campaign_id = uuid.uuid4()
    overrides.db = _db_returning(row)
    with patch(f"{SERVICE}.load_campaigns", new_callable=AsyncMock, return_value=[]):
        async with _client() as client:
            response = await client.get(f"/api/v1/campaign-sets/{row.id}/campaigns/{campaign_id}")
    assert response.status_code == 404
    assert response.json() == {"error": f"Campaign not found: {campaign_id}", "code": "NOT_FOUND"}


@pytest.mark.anyio
async def test_delete_campaign_set(overrides):
    row = _row()
    overrides.db = _db_returning(row)
    with patch(f"{SERVICE}.delete_campaign_set", new_callable=AsyncMock) as delete:
        async with _client() as client:
            response = await client.delete(f"/api/v1/campaign-sets/{row.id}")
    assert response.status_code == 204
    delete.assert_awaited_once()
