"""
Request and response payloads for the campaign-set routes.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field

from adsync.models import CampaignSetStatus, Platform, SyncStatus
from adsync.schemas.common import CamelModel, Pagination
from adsync.schemas.hierarchy import CampaignNode, CampaignSetConfig


# ── CRUD ─────────────────────────────────────────────────────────────────

class CreateCampaignSetRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    data_source_id: Optional[str] = None
    template_id: Optional[str] = None
    config: CampaignSetConfig = Field(default_factory=CampaignSetConfig)
    status: CampaignSetStatus = CampaignSetStatus.DRAFT


class UpdateCampaignSetRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    data_source_id: Optional[str] = None
    template_id: Optional[str] = None
    config: Optional[CampaignSetConfig] = None
    status: Optional[CampaignSetStatus] = None
    sync_status: Optional[SyncStatus] = None


class CampaignSetSummary(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    status: CampaignSetStatus
    sync_status: SyncStatus
    campaign_count: int = 0
    ad_group_count: int = 0
    ad_count: int = 0
    platforms: list[Platform] = Field(default_factory=list)
    last_synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CampaignSetListResponse(CamelModel):
    data: list[CampaignSetSummary]
    pagination: Pagination


class CampaignListResponse(CamelModel):
    campaigns: list[CampaignNode]


class PauseResponse(CamelModel):
    paused: int


class ResumeResponse(CamelModel):
    resumed: int


# ── Validation / sync ────────────────────────────────────────────────────

class ValidateRequest(CamelModel):
    platform: Optional[Literal["reddit", "google"]] = None


class QueuedJobResponse(CamelModel):
    job_id: str
    status: Literal["queued"] = "queued"
    message: str


class JobStatusResponse(CamelModel):
    id: str
    name: str
    state: str
    data: dict[str, Any] = Field(default_factory=dict)
    output: Optional[Any] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# ── Preview sync ─────────────────────────────────────────────────────────

class ValidAdInfo(CamelModel):
    ad_id: str
    ad_group_id: str
    campaign_id: str
    name: str


class FallbackAdInfo(ValidAdInfo):
    reason: str
    fallback_ad_id: Optional[str] = None


class SkippedAdInfo(ValidAdInfo):
    reason: str
    error_code: str
    field: str
    value: Any = None
    expected: Optional[str] = None


class PreviewBreakdown(CamelModel):
    valid: int
    fallback: int
    skipped: int


class SyncPreviewResponse(CamelModel):
    campaign_set_id: str
    total_ads: int
    breakdown: PreviewBreakdown
    valid_ads: list[ValidAdInfo]
    fallback_ads: list[FallbackAdInfo]
    skipped_ads: list[SkippedAdInfo]
    can_proceed: bool
    warnings: list[str]
    validation_time_ms: int
