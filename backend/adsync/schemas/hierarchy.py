"""
Typed campaign-set tree: set → campaigns → ad groups → ads / keywords.

This is the decoded form of the persisted hierarchy. Status, platform and
match-type values are closed enums here, so everything downstream of the
loader (validation, preview, sync) works with parsed values only.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import ConfigDict, Field

from adsync.models import (
    CampaignSetStatus,
    CampaignStatus,
    EntityStatus,
    FallbackStrategy,
    MatchType,
    Platform,
    SyncStatus,
)
from adsync.schemas.common import CamelModel


class CampaignSetConfig(CamelModel):
    """Configuration blob stored on a campaign set. Unknown keys are preserved."""
    model_config = ConfigDict(extra="allow")

    selected_platforms: list[Platform] = Field(default_factory=list)
    fallback_strategy: FallbackStrategy = FallbackStrategy.SKIP
    ad_account_id: Optional[str] = None
    funding_instrument_id: Optional[str] = None


class BudgetInfo(CamelModel):
    type: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None


class KeywordNode(CamelModel):
    id: str
    ad_group_id: str
    keyword: str
    match_type: MatchType = MatchType.BROAD
    bid: Optional[float] = None
    platform_keyword_id: Optional[str] = None
    status: EntityStatus = EntityStatus.ACTIVE


class AdNode(CamelModel):
    id: str
    ad_group_id: str
    order_index: int = 0
    headline: Optional[str] = None
    description: Optional[str] = None
    display_url: Optional[str] = None
    final_url: Optional[str] = None
    call_to_action: Optional[str] = None
    assets: Optional[dict[str, Any]] = None
    platform_ad_id: Optional[str] = None
    status: EntityStatus = EntityStatus.ACTIVE

    @property
    def display_name(self) -> str:
        return self.headline or f"Ad {self.id[:8]}"


class AdGroupNode(CamelModel):
    id: str
    campaign_id: str
    name: str = ""
    order_index: int = 0
    settings: Optional[dict[str, Any]] = None
    platform_ad_group_id: Optional[str] = None
    status: EntityStatus = EntityStatus.ACTIVE
    ads: list[AdNode] = Field(default_factory=list)
    keywords: list[KeywordNode] = Field(default_factory=list)


class CampaignNode(CamelModel):
    id: str
    campaign_set_id: str
    name: str = ""
    platform: Platform = Platform.REDDIT
    order_index: int = 0
    template_id: Optional[str] = None
    data_row_id: Optional[str] = None
    campaign_data: dict[str, Any] = Field(default_factory=dict)
    budget: Optional[BudgetInfo] = None
    status: CampaignStatus = CampaignStatus.DRAFT
    sync_status: SyncStatus = SyncStatus.PENDING
    platform_campaign_id: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    sync_error: Optional[str] = None
    ad_groups: list[AdGroupNode] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CampaignSetTree(CamelModel):
    id: str
    team_id: str
    name: str
    description: Optional[str] = None
    data_source_id: Optional[str] = None
    template_id: Optional[str] = None
    config: CampaignSetConfig = Field(default_factory=CampaignSetConfig)
    status: CampaignSetStatus = CampaignSetStatus.DRAFT
    sync_status: SyncStatus = SyncStatus.PENDING
    last_synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    campaigns: list[CampaignNode] = Field(default_factory=list)

    def iter_ads(self):
        """Yield (campaign, ad_group, ad) for every ad in tree order."""
        for campaign in self.campaigns:
            for ad_group in campaign.ad_groups:
                for ad in ad_group.ads:
                    yield campaign, ad_group, ad
