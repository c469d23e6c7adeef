"""
Shared fixtures: campaign-set trees built in memory, no database needed.
"""

import os
import uuid

import pytest

os.environ.setdefault("ENVIRONMENT", "development")

from adsync.models import CampaignStatus, FallbackStrategy, Platform  # noqa: E402
from adsync.schemas.hierarchy import (  # noqa: E402
    AdGroupNode,
    AdNode,
    CampaignNode,
    CampaignSetConfig,
    CampaignSetTree,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def make_ad():
    """Build an ad that passes validation unless a field is overridden."""
    def _make(ad_group_id: str = "", **fields) -> AdNode:
        values = {
            "id": _id(),
            "ad_group_id": ad_group_id,
            "headline": "Spring sale on running shoes",
            "final_url": "https://shop.example.com/spring",
        }
        values.update(fields)
        return AdNode(**values)
    return _make


@pytest.fixture
def make_tree():
    """
    Build a one-campaign, one-ad-group tree around the given ads. The
    campaign and ad group are valid for every platform.
    """
    def _make(
        ads: list[AdNode],
        strategy: FallbackStrategy = FallbackStrategy.SKIP,
        campaign_status: CampaignStatus = CampaignStatus.PENDING,
        platform: Platform = Platform.REDDIT,
    ) -> CampaignSetTree:
        set_id, campaign_id, ad_group_id = _id(), _id(), _id()
        ads = [a.model_copy(update={"ad_group_id": ad_group_id}) for a in ads]
        ad_group = AdGroupNode(
            id=ad_group_id,
            campaign_id=campaign_id,
            name="Runners 25-34",
            settings={"bidding": {"strategy": "MAXIMIZE_VOLUME", "bidType": "CPC"}},
            ads=ads,
        )
        campaign = CampaignNode(
            id=campaign_id,
            campaign_set_id=set_id,
            name="Spring Running",
            platform=platform,
            status=campaign_status,
            campaign_data={"objective": "CLICKS", "specialAdCategories": ["NONE"], "platform": platform.value},
            ad_groups=[ad_group],
        )
        return CampaignSetTree(
            id=set_id,
            team_id=_id(),
            name="Spring set",
            config=CampaignSetConfig(
                selected_platforms=[platform],
                fallback_strategy=strategy,
                ad_account_id=_id(),
            ),
            campaigns=[campaign],
        )
    return _make
