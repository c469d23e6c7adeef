"""
Sync validation service.

Validates a whole campaign-set tree before sync and collects ALL errors
across all entities; it never fails fast.
"""

import logging
import time
from typing import Optional

from adsync.models import Platform
from adsync.schemas.hierarchy import AdGroupNode, CampaignNode, CampaignSetTree
from adsync.services.validation.platform_defaults import PlatformDefaultsResolver
from adsync.services.validation.types import (
    AdGroupValidationResult,
    CampaignValidationResult,
    EntityValidationResult,
    ValidationError,
    ValidationResult,
    ValidationSummary,
)
from adsync.services.validation.validators import AdGroupValidator, AdValidator, CampaignValidator

logger = logging.getLogger(__name__)


class SyncValidationService:
    """Runs the campaign, ad-group and ad validators over a campaign-set tree."""

    def __init__(self, defaults: Optional[PlatformDefaultsResolver] = None):
        defaults = defaults or PlatformDefaultsResolver()
        self.campaign_validator = CampaignValidator(defaults)
        self.ad_group_validator = AdGroupValidator(defaults)
        self.ad_validator = AdValidator()

    def validate_campaign_set(
        self, campaign_set: CampaignSetTree, platform: Optional[Platform] = None,
    ) -> ValidationResult:
        start = time.perf_counter()

        campaign_ids = {c.id for c in campaign_set.campaigns}
        ad_group_ids = {ag.id for c in campaign_set.campaigns for ag in c.ad_groups}

        summary = ValidationSummary()
        campaign_results: list[CampaignValidationResult] = []
        total_errors = 0

        for campaign in campaign_set.campaigns:
            result = self._validate_campaign(campaign, platform, campaign_ids, ad_group_ids)
            campaign_results.append(result)

            summary.campaigns_validated += 1
            if not result.is_valid:
                summary.campaigns_with_errors += 1
            total_errors += len(result.errors)

            for ag_result in result.ad_groups:
                summary.ad_groups_validated += 1
                if not ag_result.is_valid:
                    summary.ad_groups_with_errors += 1
                total_errors += len(ag_result.errors)

                for ad_result in ag_result.ads:
                    summary.ads_validated += 1
                    if not ad_result.is_valid:
                        summary.ads_with_errors += 1
                    total_errors += len(ad_result.errors)

                for kw_result in ag_result.keywords:
                    summary.keywords_validated += 1
                    if not kw_result.is_valid:
                        summary.keywords_with_errors += 1
                    total_errors += len(kw_result.errors)

        return ValidationResult(
            is_valid=total_errors == 0,
            campaign_set_id=campaign_set.id,
            total_errors=total_errors,
            campaigns=campaign_results,
            summary=summary,
            validation_time_ms=round((time.perf_counter() - start) * 1000),
        )

    def _validate_campaign(
        self,
        campaign: CampaignNode,
        platform: Optional[Platform],
        campaign_ids: set[str],
        ad_group_ids: set[str],
    ) -> CampaignValidationResult:
        errors = self.campaign_validator.validate(campaign, platform)
        ad_groups = [
            self._validate_ad_group(ad_group, platform, campaign_ids, ad_group_ids)
            for ad_group in campaign.ad_groups
        ]
        return CampaignValidationResult(
            entity_id=campaign.id,
            entity_name=campaign.name,
            is_valid=not errors and all(ag.is_valid for ag in ad_groups),
            errors=errors,
            ad_groups=ad_groups,
        )

    def _validate_ad_group(
        self,
        ad_group: AdGroupNode,
        platform: Optional[Platform],
        campaign_ids: set[str],
        ad_group_ids: set[str],
    ) -> AdGroupValidationResult:
        errors = self.ad_group_validator.validate(ad_group, platform, campaign_ids)

        ads = []
        for ad in ad_group.ads:
            ad_errors = self.ad_validator.validate(ad, ad_group_ids)
            ads.append(EntityValidationResult(
                entity_id=ad.id,
                entity_name=ad.headline or f"Ad {ad.id}",
                is_valid=not ad_errors,
                errors=ad_errors,
            ))

        # Reddit has no keyword targeting; keywords are reported but never fail
        keywords = [
            EntityValidationResult(entity_id=kw.id, entity_name=kw.keyword, is_valid=True)
            for kw in ad_group.keywords
        ]

        return AdGroupValidationResult(
            entity_id=ad_group.id,
            entity_name=ad_group.name,
            is_valid=not errors and all(a.is_valid for a in ads),
            errors=errors,
            ads=ads,
            keywords=keywords,
        )


def format_validation_summary(result: ValidationResult) -> str:
    s = result.summary
    if result.is_valid:
        return (
            f"Validation passed: {s.campaigns_validated} campaigns, {s.ad_groups_validated} ad groups, "
            f"{s.ads_validated} ads validated in {result.validation_time_ms}ms"
        )

    lines = [f"Validation failed with {result.total_errors} error(s):"]
    if s.campaigns_with_errors:
        lines.append(f"  - {s.campaigns_with_errors}/{s.campaigns_validated} campaigns have errors")
    if s.ad_groups_with_errors:
        lines.append(f"  - {s.ad_groups_with_errors}/{s.ad_groups_validated} ad groups have errors")
    if s.ads_with_errors:
        lines.append(f"  - {s.ads_with_errors}/{s.ads_validated} ads have errors")
    lines.append(f"  Completed in {result.validation_time_ms}ms")
    return "\n".join(lines)
