"""
Sync preview: what would happen to every ad if the campaign set were synced now.

Every ad lands in exactly one bucket:
  - valid:    no validation errors
  - fallback: only FIELD_TOO_LONG errors and a strategy other than "skip"
  - skipped:  anything else

The readiness summary then turns the buckets into counts, warnings and a
go/no-go flag. Nothing here touches the database; calling it twice on the
same tree gives the same answer.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from adsync.models import FallbackStrategy
from adsync.schemas.campaign_sets import (
    FallbackAdInfo,
    PreviewBreakdown,
    SkippedAdInfo,
    SyncPreviewResponse,
    ValidAdInfo,
)
from adsync.schemas.hierarchy import CampaignSetTree
from adsync.services.validation.service import SyncValidationService
from adsync.services.validation.types import ValidationError, ValidationErrorCode, ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_SKIP_RATE_THRESHOLD = 20.0
FALLBACK_AD_MARKER = "fallback"


@dataclass
class ClassifiedAds:
    valid: list[ValidAdInfo] = field(default_factory=list)
    fallback: list[FallbackAdInfo] = field(default_factory=list)
    skipped: list[SkippedAdInfo] = field(default_factory=list)


@dataclass
class ReadinessSummary:
    total_ads: int
    breakdown: PreviewBreakdown
    skip_rate: float
    warnings: list[str]
    can_proceed: bool


def build_error_index(result: ValidationResult) -> dict[str, list[ValidationError]]:
    """Map entity id → its errors, from campaign, ad-group and ad results."""
    index: dict[str, list[ValidationError]] = {}

    def add(errors: list[ValidationError]):
        for error in errors:
            index.setdefault(error.entity_id, []).append(error)

    for campaign in result.campaigns:
        add(campaign.errors)
        for ad_group in campaign.ad_groups:
            add(ad_group.errors)
            for ad in ad_group.ads:
                add(ad.errors)
    return index


def is_fallback_eligible(errors: list[ValidationError], strategy: FallbackStrategy) -> bool:
    if strategy == FallbackStrategy.SKIP:
        return False
    return all(e.code == ValidationErrorCode.FIELD_TOO_LONG for e in errors)


def classify_ads(
    tree: CampaignSetTree,
    strategy: FallbackStrategy,
    errors_by_entity: dict[str, list[ValidationError]],
) -> ClassifiedAds:
    strategy = FallbackStrategy(strategy)
    out = ClassifiedAds()

    for campaign, ad_group, ad in tree.iter_ads():
        ids = {
            "ad_id": ad.id,
            "ad_group_id": ad_group.id,
            "campaign_id": campaign.id,
            "name": ad.display_name,
        }
        errors = errors_by_entity.get(ad.id, [])

        if not errors:
            out.valid.append(ValidAdInfo(**ids))
            continue

        if is_fallback_eligible(errors, strategy):
            joined = "; ".join(e.message for e in errors)
            if strategy == FallbackStrategy.TRUNCATE:
                out.fallback.append(FallbackAdInfo(**ids, reason=f"Text will be truncated: {joined}"))
            else:
                # Substitute selection is not defined; mark the slot only
                out.fallback.append(FallbackAdInfo(
                    **ids, reason=f"Will use fallback ad: {joined}", fallback_ad_id=FALLBACK_AD_MARKER,
                ))
            continue

        first = errors[0]
        out.skipped.append(SkippedAdInfo(
            **ids,
            reason=first.message or "Validation failed",
            error_code=first.code.value if first.code else "UNKNOWN",
            field=first.field or "unknown",
            value=first.value,
            expected=first.expected,
        ))

    return out


def summarize_readiness(
    classified: ClassifiedAds, skip_rate_threshold: float = DEFAULT_SKIP_RATE_THRESHOLD,
) -> ReadinessSummary:
    valid, fallback, skipped = len(classified.valid), len(classified.fallback), len(classified.skipped)
    total = valid + fallback + skipped
    skip_rate = (skipped / total) * 100 if total > 0 else 0.0

    warnings: list[str] = []
    # Compare counts, not the float rate: 2 / 10 * 100 is 20.000000000000004
    if skipped * 100 > skip_rate_threshold * total:
        warnings.append(
            f"High skip rate ({skip_rate:.1f}%): {skipped} of {total} ads will be skipped. "
            "Consider reviewing your campaign set configuration."
        )
    if fallback > 0:
        warnings.append(
            f"{fallback} ads will use fallback content. Original content exceeded platform limits."
        )

    return ReadinessSummary(
        total_ads=total,
        breakdown=PreviewBreakdown(valid=valid, fallback=fallback, skipped=skipped),
        skip_rate=skip_rate,
        warnings=warnings,
        can_proceed=valid > 0 or fallback > 0,
    )


def preview_sync(
    tree: CampaignSetTree,
    validation_service: Optional[SyncValidationService] = None,
    skip_rate_threshold: float = DEFAULT_SKIP_RATE_THRESHOLD,
    started_at: Optional[float] = None,
) -> SyncPreviewResponse:
    """
    Validate the tree, classify every ad and summarize readiness.

    `started_at` is a time.perf_counter() reading taken before the tree was
    loaded, so the reported time covers the whole evaluation.
    """
    start = started_at if started_at is not None else time.perf_counter()
    service = validation_service or SyncValidationService()

    result = service.validate_campaign_set(tree)
    classified = classify_ads(tree, tree.config.fallback_strategy, build_error_index(result))
    summary = summarize_readiness(classified, skip_rate_threshold)

    elapsed_ms = round((time.perf_counter() - start) * 1000)
    logger.info(
        f"[PreviewSync] Campaign set {tree.id}: {summary.breakdown.valid} valid, "
        f"{summary.breakdown.fallback} fallback, {summary.breakdown.skipped} skipped ({elapsed_ms}ms)"
    )

    return SyncPreviewResponse(
        campaign_set_id=tree.id,
        total_ads=summary.total_ads,
        breakdown=summary.breakdown,
        valid_ads=classified.valid,
        fallback_ads=classified.fallback,
        skipped_ads=classified.skipped,
        can_proceed=summary.can_proceed,
        warnings=summary.warnings,
        validation_time_ms=elapsed_ms,
    )
