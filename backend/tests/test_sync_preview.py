"""
Tests for the sync preview: ad classification and the readiness summary.
"""

import pytest

from adsync.models import FallbackStrategy
from adsync.services.sync_preview import (
    FALLBACK_AD_MARKER,
    ClassifiedAds,
    build_error_index,
    classify_ads,
    preview_sync,
    summarize_readiness,
)
from adsync.schemas.campaign_sets import FallbackAdInfo, SkippedAdInfo, ValidAdInfo
from adsync.services.validation.service import SyncValidationService
from adsync.services.validation.types import ValidationError, ValidationErrorCode

TOO_LONG_HEADLINE = "H" * 101
ALL_STRATEGIES = [FallbackStrategy.SKIP, FallbackStrategy.TRUNCATE, FallbackStrategy.USE_FALLBACK]


def _error(entity_id: str, code: ValidationErrorCode, field: str = "headline", message: str = "bad") -> ValidationError:
    return ValidationError(
        entity_type="ad", entity_id=entity_id, entity_name="ad", field=field, message=message, code=code,
    )


def _classify(tree):
    result = SyncValidationService().validate_campaign_set(tree)
    return classify_ads(tree, tree.config.fallback_strategy, build_error_index(result))


def _bucket(info: ValidAdInfo) -> dict:
    return {"ad": info.ad_id, "group": info.ad_group_id, "campaign": info.campaign_id}


# ── Classification ───────────────────────────────────────────────────────

@pytest.mark.parametrize("strategy", ALL_STRATEGIES)
def test_ads_without_errors_are_valid(make_tree, make_ad, strategy):
    tree = make_tree([make_ad(), make_ad()], strategy=strategy)
    classified = _classify(tree)
    assert len(classified.valid) == 2
    assert classified.fallback == [] and classified.skipped == []


@pytest.mark.parametrize("strategy", ALL_STRATEGIES)
def test_non_length_error_is_always_skipped(make_tree, make_ad, strategy):
    tree = make_tree([make_ad(final_url="ftp://example.com", headline=TOO_LONG_HEADLINE)], strategy=strategy)
    classified = _classify(tree)
    assert len(classified.skipped) == 1
    assert classified.valid == [] and classified.fallback == []


def test_length_only_errors_with_skip_strategy_are_skipped(make_tree, make_ad):
    tree = make_tree([make_ad(headline=TOO_LONG_HEADLINE)], strategy=FallbackStrategy.SKIP)
    classified = _classify(tree)
    assert len(classified.skipped) == 1
    skipped = classified.skipped[0]
    assert skipped.error_code == "FIELD_TOO_LONG"
    assert skipped.field == "headline"
    assert skipped.reason == "Headline exceeds maximum length of 100 characters"
    assert skipped.expected == "100 characters max"
    assert skipped.value == TOO_LONG_HEADLINE


def test_truncate_strategy_reason_joins_messages(make_tree, make_ad):
    ad = make_ad(headline=TOO_LONG_HEADLINE, display_url="www.example.com/" + "x" * 20)
    tree = make_tree([ad], strategy=FallbackStrategy.TRUNCATE)
    classified = _classify(tree)
    assert len(classified.fallback) == 1
    fallback = classified.fallback[0]
    assert fallback.reason == (
        "Text will be truncated: Headline exceeds maximum length of 100 characters; "
        "Display URL exceeds maximum length of 25 characters"
    )
    assert fallback.fallback_ad_id is None


def test_use_fallback_strategy_sets_marker(make_tree, make_ad):
    tree = make_tree([make_ad(headline=TOO_LONG_HEADLINE)], strategy=FallbackStrategy.USE_FALLBACK)
    fallback = _classify(tree).fallback[0]
    assert fallback.reason == "Will use fallback ad: Headline exceeds maximum length of 100 characters"
    assert fallback.fallback_ad_id == FALLBACK_AD_MARKER


def test_skipped_reason_uses_first_error(make_tree, make_ad):
    tree = make_tree([make_ad()], strategy=FallbackStrategy.TRUNCATE)
    ad = tree.campaigns[0].ad_groups[0].ads[0]
    errors = {ad.id: [
        _error(ad.id, ValidationErrorCode.FIELD_TOO_LONG, field="headline", message="first"),
        _error(ad.id, ValidationErrorCode.INVALID_URL, field="click_url", message="second"),
    ]}
    classified = classify_ads(tree, FallbackStrategy.TRUNCATE, errors)
    assert classified.skipped[0].reason == "first"
    assert classified.skipped[0].field == "headline"
    assert classified.skipped[0].error_code == "FIELD_TOO_LONG"


def test_classified_ads_carry_parent_ids_and_display_name(make_tree, make_ad):
    tree = make_tree([make_ad(headline=None, final_url=None)])
    campaign = tree.campaigns[0]
    ad_group = campaign.ad_groups[0]
    ad = ad_group.ads[0]

    skipped = _classify(tree).skipped[0]
    assert _bucket(skipped) == {"ad": ad.id, "group": ad_group.id, "campaign": campaign.id}
    assert skipped.name == f"Ad {ad.id[:8]}"
    assert skipped.error_code == "REQUIRED_FIELD"
    assert skipped.field == "click_url"


def test_missing_error_entry_means_valid(make_tree, make_ad):
    tree = make_tree([make_ad(headline=TOO_LONG_HEADLINE)])
    classified = classify_ads(tree, FallbackStrategy.SKIP, {})
    assert len(classified.valid) == 1


def test_campaign_errors_do_not_classify_ads(make_tree, make_ad):
    tree = make_tree([make_ad()])
    tree.campaigns[0].name = ""
    classified = _classify(tree)
    assert len(classified.valid) == 1


# ── Readiness summary ────────────────────────────────────────────────────

def _buckets(valid: int, fallback: int, skipped: int) -> ClassifiedAds:
    def info(i):
        return {"ad_id": f"ad-{i}", "ad_group_id": "ag", "campaign_id": "c", "name": f"Ad {i}"}
    out = ClassifiedAds()
    out.valid = [ValidAdInfo(**info(i)) for i in range(valid)]
    out.fallback = [FallbackAdInfo(**info(i), reason="Text will be truncated: x") for i in range(fallback)]
    out.skipped = [
        SkippedAdInfo(**info(i), reason="bad", error_code="INVALID_URL", field="click_url")
        for i in range(skipped)
    ]
    return out


def test_skip_rate_at_threshold_has_no_warning():
    summary = summarize_readiness(_buckets(valid=8, fallback=0, skipped=2))
    assert summary.skip_rate == pytest.approx(20.0)
    assert summary.warnings == []
    assert summary.can_proceed is True


def test_skip_rate_above_threshold_warns():
    summary = summarize_readiness(_buckets(valid=7, fallback=0, skipped=3))
    assert summary.warnings == [
        "High skip rate (30.0%): 3 of 10 ads will be skipped. Consider reviewing your campaign set configuration."
    ]
    assert summary.can_proceed is True


def test_skip_rate_uses_unrounded_ratio():
    # 1 of 5 is exactly 20%, 201 of 1000 is 20.1%
    assert summarize_readiness(_buckets(valid=4, fallback=0, skipped=1)).warnings == []
    warned = summarize_readiness(_buckets(valid=799, fallback=0, skipped=201))
    assert warned.warnings[0].startswith("High skip rate (20.1%)")


def test_fallback_warning_follows_skip_warning():
    summary = summarize_readiness(_buckets(valid=0, fallback=2, skipped=3))
    assert len(summary.warnings) == 2
    assert summary.warnings[0].startswith("High skip rate (60.0%)")
    assert summary.warnings[1] == "2 ads will use fallback content. Original content exceeded platform limits."


def test_empty_set_cannot_proceed_and_has_no_warnings():
    summary = summarize_readiness(ClassifiedAds())
    assert summary.total_ads == 0
    assert summary.skip_rate == 0.0
    assert summary.warnings == []
    assert summary.can_proceed is False


def test_custom_threshold():
    summary = summarize_readiness(_buckets(valid=9, fallback=0, skipped=1), skip_rate_threshold=5.0)
    assert summary.warnings[0].startswith("High skip rate (10.0%)")


# ── Whole preview ────────────────────────────────────────────────────────

def test_preview_all_fallback_with_use_fallback_strategy(make_tree, make_ad):
    tree = make_tree([make_ad(headline=TOO_LONG_HEADLINE) for _ in range(5)], strategy=FallbackStrategy.USE_FALLBACK)
    preview = preview_sync(tree)
    assert preview.breakdown.model_dump() == {"valid": 0, "fallback": 5, "skipped": 0}
    assert preview.can_proceed is True
    assert "5 ads will use fallback content. Original content exceeded platform limits." in preview.warnings


@pytest.mark.parametrize("strategy", ALL_STRATEGIES)
def test_preview_all_skipped_cannot_proceed(make_tree, make_ad, strategy):
    tree = make_tree([make_ad(final_url="not a url") for _ in range(3)], strategy=strategy)
    preview = preview_sync(tree)
    assert preview.breakdown.model_dump() == {"valid": 0, "fallback": 0, "skipped": 3}
    assert preview.can_proceed is False
    assert preview.skipped_ads[0].error_code == "INVALID_URL"


def test_preview_counts_add_up(make_tree, make_ad):
    ads = [make_ad() for _ in range(7)] + [make_ad(final_url=None) for _ in range(3)]
    preview = preview_sync(make_tree(ads))
    assert preview.total_ads == 10
    assert preview.breakdown.valid + preview.breakdown.fallback + preview.breakdown.skipped == preview.total_ads
    assert len(preview.valid_ads) == 7
    assert len(preview.skipped_ads) == 3
    assert preview.can_proceed is True
    assert len(preview.warnings) == 1


def test_preview_is_idempotent(make_tree, make_ad):
    ads = [make_ad(), make_ad(headline=TOO_LONG_HEADLINE), make_ad(final_url="")]
    tree = make_tree(ads, strategy=FallbackStrategy.TRUNCATE)
    first = preview_sync(tree)
    second = preview_sync(tree)
    assert first.breakdown == second.breakdown
    assert first.can_proceed == second.can_proceed
    assert first.model_dump(exclude={"validation_time_ms"}) == second.model_dump(exclude={"validation_time_ms"})


def test_preview_serializes_camel_case(make_tree, make_ad):
    preview = preview_sync(make_tree([make_ad()]))
    body = preview.model_dump(by_alias=True, mode="json")
    assert set(body) == {
        "campaignSetId", "totalAds", "breakdown", "validAds", "fallbackAds",
        "skippedAds", "canProceed", "warnings", "validationTimeMs",
    }
    assert set(body["validAds"][0]) == {"adId", "adGroupId", "campaignId", "name"}
    assert isinstance(body["validationTimeMs"], int)
