"""
Field-level validators for campaigns, ad groups and ads (Reddit Ads v3 rules).

Each validator returns every error it finds for one entity. Platform defaults
relax "required" checks for fields the sync adapter fills in.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from urllib.parse import urlparse

from adsync.models import Platform
from adsync.schemas.hierarchy import AdGroupNode, AdNode, CampaignNode
from adsync.services.validation.platform_defaults import PlatformDefaultsResolver
from adsync.services.validation.types import EntityType, ValidationError, ValidationErrorCode

VALID_OBJECTIVES = (
    "APP_INSTALLS",
    "CATALOG_SALES",
    "CLICKS",
    "CONVERSIONS",
    "IMPRESSIONS",
    "LEAD_GENERATION",
    "VIDEO_VIEWABLE_IMPRESSIONS",
)
VALID_CONFIGURED_STATUS = ("ACTIVE", "PAUSED")
VALID_SPECIAL_AD_CATEGORIES = ("NONE", "HOUSING", "EMPLOYMENT", "CREDIT", "HOUSING_EMPLOYMENT_CREDIT")
VALID_GOAL_TYPES = ("DAILY_SPEND", "LIFETIME_SPEND")
VALID_BUDGET_TYPES = ("daily", "lifetime", "shared")
VALID_BID_STRATEGIES = ("BIDLESS", "MANUAL_BIDDING", "MAXIMIZE_VOLUME", "TARGET_CPX")
VALID_BID_TYPES = ("CPC", "CPM", "CPV")
VALID_CALL_TO_ACTIONS = (
    "LEARN_MORE", "SIGN_UP", "SHOP_NOW", "DOWNLOAD", "INSTALL", "GET_QUOTE",
    "CONTACT_US", "BOOK_NOW", "APPLY_NOW", "WATCH_MORE", "GET_STARTED",
    "SUBSCRIBE", "ORDER_NOW", "SEE_MORE", "VIEW_MORE", "PLAY_NOW",
)

MAX_NAME_LENGTH = 255
MAX_HEADLINE_LENGTH = 100
MAX_BODY_LENGTH = 500
MAX_DISPLAY_URL_LENGTH = 25

_OBJECTIVE_ALIASES = {
    "awareness": "IMPRESSIONS",
    "impressions": "IMPRESSIONS",
    "consideration": "CLICKS",
    "clicks": "CLICKS",
    "traffic": "CLICKS",
    "conversions": "CONVERSIONS",
    "video_views": "VIDEO_VIEWABLE_IMPRESSIONS",
    "video": "VIDEO_VIEWABLE_IMPRESSIONS",
    "app_installs": "APP_INSTALLS",
    "lead_generation": "LEAD_GENERATION",
    "leads": "LEAD_GENERATION",
    "catalog_sales": "CATALOG_SALES",
}

_BID_STRATEGY_ALIASES = {
    "automatic": "MAXIMIZE_VOLUME",
    "auto": "MAXIMIZE_VOLUME",
    "maximize_volume": "MAXIMIZE_VOLUME",
    "manual_cpc": "MANUAL_BIDDING",
    "manual_cpm": "MANUAL_BIDDING",
    "manual": "MANUAL_BIDDING",
    "manual_bidding": "MANUAL_BIDDING",
    "target_cpa": "TARGET_CPX",
    "target_cpx": "TARGET_CPX",
    "target": "TARGET_CPX",
    "bidless": "BIDLESS",
    "none": "BIDLESS",
}


class _ErrorCollector:
    """Accumulates errors for one entity so checks don't repeat its identity."""

    def __init__(self, entity_type: EntityType, entity_id: str, entity_name: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.entity_name = entity_name
        self.errors: list[ValidationError] = []

    def add(self, field: str, code: ValidationErrorCode, message: str, value: Any = None, expected: Optional[str] = None):
        self.errors.append(ValidationError(
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            entity_name=self.entity_name,
            field=field,
            code=code,
            message=message,
            value=value,
            expected=expected,
        ))

    def required_string(self, value: Optional[str], field: str) -> bool:
        if value is None or not str(value).strip():
            self.add(field, ValidationErrorCode.REQUIRED_FIELD, f"{field} is required", value)
            return False
        return True

    def max_length(self, value: Optional[str], field: str, limit: int, label: Optional[str] = None):
        if value is not None and len(value) > limit:
            self.add(
                field,
                ValidationErrorCode.FIELD_TOO_LONG,
                f"{label or field} exceeds maximum length of {limit} characters",
                value,
                f"{limit} characters max",
            )

    def enum_value(self, value: Any, field: str, allowed: Iterable[str]):
        allowed = tuple(allowed)
        if value not in allowed:
            self.add(
                field,
                ValidationErrorCode.INVALID_ENUM_VALUE,
                f"{field} must be one of: {', '.join(allowed)}",
                value,
                " | ".join(allowed),
            )

    def datetime_field(self, value: Optional[str], field: str) -> Optional[datetime]:
        if value is None or value == "":
            return None
        parsed = _parse_datetime(value)
        if parsed is None:
            self.add(
                field,
                ValidationErrorCode.INVALID_DATETIME,
                f"{field} must be a valid ISO 8601 datetime",
                value,
                "ISO 8601 datetime (e.g. 2025-01-01T00:00:00Z)",
            )
        return parsed


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def normalize_objective(objective: str) -> str:
    return _OBJECTIVE_ALIASES.get(objective.lower(), objective.upper())


def normalize_call_to_action(cta: str) -> str:
    return cta.strip().upper().replace("-", "_").replace(" ", "_")


# ── Campaign ─────────────────────────────────────────────────────────────

class CampaignValidator:
    def __init__(self, defaults: Optional[PlatformDefaultsResolver] = None):
        self.defaults = defaults or PlatformDefaultsResolver()

    def validate(self, campaign: CampaignNode, platform: Optional[Platform] = None) -> list[ValidationError]:
        check = _ErrorCollector("campaign", campaign.id, campaign.name or f"Campaign {campaign.id}")
        data = campaign.campaign_data or {}

        if check.required_string(campaign.name, "name"):
            check.max_length(campaign.name, "name", MAX_NAME_LENGTH)

        objective = data.get("objective")
        if objective is None or objective == "":
            if not self.defaults.has_default(platform, "campaign", "objective"):
                check.add("objective", ValidationErrorCode.REQUIRED_FIELD, "objective is required", objective)
        elif normalize_objective(str(objective)) not in VALID_OBJECTIVES:
            check.add(
                "objective",
                ValidationErrorCode.INVALID_ENUM_VALUE,
                f'objective must be one of: {", ".join(VALID_OBJECTIVES)} (got "{objective}")',
                objective,
                " | ".join(VALID_OBJECTIVES),
            )

        if "configured_status" in data:
            check.enum_value(data["configured_status"], "configured_status", VALID_CONFIGURED_STATUS)

        reddit_settings = (data.get("advancedSettings") or {}).get("reddit") or {}
        categories = (reddit_settings.get("campaign") or {}).get("specialAdCategories")
        if categories is None:
            categories = data.get("specialAdCategories")
        self._validate_special_ad_categories(check, categories, platform)

        self._validate_budget(check, campaign)

        if "goal_type" in data:
            check.enum_value(data["goal_type"], "goal_type", VALID_GOAL_TYPES)
            goal_value = data.get("goal_value")
            if goal_value is None:
                check.add(
                    "goal_value", ValidationErrorCode.REQUIRED_FIELD,
                    "goal_value is required when goal_type is set", goal_value,
                )
            elif isinstance(goal_value, (int, float)) and goal_value <= 0:
                check.add(
                    "goal_value", ValidationErrorCode.VALUE_OUT_OF_RANGE,
                    "goal_value must be a positive number", goal_value,
                    "A positive number (micro-units)",
                )

        return check.errors

    def _validate_special_ad_categories(self, check: _ErrorCollector, categories, platform: Optional[Platform]):
        expected = '["NONE"] or a valid category array'
        if not categories:
            if self.defaults.has_default(platform, "campaign", "specialAdCategories"):
                return
            message = (
                'special_ad_categories is required (use ["NONE"] for non-restricted campaigns)'
                if categories is None
                else 'special_ad_categories must not be empty (use ["NONE"] for non-restricted campaigns)'
            )
            check.add("special_ad_categories", ValidationErrorCode.REQUIRED_FIELD, message, categories, expected)
            return

        invalid = [c for c in categories if c not in VALID_SPECIAL_AD_CATEGORIES]
        if invalid:
            check.add(
                "special_ad_categories",
                ValidationErrorCode.INVALID_ENUM_VALUE,
                f"special_ad_categories contains invalid values: {', '.join(map(str, invalid))}",
                categories,
                " | ".join(VALID_SPECIAL_AD_CATEGORIES),
            )

    def _validate_budget(self, check: _ErrorCollector, campaign: CampaignNode):
        budget = campaign.budget
        if budget is None:
            return
        if budget.amount is not None and budget.amount <= 0:
            check.add(
                "budget.amount", ValidationErrorCode.INVALID_BUDGET,
                "budget amount must be a positive number", budget.amount, "A positive number",
            )
        if budget.type and budget.type not in VALID_BUDGET_TYPES:
            check.add(
                "budget.type", ValidationErrorCode.INVALID_ENUM_VALUE,
                f"budget type must be one of: {', '.join(VALID_BUDGET_TYPES)}",
                budget.type, " | ".join(VALID_BUDGET_TYPES),
            )


# ── Ad group ─────────────────────────────────────────────────────────────

class AdGroupValidator:
    def __init__(self, defaults: Optional[PlatformDefaultsResolver] = None):
        self.defaults = defaults or PlatformDefaultsResolver()

    def validate(
        self,
        ad_group: AdGroupNode,
        platform: Optional[Platform] = None,
        valid_campaign_ids: Optional[set[str]] = None,
    ) -> list[ValidationError]:
        check = _ErrorCollector("adGroup", ad_group.id, ad_group.name or f"Ad Group {ad_group.id}")
        settings = ad_group.settings or {}
        bidding = settings.get("bidding")
        schedule = ((settings.get("advancedSettings") or {}).get("reddit") or {}).get("adGroup") or {}

        if check.required_string(ad_group.name, "name"):
            check.max_length(ad_group.name, "name", MAX_NAME_LENGTH)

        if valid_campaign_ids is not None and ad_group.campaign_id not in valid_campaign_ids:
            check.add(
                "campaign_id", ValidationErrorCode.MISSING_DEPENDENCY,
                f'Ad group references campaign "{ad_group.campaign_id}" which does not exist in this sync',
                ad_group.campaign_id,
            )

        bid_strategy = _extract_bid_strategy(bidding)
        if not bid_strategy:
            if not self.defaults.has_default(platform, "adGroup", "bidStrategy"):
                check.add("bid_strategy", ValidationErrorCode.REQUIRED_FIELD, "bid_strategy is required", bid_strategy)
        else:
            check.enum_value(bid_strategy, "bid_strategy", VALID_BID_STRATEGIES)

        bid_type = _extract_bid_type(bidding)
        if not bid_type:
            if not self.defaults.has_default(platform, "adGroup", "bidType"):
                check.add("bid_type", ValidationErrorCode.REQUIRED_FIELD, "bid_type is required", bid_type)
        else:
            check.enum_value(bid_type, "bid_type", VALID_BID_TYPES)

        if bid_strategy in ("MANUAL_BIDDING", "TARGET_CPX"):
            bid_value = _extract_bid_value(bidding)
            if bid_value is None:
                check.add(
                    "bid_value", ValidationErrorCode.REQUIRED_FIELD,
                    f"bid_value is required when bid_strategy is {bid_strategy}", bid_value,
                )
            elif isinstance(bid_value, (int, float)) and bid_value <= 0:
                check.add(
                    "bid_value", ValidationErrorCode.VALUE_OUT_OF_RANGE,
                    "bid_value must be a positive number", bid_value,
                    "A positive number (micro-units)",
                )

        start = check.datetime_field(schedule.get("startTime"), "start_time")
        end = check.datetime_field(schedule.get("endTime"), "end_time")
        if start and end and _comparable(end) <= _comparable(start):
            check.add(
                "end_time", ValidationErrorCode.INVALID_DATE_RANGE,
                "end_time must be after start_time", schedule.get("endTime"),
                f"A datetime after {schedule.get('startTime')}",
            )

        budget = settings.get("budget") or {}
        if budget.get("type") is not None:
            goal_type = "LIFETIME_SPEND" if budget["type"] == "lifetime" else "DAILY_SPEND"
            check.enum_value(goal_type, "goal_type", VALID_GOAL_TYPES)
        amount = budget.get("amount")
        if isinstance(amount, (int, float)) and amount <= 0:
            check.add(
                "goal_value", ValidationErrorCode.VALUE_OUT_OF_RANGE,
                "goal_value (budget amount) must be a positive number", amount, "A positive number",
            )

        return check.errors


def _extract_bid_strategy(bidding: Optional[dict]) -> Optional[str]:
    strategy = (bidding or {}).get("strategy")
    if not strategy:
        return None
    return normalize_bid_strategy(strategy)


def normalize_bid_strategy(strategy: str) -> str:
    return _BID_STRATEGY_ALIASES.get(strategy.lower(), strategy.upper())


def _extract_bid_type(bidding: Optional[dict]) -> Optional[str]:
    if not bidding:
        return None
    if bidding.get("bidType"):
        return bidding["bidType"].upper()
    strategy = (bidding.get("strategy") or "").lower()
    if strategy in ("manual_cpm", "cpm"):
        return "CPM"
    if strategy in ("cpv", "video"):
        return "CPV"
    return "CPC"


def _extract_bid_value(bidding: Optional[dict]) -> Optional[float]:
    if not bidding:
        return None
    if bidding.get("bid_value") is not None:
        return bidding["bid_value"]
    for key in ("maxCpc", "maxCpm"):
        raw = bidding.get(key)
        if raw is None:
            continue
        try:
            return float(raw)
        except (TypeError, ValueError):
            continue
    return None


def _comparable(dt: datetime) -> datetime:
    # Naive inputs are treated as UTC
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


# ── Ad ───────────────────────────────────────────────────────────────────

class AdValidator:
    def validate(self, ad: AdNode, valid_ad_group_ids: Optional[set[str]] = None) -> list[ValidationError]:
        check = _ErrorCollector("ad", ad.id, ad.headline or f"Ad {ad.id}")

        if ad.final_url is None or not ad.final_url.strip():
            check.add("click_url", ValidationErrorCode.REQUIRED_FIELD, "click_url is required", ad.final_url)
        elif not _is_http_url(ad.final_url):
            check.add(
                "click_url", ValidationErrorCode.INVALID_URL,
                "click_url must be a valid HTTP or HTTPS URL", ad.final_url,
                "A valid URL starting with http:// or https://",
            )

        check.max_length(ad.headline, "headline", MAX_HEADLINE_LENGTH, label="Headline")
        check.max_length(ad.description, "body", MAX_BODY_LENGTH, label="Body")
        check.max_length(ad.display_url, "display_url", MAX_DISPLAY_URL_LENGTH, label="Display URL")

        if ad.call_to_action:
            normalized = normalize_call_to_action(ad.call_to_action)
            if normalized not in VALID_CALL_TO_ACTIONS:
                check.add(
                    "call_to_action", ValidationErrorCode.INVALID_ENUM_VALUE,
                    f"call_to_action must be one of: {', '.join(VALID_CALL_TO_ACTIONS)}",
                    ad.call_to_action, " | ".join(VALID_CALL_TO_ACTIONS),
                )

        if valid_ad_group_ids is not None and ad.ad_group_id not in valid_ad_group_ids:
            check.add(
                "ad_group_id", ValidationErrorCode.MISSING_DEPENDENCY,
                f'Ad references ad group "{ad.ad_group_id}" which does not exist in this sync',
                ad.ad_group_id,
            )

        return check.errors
