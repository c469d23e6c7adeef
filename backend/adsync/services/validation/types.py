"""
Result types produced by the sync validation engine.

Field-level errors are data, not exceptions: every validator returns a list
of ValidationError and the service nests them per entity.
"""

import enum
from typing import Any, Literal, Optional

from pydantic import Field

from adsync.schemas.common import CamelModel

EntityType = Literal["campaign", "adGroup", "ad", "keyword"]


class ValidationErrorCode(str, enum.Enum):
    REQUIRED_FIELD = "REQUIRED_FIELD"
    FIELD_TOO_LONG = "FIELD_TOO_LONG"
    INVALID_ENUM_VALUE = "INVALID_ENUM_VALUE"
    INVALID_URL = "INVALID_URL"
    INVALID_BUDGET = "INVALID_BUDGET"
    VALUE_OUT_OF_RANGE = "VALUE_OUT_OF_RANGE"
    INVALID_DATETIME = "INVALID_DATETIME"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    MISSING_DEPENDENCY = "MISSING_DEPENDENCY"


class ValidationError(CamelModel):
    entity_type: EntityType
    entity_id: str
    entity_name: str
    field: str
    message: str
    code: ValidationErrorCode
    value: Any = None
    expected: Optional[str] = None


class EntityValidationResult(CamelModel):
    entity_id: str
    entity_name: str
    is_valid: bool
    errors: list[ValidationError] = Field(default_factory=list)


class AdGroupValidationResult(EntityValidationResult):
    ads: list[EntityValidationResult] = Field(default_factory=list)
    keywords: list[EntityValidationResult] = Field(default_factory=list)


class CampaignValidationResult(EntityValidationResult):
    ad_groups: list[AdGroupValidationResult] = Field(default_factory=list)


class ValidationSummary(CamelModel):
    campaigns_validated: int = 0
    ad_groups_validated: int = 0
    ads_validated: int = 0
    keywords_validated: int = 0
    campaigns_with_errors: int = 0
    ad_groups_with_errors: int = 0
    ads_with_errors: int = 0
    keywords_with_errors: int = 0


class ValidationResult(CamelModel):
    is_valid: bool
    campaign_set_id: str
    total_errors: int
    campaigns: list[CampaignValidationResult] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)
    validation_time_ms: int = 0
