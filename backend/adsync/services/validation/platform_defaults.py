"""
Per-platform defaults applied at sync time.

A field with a platform default is not required during validation when that
platform is requested: the sync adapter fills it in.
"""

import copy
from typing import Any, Optional

from adsync.models import Platform

REDDIT_DEFAULTS: dict[str, dict[str, Any]] = {
    "campaign": {
        "objective": "IMPRESSIONS",
        "specialAdCategories": ["NONE"],
    },
    "adGroup": {
        "bidStrategy": "MAXIMIZE_VOLUME",
        "bidType": "CPC",
    },
    "ad": {},
}

GOOGLE_DEFAULTS: dict[str, dict[str, Any]] = {"campaign": {}, "adGroup": {}, "ad": {}}


class PlatformDefaultsResolver:
    def __init__(self):
        self._defaults: dict[Platform, dict[str, dict[str, Any]]] = {
            Platform.REDDIT: copy.deepcopy(REDDIT_DEFAULTS),
            Platform.GOOGLE: copy.deepcopy(GOOGLE_DEFAULTS),
        }

    def has_default(self, platform: Optional[Platform], entity_type: str, field: str) -> bool:
        if platform is None:
            return False
        return field in self._defaults.get(platform, {}).get(entity_type, {})

    def get_default(self, platform: Platform, entity_type: str, field: str) -> Any:
        value = self._defaults.get(platform, {}).get(entity_type, {}).get(field)
        return copy.deepcopy(value)

    def register_defaults(self, platform: Platform, defaults: dict[str, dict[str, Any]]) -> None:
        self._defaults[platform] = copy.deepcopy(defaults)
