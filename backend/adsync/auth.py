"""
Request scoping: API-key check and team context.

- Programmatic access: API_KEY. Include: Authorization: Bearer <API_KEY>
- Tenancy: every campaign-set route is scoped by the X-Team-Id header.

In development with no API_KEY set, the key check is skipped for local dev.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adsync.config import get_settings
from adsync.database import get_db
from adsync.errors import internal_error, not_found_error, unauthorized_error, validation_error
from adsync.models import Team
from adsync.utils import parse_uuid

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_auth(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """Accept the configured API_KEY as a bearer token."""
    settings = get_settings()
    api_key = settings.api_key

    # Dev convenience: skip auth when no key is configured
    if not api_key:
        if settings.is_production:
            raise internal_error("Server misconfiguration: API_KEY must be set in production.")
        return "dev-no-auth"

    if not credentials:
        raise unauthorized_error("Missing authorization. Include header: Authorization: Bearer <token>")

    if secrets.compare_digest(credentials.credentials, api_key):
        return credentials.credentials

    raise unauthorized_error("Invalid API key.")


@dataclass(frozen=True)
class TeamContext:
    team: Team

    @property
    def team_id(self):
        return self.team.id


async def get_team_context(
    x_team_id: Optional[str] = Header(None, alias="X-Team-Id"),
    db: AsyncSession = Depends(get_db),
) -> TeamContext:
    """Resolve the X-Team-Id header to a Team. Unknown teams are NOT_FOUND."""
    if not x_team_id:
        raise validation_error("Team ID required. Include header: X-Team-Id: <team id>")

    team_id = parse_uuid(x_team_id, "X-Team-Id")
    result = await db.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    if not team:
        raise not_found_error("Team", team_id)
    return TeamContext(team=team)
