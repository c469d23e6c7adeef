"""
Campaign Set Service: persistence for campaign sets and their hierarchy.

Every lookup is team-scoped. A set owned by another team is reported exactly
like a missing one (NOT_FOUND) so set ids never leak across tenants.

The full tree is decoded into typed nodes (schemas.hierarchy) right here at
the read edge. Stored values that don't parse into their enums raise.
"""

import asyncio
import logging
import math
import uuid
from typing import Callable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from adsync.database import async_session
from adsync.errors import not_found_error
from adsync.models import (
    Ad,
    AdAccount,
    AdGroup,
    CampaignSet,
    CampaignSetStatus,
    CampaignStatus,
    GeneratedCampaign,
    Keyword,
    Platform,
    SyncRecord,
    SyncStatus,
)
from adsync.schemas.campaign_sets import (
    CampaignSetSummary,
    CreateCampaignSetRequest,
    UpdateCampaignSetRequest,
)
from adsync.schemas.common import Pagination
from adsync.schemas.hierarchy import (
    AdGroupNode,
    AdNode,
    BudgetInfo,
    CampaignNode,
    CampaignSetConfig,
    CampaignSetTree,
    KeywordNode,
)
from adsync.utils import parse_uuid, utcnow

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


def _str(value) -> Optional[str]:
    return str(value) if value is not None else None


def _optional_uuid(value: Optional[str], field_name: str) -> Optional[uuid.UUID]:
    return parse_uuid(value, field_name) if value else None


# ── Ownership ────────────────────────────────────────────────────────────

async def get_campaign_set_for_team(db: AsyncSession, set_id: uuid.UUID, team_id: uuid.UUID) -> CampaignSet:
    """Return the set if it exists and belongs to team_id, else NOT_FOUND."""
    result = await db.execute(select(CampaignSet).where(CampaignSet.id == set_id))
    campaign_set = result.scalar_one_or_none()
    if campaign_set is None or campaign_set.team_id != team_id:
        raise not_found_error("Campaign set", set_id)
    return campaign_set


async def get_team_ad_account(db: AsyncSession, team_id: uuid.UUID, ad_account_id: str) -> Optional[AdAccount]:
    try:
        account_uuid = uuid.UUID(str(ad_account_id))
    except ValueError:
        return None
    result = await db.execute(
        select(AdAccount).where(AdAccount.id == account_uuid, AdAccount.team_id == team_id)
    )
    return result.scalar_one_or_none()


# ── Tree loading ─────────────────────────────────────────────────────────

def campaign_set_config(campaign_set: CampaignSet) -> CampaignSetConfig:
    return CampaignSetConfig.model_validate(campaign_set.config or {})


def _campaign_node(row: GeneratedCampaign, record: Optional[SyncRecord], ad_groups: list[AdGroupNode]) -> CampaignNode:
    data = dict(row.campaign_data or {})
    budget = data.get("budget")
    return CampaignNode(
        id=str(row.id),
        campaign_set_id=str(row.campaign_set_id),
        name=data.get("name") or f"Campaign {row.id}",
        platform=Platform(data.get("platform") or Platform.REDDIT.value),
        order_index=row.order_index or 0,
        template_id=_str(row.template_id),
        data_row_id=row.data_row_id,
        campaign_data=data,
        budget=BudgetInfo.model_validate(budget) if isinstance(budget, dict) else None,
        status=row.status,
        sync_status=record.sync_status if record else SyncStatus.PENDING,
        platform_campaign_id=record.platform_id if record else None,
        last_synced_at=record.last_synced_at if record else None,
        sync_error=record.error_log if record else None,
        ad_groups=ad_groups,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _ad_node(row: Ad) -> AdNode:
    return AdNode(
        id=str(row.id),
        ad_group_id=str(row.ad_group_id),
        order_index=row.order_index or 0,
        headline=row.headline,
        description=row.description,
        display_url=row.display_url,
        final_url=row.final_url,
        call_to_action=row.call_to_action,
        assets=row.assets,
        platform_ad_id=row.platform_ad_id,
        status=row.status,
    )


def _keyword_node(row: Keyword) -> KeywordNode:
    return KeywordNode(
        id=str(row.id),
        ad_group_id=str(row.ad_group_id),
        keyword=row.keyword,
        match_type=row.match_type,
        bid=float(row.bid) if row.bid is not None else None,
        platform_keyword_id=row.platform_keyword_id,
        status=row.status,
    )


async def _fetch_ads(session_factory: SessionFactory, ad_group_id: uuid.UUID) -> list[AdNode]:
    async with session_factory() as db:
        result = await db.execute(
            select(Ad).where(Ad.ad_group_id == ad_group_id).order_by(Ad.order_index)
        )
        return [_ad_node(r) for r in result.scalars().all()]


async def _fetch_keywords(session_factory: SessionFactory, ad_group_id: uuid.UUID) -> list[KeywordNode]:
    async with session_factory() as db:
        result = await db.execute(
            select(Keyword).where(Keyword.ad_group_id == ad_group_id).order_by(Keyword.keyword)
        )
        return [_keyword_node(r) for r in result.scalars().all()]


async def _fetch_ad_group_branch(session_factory: SessionFactory, row: AdGroup) -> AdGroupNode:
    ads, keywords = await asyncio.gather(
        _fetch_ads(session_factory, row.id),
        _fetch_keywords(session_factory, row.id),
    )
    return AdGroupNode(
        id=str(row.id),
        campaign_id=str(row.campaign_id),
        name=row.name,
        order_index=row.order_index or 0,
        settings=row.settings,
        platform_ad_group_id=row.platform_ad_group_id,
        status=row.status,
        ads=ads,
        keywords=keywords,
    )


async def _fetch_ad_groups(session_factory: SessionFactory, campaign_id: uuid.UUID) -> list[AdGroupNode]:
    async with session_factory() as db:
        result = await db.execute(
            select(AdGroup).where(AdGroup.campaign_id == campaign_id).order_by(AdGroup.order_index)
        )
        rows = result.scalars().all()
    return list(await asyncio.gather(*(_fetch_ad_group_branch(session_factory, r) for r in rows)))


async def _fetch_sync_record(session_factory: SessionFactory, campaign_id: uuid.UUID) -> Optional[SyncRecord]:
    async with session_factory() as db:
        result = await db.execute(
            select(SyncRecord).where(SyncRecord.generated_campaign_id == campaign_id)
        )
        return result.scalar_one_or_none()


async def _fetch_campaign_branch(session_factory: SessionFactory, row: GeneratedCampaign) -> CampaignNode:
    # An AsyncSession is not safe for concurrent use: each branch opens its own
    ad_groups, record = await asyncio.gather(
        _fetch_ad_groups(session_factory, row.id),
        _fetch_sync_record(session_factory, row.id),
    )
    return _campaign_node(row, record, ad_groups)


async def load_campaigns(
    db: AsyncSession,
    set_id: uuid.UUID,
    session_factory: SessionFactory = async_session,
    campaign_id: Optional[uuid.UUID] = None,
) -> list[CampaignNode]:
    query = select(GeneratedCampaign).where(GeneratedCampaign.campaign_set_id == set_id)
    if campaign_id is not None:
        query = query.where(GeneratedCampaign.id == campaign_id)
    result = await db.execute(query.order_by(GeneratedCampaign.order_index))
    rows = result.scalars().all()
    return list(await asyncio.gather(*(_fetch_campaign_branch(session_factory, r) for r in rows)))


async def load_campaign_set_tree(
    db: AsyncSession,
    campaign_set: CampaignSet,
    session_factory: SessionFactory = async_session,
) -> CampaignSetTree:
    """Load the full campaign → ad group → ad / keyword tree for one set."""
    campaigns = await load_campaigns(db, campaign_set.id, session_factory)
    return to_tree(campaign_set, campaigns)


def to_tree(campaign_set: CampaignSet, campaigns: Optional[list[CampaignNode]] = None) -> CampaignSetTree:
    return CampaignSetTree(
        id=str(campaign_set.id),
        team_id=str(campaign_set.team_id),
        name=campaign_set.name,
        description=campaign_set.description,
        data_source_id=_str(campaign_set.data_source_id),
        template_id=_str(campaign_set.template_id),
        config=campaign_set_config(campaign_set),
        status=campaign_set.status,
        sync_status=campaign_set.sync_status,
        last_synced_at=campaign_set.last_synced_at,
        created_at=campaign_set.created_at,
        updated_at=campaign_set.updated_at,
        campaigns=campaigns or [],
    )


# ── CRUD ─────────────────────────────────────────────────────────────────

async def list_campaign_sets(
    db: AsyncSession,
    team_id: uuid.UUID,
    page: int = 1,
    limit: int = 20,
    status: Optional[CampaignSetStatus] = None,
    sync_status: Optional[SyncStatus] = None,
) -> tuple[list[CampaignSetSummary], Pagination]:
    conditions = [CampaignSet.team_id == team_id]
    if status is not None:
        conditions.append(CampaignSet.status == status)
    if sync_status is not None:
        conditions.append(CampaignSet.sync_status == sync_status)

    total = (await db.execute(select(func.count(CampaignSet.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(CampaignSet)
        .where(*conditions)
        .order_by(CampaignSet.created_at)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    sets = result.scalars().all()
    pagination = Pagination(
        page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0,
    )
    if not sets:
        return [], pagination

    set_ids = [s.id for s in sets]

    # Batch the counts per set instead of one query per set
    campaign_counts = dict((await db.execute(
        select(GeneratedCampaign.campaign_set_id, func.count(GeneratedCampaign.id))
        .where(GeneratedCampaign.campaign_set_id.in_(set_ids))
        .group_by(GeneratedCampaign.campaign_set_id)
    )).all())
    ad_group_counts = dict((await db.execute(
        select(GeneratedCampaign.campaign_set_id, func.count(AdGroup.id))
        .join(GeneratedCampaign, AdGroup.campaign_id == GeneratedCampaign.id)
        .where(GeneratedCampaign.campaign_set_id.in_(set_ids))
        .group_by(GeneratedCampaign.campaign_set_id)
    )).all())
    ad_counts = dict((await db.execute(
        select(GeneratedCampaign.campaign_set_id, func.count(Ad.id))
        .join(AdGroup, Ad.ad_group_id == AdGroup.id)
        .join(GeneratedCampaign, AdGroup.campaign_id == GeneratedCampaign.id)
        .where(GeneratedCampaign.campaign_set_id.in_(set_ids))
        .group_by(GeneratedCampaign.campaign_set_id)
    )).all())

    platforms: dict[uuid.UUID, list[Platform]] = {}
    platform_rows = await db.execute(
        select(GeneratedCampaign.campaign_set_id, GeneratedCampaign.campaign_data)
        .where(GeneratedCampaign.campaign_set_id.in_(set_ids))
    )
    for set_id, data in platform_rows.all():
        value = (data or {}).get("platform")
        if value:
            found = platforms.setdefault(set_id, [])
            platform = Platform(value)
            if platform not in found:
                found.append(platform)

    summaries = [
        CampaignSetSummary(
            id=str(s.id),
            name=s.name,
            description=s.description,
            status=s.status,
            sync_status=s.sync_status,
            campaign_count=campaign_counts.get(s.id, 0),
            ad_group_count=ad_group_counts.get(s.id, 0),
            ad_count=ad_counts.get(s.id, 0),
            platforms=platforms.get(s.id, []),
            last_synced_at=s.last_synced_at,
            created_at=s.created_at,
            updated_at=s.updated_at,
        )
        for s in sets
    ]
    return summaries, pagination


async def create_campaign_set(db: AsyncSession, team_id: uuid.UUID, body: CreateCampaignSetRequest) -> CampaignSet:
    campaign_set = CampaignSet(
        team_id=team_id,
        name=body.name,
        description=body.description,
        data_source_id=_optional_uuid(body.data_source_id, "dataSourceId"),
        template_id=_optional_uuid(body.template_id, "templateId"),
        config=body.config.model_dump(mode="json", by_alias=True),
        status=body.status,
        sync_status=SyncStatus.PENDING,
    )
    db.add(campaign_set)
    await db.flush()
    await db.refresh(campaign_set)
    logger.info(f"Created campaign set {campaign_set.id} for team {team_id}")
    return campaign_set


async def update_campaign_set(db: AsyncSession, campaign_set: CampaignSet, body: UpdateCampaignSetRequest) -> CampaignSet:
    changes = body.model_dump(exclude_unset=True)
    if "name" in changes and body.name is not None:
        campaign_set.name = body.name
    if "description" in changes:
        campaign_set.description = body.description
    if "data_source_id" in changes:
        campaign_set.data_source_id = _optional_uuid(body.data_source_id, "dataSourceId")
    if "template_id" in changes:
        campaign_set.template_id = _optional_uuid(body.template_id, "templateId")
    if "config" in changes and body.config is not None:
        campaign_set.config = body.config.model_dump(mode="json", by_alias=True)
    if "status" in changes and body.status is not None:
        campaign_set.status = body.status
    if "sync_status" in changes and body.sync_status is not None:
        campaign_set.sync_status = body.sync_status
    campaign_set.updated_at = utcnow()
    await db.flush()
    await db.refresh(campaign_set)
    return campaign_set


async def delete_campaign_set(db: AsyncSession, campaign_set: CampaignSet) -> None:
    await db.delete(campaign_set)
    await db.flush()
    logger.info(f"Deleted campaign set {campaign_set.id}")


async def delete_campaign(db: AsyncSession, set_id: uuid.UUID, campaign_id: uuid.UUID) -> None:
    result = await db.execute(
        delete(GeneratedCampaign)
        .where(GeneratedCampaign.id == campaign_id, GeneratedCampaign.campaign_set_id == set_id)
    )
    if result.rowcount == 0:
        raise not_found_error("Campaign", campaign_id)


# ── Status transitions ───────────────────────────────────────────────────

async def promote_draft_campaigns(db: AsyncSession, set_id: uuid.UUID) -> int:
    """Move draft campaigns to pending so the sync job picks them up."""
    result = await db.execute(
        update(GeneratedCampaign)
        .where(
            GeneratedCampaign.campaign_set_id == set_id,
            GeneratedCampaign.status == CampaignStatus.DRAFT,
        )
        .values(status=CampaignStatus.PENDING, updated_at=utcnow())
    )
    return result.rowcount or 0


async def pause_campaign_set(db: AsyncSession, campaign_set: CampaignSet) -> int:
    result = await db.execute(
        update(GeneratedCampaign)
        .where(GeneratedCampaign.campaign_set_id == campaign_set.id)
        .values(status=CampaignStatus.PAUSED, updated_at=utcnow())
    )
    campaign_set.status = CampaignSetStatus.PAUSED
    await db.flush()
    return result.rowcount or 0


async def resume_campaign_set(db: AsyncSession, campaign_set: CampaignSet) -> int:
    result = await db.execute(
        update(GeneratedCampaign)
        .where(
            GeneratedCampaign.campaign_set_id == campaign_set.id,
            GeneratedCampaign.status == CampaignStatus.PAUSED,
        )
        .values(status=CampaignStatus.ACTIVE, updated_at=utcnow())
    )
    campaign_set.status = CampaignSetStatus.ACTIVE
    await db.flush()
    return result.rowcount or 0


async def set_sync_state(
    db: AsyncSession,
    set_id: uuid.UUID,
    sync_status: SyncStatus,
    status: Optional[CampaignSetStatus] = None,
    synced_at=None,
) -> None:
    values = {"sync_status": sync_status, "updated_at": utcnow()}
    if status is not None:
        values["status"] = status
    if synced_at is not None:
        values["last_synced_at"] = synced_at
    await db.execute(update(CampaignSet).where(CampaignSet.id == set_id).values(**values))


async def record_campaign_sync(
    db: AsyncSession,
    campaign_id: uuid.UUID,
    platform: Platform,
    sync_status: SyncStatus,
    platform_id: Optional[str] = None,
    error: Optional[str] = None,
) -> SyncRecord:
    result = await db.execute(select(SyncRecord).where(SyncRecord.generated_campaign_id == campaign_id))
    record = result.scalar_one_or_none()
    if record is None:
        record = SyncRecord(generated_campaign_id=campaign_id, platform=platform)
        db.add(record)
    record.sync_status = sync_status
    if platform_id is not None:
        record.platform_id = platform_id
    record.error_log = error
    if sync_status == SyncStatus.SYNCED:
        record.last_synced_at = utcnow()
    await db.flush()
    return record


async def save_platform_ids(
    db: AsyncSession,
    ad_group_ids: dict[str, str],
    ad_ids: dict[str, str],
) -> None:
    """Store platform-side ids returned by the ad platform, keyed by local id."""
    for local_id, platform_id in ad_group_ids.items():
        await db.execute(
            update(AdGroup).where(AdGroup.id == uuid.UUID(local_id)).values(platform_ad_group_id=platform_id)
        )
    for local_id, platform_id in ad_ids.items():
        await db.execute(
            update(Ad).where(Ad.id == uuid.UUID(local_id)).values(platform_ad_id=platform_id)
        )
