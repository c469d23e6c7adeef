"""
Campaign Set Sync: Database Models
Teams own ad accounts and campaign sets; a campaign set owns the generated
campaign → ad group → ad / keyword hierarchy that gets synced to ad platforms.

Status-like columns are closed enums: an unknown stored value fails at read
time instead of being coerced to a default further down the call chain.
"""

import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import (
    String, Text, Integer, Numeric, DateTime,
    JSON, ForeignKey, Index, UniqueConstraint,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID
from adsync.database import Base


def _utcnow() -> datetime:
    """Naive UTC now, matches DB columns (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_type(enum_cls: type[enum.Enum]) -> SAEnum:
    """Store enum values (not member names) as VARCHAR and reject unknown values on load."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class Platform(str, enum.Enum):
    REDDIT = "reddit"
    GOOGLE = "google"
    FACEBOOK = "facebook"


class CampaignSetStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class SyncStatus(str, enum.Enum):
    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    FAILED = "failed"
    CONFLICT = "conflict"


# Campaigns share the set lifecycle values
CampaignStatus = CampaignSetStatus


class EntityStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    REMOVED = "removed"


class MatchType(str, enum.Enum):
    BROAD = "broad"
    PHRASE = "phrase"
    EXACT = "exact"


class FallbackStrategy(str, enum.Enum):
    SKIP = "skip"
    TRUNCATE = "truncate"
    USE_FALLBACK = "use_fallback"


# ══════════════════════════════════════════════════════════════════════
#  TEAMS & AD ACCOUNTS
# ══════════════════════════════════════════════════════════════════════

class Team(Base):
    """Tenant boundary. Every campaign set and ad account belongs to exactly one team."""
    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    ad_accounts: Mapped[list["AdAccount"]] = relationship("AdAccount", back_populates="team", cascade="all, delete-orphan")
    campaign_sets: Mapped[list["CampaignSet"]] = relationship("CampaignSet", back_populates="team", cascade="all, delete-orphan")


class AdAccount(Base):
    """A connected ad-platform account. access_token is Fernet-encrypted (see crypto.py)."""
    __tablename__ = "ad_accounts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    platform: Mapped[Platform] = mapped_column(_enum_type(Platform), nullable=False)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)  # platform-side account id
    account_name: Mapped[str] = mapped_column(String(512), nullable=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    team: Mapped["Team"] = relationship("Team", back_populates="ad_accounts")

    __table_args__ = (
        UniqueConstraint("team_id", "platform", "account_id", name="uq_ad_account_per_team"),
        Index("ix_ad_accounts_team_id", "team_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  CAMPAIGN SETS
# ══════════════════════════════════════════════════════════════════════

class CampaignSet(Base):
    """Named container of generated campaigns for one team."""
    __tablename__ = "campaign_sets"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    data_source_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=True)
    template_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=True)
    # selectedPlatforms, fallbackStrategy, adAccountId, fundingInstrumentId, generation settings
    config: Mapped[dict] = mapped_column(JSON, nullable=True)
    status: Mapped[CampaignSetStatus] = mapped_column(_enum_type(CampaignSetStatus), default=CampaignSetStatus.DRAFT, nullable=False)
    sync_status: Mapped[SyncStatus] = mapped_column(_enum_type(SyncStatus), default=SyncStatus.PENDING, nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    team: Mapped["Team"] = relationship("Team", back_populates="campaign_sets")
    campaigns: Mapped[list["GeneratedCampaign"]] = relationship(
        "GeneratedCampaign", back_populates="campaign_set", cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_campaign_sets_team_id", "team_id"),
        Index("ix_campaign_sets_status", "status"),
    )


class GeneratedCampaign(Base):
    """A campaign produced by the generation pipeline. campaign_data holds name, platform, budget, objective."""
    __tablename__ = "generated_campaigns"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_set_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("campaign_sets.id", ondelete="CASCADE"), nullable=False)
    template_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=True)
    data_row_id: Mapped[str] = mapped_column(String(255), nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    campaign_data: Mapped[dict] = mapped_column(JSON, nullable=True)
    status: Mapped[CampaignSetStatus] = mapped_column(_enum_type(CampaignSetStatus), default=CampaignSetStatus.DRAFT, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    campaign_set: Mapped["CampaignSet"] = relationship("CampaignSet", back_populates="campaigns")
    ad_groups: Mapped[list["AdGroup"]] = relationship("AdGroup", back_populates="campaign", cascade="all, delete-orphan")
    sync_record: Mapped["SyncRecord"] = relationship(
        "SyncRecord", back_populates="campaign", uselist=False, cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_generated_campaigns_set_id", "campaign_set_id"),
        Index("ix_generated_campaigns_status", "status"),
    )


class SyncRecord(Base):
    """Outcome of the last push of one campaign to its ad platform."""
    __tablename__ = "sync_records"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    generated_campaign_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("generated_campaigns.id", ondelete="CASCADE"), nullable=False, unique=True,
    )
    platform: Mapped[Platform] = mapped_column(_enum_type(Platform), nullable=False)
    platform_id: Mapped[str] = mapped_column(String(255), nullable=True)
    sync_status: Mapped[SyncStatus] = mapped_column(_enum_type(SyncStatus), default=SyncStatus.PENDING, nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    error_log: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    campaign: Mapped["GeneratedCampaign"] = relationship("GeneratedCampaign", back_populates="sync_record")


# ══════════════════════════════════════════════════════════════════════
#  AD GROUPS, ADS, KEYWORDS
# ══════════════════════════════════════════════════════════════════════

class AdGroup(Base):
    __tablename__ = "ad_groups"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("generated_campaigns.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    settings: Mapped[dict] = mapped_column(JSON, nullable=True)  # bidding, targeting, schedule
    platform_ad_group_id: Mapped[str] = mapped_column(String(255), nullable=True)
    status: Mapped[EntityStatus] = mapped_column(_enum_type(EntityStatus), default=EntityStatus.ACTIVE, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    campaign: Mapped["GeneratedCampaign"] = relationship("GeneratedCampaign", back_populates="ad_groups")
    ads: Mapped[list["Ad"]] = relationship("Ad", back_populates="ad_group", cascade="all, delete-orphan")
    keywords: Mapped[list["Keyword"]] = relationship("Keyword", back_populates="ad_group", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_ad_groups_campaign_id", "campaign_id"),
    )


class Ad(Base):
    __tablename__ = "ads"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ad_group_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("ad_groups.id", ondelete="CASCADE"), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    headline: Mapped[str] = mapped_column(Text, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    display_url: Mapped[str] = mapped_column(Text, nullable=True)
    final_url: Mapped[str] = mapped_column(Text, nullable=True)
    call_to_action: Mapped[str] = mapped_column(String(64), nullable=True)
    assets: Mapped[dict] = mapped_column(JSON, nullable=True)
    platform_ad_id: Mapped[str] = mapped_column(String(255), nullable=True)
    status: Mapped[EntityStatus] = mapped_column(_enum_type(EntityStatus), default=EntityStatus.ACTIVE, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    ad_group: Mapped["AdGroup"] = relationship("AdGroup", back_populates="ads")

    __table_args__ = (
        Index("ix_ads_ad_group_id", "ad_group_id"),
    )


class Keyword(Base):
    __tablename__ = "keywords"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ad_group_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("ad_groups.id", ondelete="CASCADE"), nullable=False)
    keyword: Mapped[str] = mapped_column(String(512), nullable=False)
    match_type: Mapped[MatchType] = mapped_column(_enum_type(MatchType), default=MatchType.BROAD, nullable=False)
    bid: Mapped[float] = mapped_column(Numeric(12, 2), nullable=True)
    platform_keyword_id: Mapped[str] = mapped_column(String(255), nullable=True)
    status: Mapped[EntityStatus] = mapped_column(_enum_type(EntityStatus), default=EntityStatus.ACTIVE, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    ad_group: Mapped["AdGroup"] = relationship("AdGroup", back_populates="keywords")

    __table_args__ = (
        Index("ix_keywords_ad_group_id", "ad_group_id"),
    )
