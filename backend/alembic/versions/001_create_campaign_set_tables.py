"""Create teams, ad accounts and the campaign set hierarchy tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    conn = op.get_bind()
    insp = sa.inspect(conn)
    existing = insp.get_table_names()

    # init_db may already have created the schema via create_all
    if "teams" not in existing:
        op.create_table(
            "teams",
            sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("slug", sa.String(255), nullable=False),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    if "ad_accounts" not in existing:
        op.create_table(
            "ad_accounts",
            sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("team_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("platform", sa.String(32), nullable=False),
            sa.Column("account_id", sa.String(255), nullable=False),
            sa.Column("account_name", sa.String(512), nullable=True),
            sa.Column("access_token", sa.Text(), nullable=True),
            sa.Column("token_expires_at", sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("team_id", "platform", "account_id", name="uq_ad_account_per_team"),
        )
        op.create_index("ix_ad_accounts_team_id", "ad_accounts", ["team_id"], unique=False)

    if "campaign_sets" not in existing:
        op.create_table(
            "campaign_sets",
            sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("team_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("data_source_id", postgresql.UUID(as_uuid=True), nullable=True),
            sa.Column("template_id", postgresql.UUID(as_uuid=True), nullable=True),
            sa.Column("config", postgresql.JSON(astext_type=sa.Text()), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
            sa.Column("sync_status", sa.String(32), nullable=False, server_default="pending"),
            sa.Column("last_synced_at", sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_campaign_sets_team_id", "campaign_sets", ["team_id"], unique=False)
        op.create_index("ix_campaign_sets_status", "campaign_sets", ["status"], unique=False)

    if "generated_campaigns" not in existing:
        op.create_table(
            "generated_campaigns",
            sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("campaign_set_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("template_id", postgresql.UUID(as_uuid=True), nullable=True),
            sa.Column("data_row_id", sa.String(255), nullable=True),
            sa.Column("order_index", sa.Integer(), nullable=True, server_default="0"),
            sa.Column("campaign_data", postgresql.JSON(astext_type=sa.Text()), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["campaign_set_id"], ["campaign_sets.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_generated_campaigns_set_id", "generated_campaigns", ["campaign_set_id"], unique=False)
        op.create_index("ix_generated_campaigns_status", "generated_campaigns", ["status"], unique=False)

    if "sync_records" not in existing:
        op.create_table(
            "sync_records",
            sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("generated_campaign_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("platform", sa.String(32), nullable=False),
            sa.Column("platform_id", sa.String(255), nullable=True),
            sa.Column("sync_status", sa.String(32), nullable=False, server_default="pending"),
            sa.Column("last_synced_at", sa.DateTime(), nullable=True),
            sa.Column("error_log", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["generated_campaign_id"], ["generated_campaigns.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("generated_campaign_id"),
        )

    if "ad_groups" not in existing:
        op.create_table(
            "ad_groups",
            sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("campaign_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("name", sa.String(512), nullable=False),
            sa.Column("order_index", sa.Integer(), nullable=True, server_default="0"),
            sa.Column("settings", postgresql.JSON(astext_type=sa.Text()), nullable=True),
            sa.Column("platform_ad_group_id", sa.String(255), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="active"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["campaign_id"], ["generated_campaigns.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_ad_groups_campaign_id", "ad_groups", ["campaign_id"], unique=False)

    if "ads" not in existing:
        op.create_table(
            "ads",
            sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("ad_group_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("order_index", sa.Integer(), nullable=True, server_default="0"),
            sa.Column("headline", sa.Text(), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("display_url", sa.Text(), nullable=True),
            sa.Column("final_url", sa.Text(), nullable=True),
            sa.Column("call_to_action", sa.String(64), nullable=True),
            sa.Column("assets", postgresql.JSON(astext_type=sa.Text()), nullable=True),
            sa.Column("platform_ad_id", sa.String(255), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="active"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["ad_group_id"], ["ad_groups.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_ads_ad_group_id", "ads", ["ad_group_id"], unique=False)

    if "keywords" not in existing:
        op.create_table(
            "keywords",
            sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("ad_group_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("keyword", sa.String(512), nullable=False),
            sa.Column("match_type", sa.String(32), nullable=False, server_default="broad"),
            sa.Column("bid", sa.Numeric(12, 2), nullable=True),
            sa.Column("platform_keyword_id", sa.String(255), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="active"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["ad_group_id"], ["ad_groups.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_keywords_ad_group_id", "keywords", ["ad_group_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_keywords_ad_group_id", table_name="keywords")
    op.drop_table("keywords")
    op.drop_index("ix_ads_ad_group_id", table_name="ads")
    op.drop_table("ads")
    op.drop_index("ix_ad_groups_campaign_id", table_name="ad_groups")
    op.drop_table("ad_groups")
    op.drop_table("sync_records")
    op.drop_index("ix_generated_campaigns_status", table_name="generated_campaigns")
    op.drop_index("ix_generated_campaigns_set_id", table_name="generated_campaigns")
    op.drop_table("generated_campaigns")
    op.drop_index("ix_campaign_sets_status", table_name="campaign_sets")
    op.drop_index("ix_campaign_sets_team_id", table_name="campaign_sets")
    op.drop_table("campaign_sets")
    op.drop_index("ix_ad_accounts_team_id", table_name="ad_accounts")
    op.drop_table("ad_accounts")
    op.drop_table("teams")
