"""initial lottery schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "lotteries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("unique_id", sa.String(length=128), nullable=False),
        sa.Column("scope_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("keyword", sa.String(length=255), nullable=False),
        sa.Column("max_participants", sa.Integer(), nullable=False),
        sa.Column("winner_count", sa.Integer(), nullable=False),
        sa.Column("participant_count", sa.Integer(), nullable=False),
        sa.Column("distribution_mode", sa.String(length=16), nullable=False),
        sa.Column("claim_timeout", sa.Integer(), nullable=False),
        sa.Column("require_avatar", sa.Boolean(), nullable=False),
        sa.Column("require_username", sa.Boolean(), nullable=False),
        sa.Column("required_channel", sa.String(length=255), nullable=True),
        sa.Column("allow_bots", sa.Boolean(), nullable=False),
        sa.Column("prize_warehouse", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("creator_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "max_participants > 0",
            name=op.f("ck_lotteries_max_participants_positive"),
        ),
        sa.CheckConstraint(
            "winner_count > 0", name=op.f("ck_lotteries_winner_count_positive")
        ),
        sa.CheckConstraint(
            "participant_count >= 0 AND participant_count <= max_participants",
            name=op.f("ck_lotteries_participant_count_bounded"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lotteries")),
        sa.UniqueConstraint("unique_id", name="uq_lotteries_unique_id"),
    )
    op.create_index(
        op.f("ix_lotteries_scope_id"), "lotteries", ["scope_id"], unique=False
    )
    op.create_index(
        "uq_lotteries_active_scope",
        "lotteries",
        ["scope_id"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "lottery_participants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("lottery_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["lottery_id"],
            ["lotteries.id"],
            name=op.f("fk_lottery_participants_lottery_id_lotteries"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lottery_participants")),
        sa.UniqueConstraint(
            "lottery_id", "user_id", name="uq_participant_per_lottery"
        ),
    )
    op.create_index(
        op.f("ix_lottery_participants_lottery_id"),
        "lottery_participants",
        ["lottery_id"],
        unique=False,
    )

    op.create_table(
        "prize_warehouses",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_prize_warehouses")),
        sa.UniqueConstraint("name", name="uq_prize_warehouses_name"),
    )

    op.create_table(
        "prize_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("warehouse_id", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("stock >= 0", name=op.f("ck_prize_items_stock_non_negative")),
        sa.ForeignKeyConstraint(
            ["warehouse_id"],
            ["prize_warehouses.id"],
            name=op.f("fk_prize_items_warehouse_id_prize_warehouses"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_prize_items")),
        sa.UniqueConstraint("warehouse_id", "text", name="uq_prize_item_text"),
    )
    op.create_index(
        "ix_prize_items_consumption_order",
        "prize_items",
        ["warehouse_id", "order_index", "id"],
        unique=False,
    )

    op.create_table(
        "lottery_winners",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("lottery_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("prize_item_id", sa.Integer(), nullable=True),
        sa.Column("prize_text", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["lottery_id"],
            ["lotteries.id"],
            name=op.f("fk_lottery_winners_lottery_id_lotteries"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["prize_item_id"],
            ["prize_items.id"],
            name=op.f("fk_lottery_winners_prize_item_id_prize_items"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lottery_winners")),
        sa.UniqueConstraint("lottery_id", "user_id", name="uq_winner_per_lottery"),
    )
    op.create_index(
        op.f("ix_lottery_winners_lottery_id"),
        "lottery_winners",
        ["lottery_id"],
        unique=False,
    )
    op.create_index(
        "ix_lottery_winners_status_expires_at",
        "lottery_winners",
        ["status", "expires_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_lottery_winners_status_expires_at", table_name="lottery_winners")
    op.drop_index(op.f("ix_lottery_winners_lottery_id"), table_name="lottery_winners")
    op.drop_table("lottery_winners")
    op.drop_index("ix_prize_items_consumption_order", table_name="prize_items")
    op.drop_table("prize_items")
    op.drop_table("prize_warehouses")
    op.drop_index(
        op.f("ix_lottery_participants_lottery_id"), table_name="lottery_participants"
    )
    op.drop_table("lottery_participants")
    op.drop_index("uq_lotteries_active_scope", table_name="lotteries")
    op.drop_index(op.f("ix_lotteries_scope_id"), table_name="lotteries")
    op.drop_table("lotteries")
