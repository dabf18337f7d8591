"""lucky draw configurations, entries and winners

Revision ID: 0001_lucky_draw
Revises:
Create Date: 2026-10-19 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_lucky_draw"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "lucky_draw_configs",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("event_id", sa.String(length=64), nullable=False),
        sa.Column("prize_tiers", sa.JSON(), nullable=False),
        sa.Column("max_entries_per_user", sa.Integer(), nullable=False),
        sa.Column(
            "prevent_duplicate_winners",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("total_entries", sa.Integer(), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('scheduled','completed','cancelled')",
            name=op.f("ck_lucky_draw_configs_draw_status_enum"),
        ),
        sa.CheckConstraint(
            "max_entries_per_user >= 1",
            name=op.f("ck_lucky_draw_configs_max_entries_positive"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lucky_draw_configs")),
    )
    op.create_index(
        op.f("ix_lucky_draw_configs_event_id"), "lucky_draw_configs", ["event_id"]
    )
    op.create_index(
        op.f("ix_lucky_draw_configs_status"), "lucky_draw_configs", ["status"]
    )

    op.create_table(
        "lucky_draw_entries",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("event_id", sa.String(length=64), nullable=False),
        sa.Column("config_id", ID_TYPE, nullable=False),
        sa.Column("photo_id", sa.String(length=64), nullable=True),
        sa.Column("participant_identity", sa.String(length=255), nullable=False),
        sa.Column("participant_name", sa.String(length=255), nullable=True),
        sa.Column(
            "is_winner", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("prize_tier", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["config_id"],
            ["lucky_draw_configs.id"],
            name=op.f("fk_lucky_draw_entries_config_id_lucky_draw_configs"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lucky_draw_entries")),
    )
    op.create_index(
        op.f("ix_lucky_draw_entries_config_id"), "lucky_draw_entries", ["config_id"]
    )
    op.create_index(
        op.f("ix_lucky_draw_entries_event_id"), "lucky_draw_entries", ["event_id"]
    )
    op.create_index(
        "ix_lucky_draw_entries_config_identity",
        "lucky_draw_entries",
        ["config_id", "participant_identity"],
    )
    op.create_index(
        "ix_lucky_draw_entries_event_identity",
        "lucky_draw_entries",
        ["event_id", "participant_identity"],
    )

    op.create_table(
        "lucky_draw_winners",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("event_id", sa.String(length=64), nullable=False),
        sa.Column("entry_id", ID_TYPE, nullable=False),
        sa.Column("participant_name", sa.String(length=255), nullable=False),
        sa.Column("display_image_url", sa.Text(), nullable=False),
        sa.Column("prize_tier", sa.String(length=20), nullable=False),
        sa.Column("prize_name", sa.String(length=255), nullable=False),
        sa.Column("prize_description", sa.Text(), nullable=True),
        sa.Column("selection_order", sa.Integer(), nullable=False),
        sa.Column(
            "is_claimed", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "is_redraw", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("replaced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("replacement_reason", sa.Text(), nullable=True),
        sa.Column("drawn_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["entry_id"],
            ["lucky_draw_entries.id"],
            name=op.f("fk_lucky_draw_winners_entry_id_lucky_draw_entries"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lucky_draw_winners")),
        sa.UniqueConstraint(
            "event_id", "selection_order", name="uq_lucky_draw_winners_event_order"
        ),
    )
    op.create_index(
        op.f("ix_lucky_draw_winners_entry_id"), "lucky_draw_winners", ["entry_id"]
    )
    op.create_index(
        op.f("ix_lucky_draw_winners_event_id"), "lucky_draw_winners", ["event_id"]
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_lucky_draw_winners_event_id"), table_name="lucky_draw_winners")
    op.drop_index(op.f("ix_lucky_draw_winners_entry_id"), table_name="lucky_draw_winners")
    op.drop_table("lucky_draw_winners")
    op.drop_index("ix_lucky_draw_entries_event_identity", table_name="lucky_draw_entries")
    op.drop_index("ix_lucky_draw_entries_config_identity", table_name="lucky_draw_entries")
    op.drop_index(op.f("ix_lucky_draw_entries_event_id"), table_name="lucky_draw_entries")
    op.drop_index(op.f("ix_lucky_draw_entries_config_id"), table_name="lucky_draw_entries")
    op.drop_table("lucky_draw_entries")
    op.drop_index(op.f("ix_lucky_draw_configs_status"), table_name="lucky_draw_configs")
    op.drop_index(op.f("ix_lucky_draw_configs_event_id"), table_name="lucky_draw_configs")
    op.drop_table("lucky_draw_configs")
