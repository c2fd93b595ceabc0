"""Initial schema: members, subscriptions, groups, events, signups.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Members table
    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'USER'")),
        *_timestamps(),
        sa.CheckConstraint("status IN ('ACTIVE', 'CANCELLED')", name="check_member_status"),
        sa.CheckConstraint("role IN ('USER', 'ADMIN')", name="check_member_role"),
    )
    op.create_index("ix_members_id", "members", ["id"])
    op.create_index("ix_members_email", "members", ["email"], unique=True)

    # Groups table
    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("tier", sa.String(20), nullable=False, server_default=sa.text("'ALL'")),
        sa.Column("description", sa.String(500), nullable=True),
        sa.CheckConstraint("tier IN ('ALL', 'OPEN', 'ADVANCED', 'DEEP')", name="check_group_tier"),
    )
    op.create_index("ix_groups_id", "groups", ["id"])

    # Subscriptions table
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'EUR'")),
        sa.Column("credits", sa.Integer(), nullable=False, server_default=sa.text("32")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("payment_ref", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("credits >= 0", name="check_subscription_credits_non_negative"),
        sa.CheckConstraint("amount > 0", name="check_subscription_amount_positive"),
        sa.CheckConstraint("end_date > start_date", name="check_subscription_window"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'ACTIVE', 'EXPIRED', 'CANCELLED')",
            name="check_subscription_status",
        ),
    )
    op.create_index("ix_subscriptions_id", "subscriptions", ["id"])
    op.create_index("ix_subscriptions_member_id", "subscriptions", ["member_id"])
    op.create_index("ix_subscriptions_member_status", "subscriptions", ["member_id", "status"])
    # ONE ACTIVE SUBSCRIPTION PER MEMBER: supersession cancels the previous
    # ACTIVE row in the same transaction; this index rejects anything that slips past.
    op.create_index(
        "uq_subscriptions_one_active_per_member",
        "subscriptions",
        ["member_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    # Group memberships (member, group, subscription)
    op.create_table(
        "group_memberships",
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="RESTRICT"), primary_key=True),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("groups.id", ondelete="RESTRICT"), primary_key=True),
        sa.Column(
            "subscription_id",
            sa.Integer(),
            sa.ForeignKey("subscriptions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_to", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("valid_to > valid_from", name="check_membership_window"),
    )
    op.create_index("ix_group_memberships_member_active", "group_memberships", ["member_id", "is_active"])

    # Event categories
    op.create_table(
        "event_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("label", sa.String(255), nullable=False),
    )
    op.create_index("ix_event_categories_id", "event_categories", ["id"])

    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("max_slots", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("booked_slots", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'SCHEDULED'")),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("event_categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        *_timestamps(),
        sa.CheckConstraint("max_slots > 0", name="check_max_slots_positive"),
        sa.CheckConstraint("booked_slots >= 0", name="check_booked_slots_non_negative"),
        sa.CheckConstraint("booked_slots <= max_slots", name="check_booked_lte_max"),
        sa.CheckConstraint("status IN ('SCHEDULED', 'CANCELLED')", name="check_event_status"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    # Day schedule: WHERE date = :day AND status = 'SCHEDULED'
    op.create_index("ix_events_date_status", "events", ["date", "status"])

    # Signups table
    op.create_table(
        "signups",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "subscription_id",
            sa.Integer(),
            sa.ForeignKey("subscriptions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("member_id", "event_id", name="uq_member_event_signup"),
    )
    op.create_index("ix_signups_id", "signups", ["id"])
    op.create_index("ix_signups_member_id", "signups", ["member_id"])
    op.create_index("ix_signups_event_id", "signups", ["event_id"])


def downgrade() -> None:
    op.drop_table("signups")
    op.drop_table("events")
    op.drop_table("event_categories")
    op.drop_table("group_memberships")
    op.drop_table("subscriptions")
    op.drop_table("groups")
    op.drop_table("members")
