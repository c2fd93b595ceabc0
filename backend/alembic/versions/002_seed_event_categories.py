"""Seed the built-in event categories.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CATEGORIES = [
    ("TRY_DIVE", "Try dive"),
    ("COURSE_OPEN", "Open course"),
    ("COURSE_ADVANCED", "Advanced course"),
    ("COURSE_DEEP", "Deep course"),
    ("TRAINING_ALL", "Training, open to all"),
    ("TRAINING_OPEN", "Open training"),
    ("TRAINING_ADVANCED", "Advanced training"),
    ("TRAINING_DEEP", "Deep training"),
    ("OPEN_WATER_OPEN", "Open water, Open"),
    ("OPEN_WATER_ADVANCED", "Open water, Advanced"),
    ("OPEN_WATER_DEEP", "Open water, Deep"),
    ("Y40_ALL", "Y-40 session, open to all"),
    ("Y40_OPEN", "Y-40 session, Open"),
    ("Y40_ADVANCED", "Y-40 session, Advanced"),
    ("Y40_DEEP", "Y-40 session, Deep"),
    ("EVENT_SPECIAL_FREE", "Free special event"),
    ("EVENT_SPECIAL", "Special event"),
    ("EVENT_SPECIAL_OPEN", "Special event, Open"),
    ("EVENT_SPECIAL_ADVANCED", "Special event, Advanced"),
    ("EVENT_SPECIAL_DEEP", "Special event, Deep"),
]

event_categories = sa.table(
    "event_categories",
    sa.column("code", sa.String),
    sa.column("label", sa.String),
)


def upgrade() -> None:
    op.bulk_insert(event_categories, [{"code": code, "label": label} for code, label in CATEGORIES])


def downgrade() -> None:
    # Fails on categories that still have events (ondelete=RESTRICT)
    op.execute(
        event_categories.delete().where(event_categories.c.code.in_([code for code, _ in CATEGORIES]))
    )
