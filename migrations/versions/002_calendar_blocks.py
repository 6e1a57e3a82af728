"""Calendar blocks: time a professional has taken off.

Revision ID: 002_calendar_blocks
Revises: 001_initial
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_calendar_blocks"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "calendar_blocks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("professional_id", sa.Integer(), nullable=False),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("ends_at", sa.DateTime(), nullable=False),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["professional_id"], ["professional_profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("ends_at > starts_at", name="ck_calendar_blocks_positive_span"),
    )
    op.create_index(op.f("ix_calendar_blocks_professional_id"), "calendar_blocks", ["professional_id"])
    op.create_index(op.f("ix_calendar_blocks_starts_at"), "calendar_blocks", ["starts_at"])


def downgrade() -> None:
    op.drop_index(op.f("ix_calendar_blocks_starts_at"), table_name="calendar_blocks")
    op.drop_index(op.f("ix_calendar_blocks_professional_id"), table_name="calendar_blocks")
    op.drop_table("calendar_blocks")
