"""Add deal participants.

Revision ID: 002_add_deal_participants
Revises: 001_initial_schema
Create Date: 2026-10-19

Creates the participants table: outside parties (vendor, distributor,
partner, consultant) attached to a deal, with an optional point of contact
and product brand.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "002_add_deal_participants"
down_revision: Union[str, None] = "001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "participants",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "deal_id",
            UUID(as_uuid=True),
            sa.ForeignKey("deals.id"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("company_name", sa.String(300), nullable=False),
        sa.Column("poc_name", sa.String(300), nullable=True),
        sa.Column("poc_contact", sa.String(100), nullable=True),
        sa.Column("poc_email", sa.String(320), nullable=True),
        sa.Column("product_brand", sa.String(300), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_participants_deal_id", "participants", ["deal_id"])


def downgrade() -> None:
    op.drop_index("ix_participants_deal_id", table_name="participants")
    op.drop_table("participants")
