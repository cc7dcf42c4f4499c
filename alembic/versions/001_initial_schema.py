"""Create companies, customers, deals, file links and audit entries.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Creates the five tables:
- companies: Company with base folder name and three drive ids (unique code)
- customers: Customer contacts per company
- deals: Deal lifecycle state and base-folder reference
- file_links: Labelled deal sub-folders, one per (deal, label)
- audit_entries: Insert-only lifecycle audit trail
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _created_at_column() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # ── companies table ─────────────────────────────────────────────────

    op.create_table(
        "companies",
        _id_column(),
        sa.Column("code", sa.String(7), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("sub_address", sa.String(500), nullable=True),
        sa.Column("office_number", sa.String(50), nullable=True),
        sa.Column("site_id", sa.String(300), nullable=True),
        sa.Column("base_folder_name", sa.String(400), nullable=True),
        sa.Column("sales_drive_id", sa.String(300), nullable=True),
        sa.Column("projects_drive_id", sa.String(300), nullable=True),
        sa.Column("finance_drive_id", sa.String(300), nullable=True),
        _created_at_column(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("code", name="uq_company_code"),
    )

    # ── customers table ─────────────────────────────────────────────────

    op.create_table(
        "customers",
        _id_column(),
        sa.Column(
            "company_id",
            UUID(as_uuid=True),
            sa.ForeignKey("companies.id"),
            nullable=False,
        ),
        sa.Column("client_name", sa.String(300), nullable=False),
        sa.Column("mobile_number", sa.String(50), nullable=True),
        sa.Column("comm_pref", sa.String(20), nullable=True),
        _created_at_column(),
    )

    # ── deals table ─────────────────────────────────────────────────────

    op.create_table(
        "deals",
        _id_column(),
        sa.Column(
            "company_id",
            UUID(as_uuid=True),
            sa.ForeignKey("companies.id"),
            nullable=False,
        ),
        sa.Column(
            "customer_id",
            UUID(as_uuid=True),
            sa.ForeignKey("customers.id"),
            nullable=True,
        ),
        sa.Column("project_name", sa.String(300), nullable=False),
        sa.Column(
            "status",
            sa.String(50),
            server_default=sa.text("'NOT_STARTED'"),
            nullable=False,
        ),
        sa.Column(
            "type",
            sa.String(50),
            server_default=sa.text("'NEW_OPPORTUNITY'"),
            nullable=False,
        ),
        sa.Column("owner_upn", sa.String(255), nullable=False),
        sa.Column("estimated_size", sa.Numeric(14, 2), nullable=True),
        sa.Column(
            "is_lost", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "is_completed", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("lost_reason", sa.Text(), nullable=True),
        sa.Column("alt_opportunity", sa.Text(), nullable=True),
        sa.Column("folder_drive_id", sa.String(300), nullable=True),
        sa.Column("folder_item_id", sa.String(300), nullable=True),
        sa.Column("folder_web_url", sa.String(2000), nullable=True),
        _created_at_column(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "NOT (is_lost AND is_completed)", name="ck_deals_exclusive_outcome"
        ),
    )
    op.create_index("ix_deals_company_id", "deals", ["company_id"])

    # ── file_links table ────────────────────────────────────────────────

    op.create_table(
        "file_links",
        _id_column(),
        sa.Column(
            "deal_id",
            UUID(as_uuid=True),
            sa.ForeignKey("deals.id"),
            nullable=False,
        ),
        sa.Column("label", sa.String(50), nullable=False),
        sa.Column("drive_id", sa.String(300), nullable=False),
        sa.Column("item_id", sa.String(300), nullable=False),
        sa.Column("web_url", sa.String(2000), nullable=False),
        sa.UniqueConstraint("deal_id", "label", name="uq_file_link_deal_label"),
    )

    # ── audit_entries table ─────────────────────────────────────────────

    op.create_table(
        "audit_entries",
        _id_column(),
        sa.Column(
            "deal_id",
            UUID(as_uuid=True),
            sa.ForeignKey("deals.id"),
            nullable=False,
        ),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("actor_upn", sa.String(255), nullable=False),
        sa.Column(
            "payload",
            sa.JSON(),
            server_default=sa.text("'{}'::json"),
            nullable=False,
        ),
        _created_at_column(),
    )
    op.create_index(
        "ix_audit_entries_deal_created", "audit_entries", ["deal_id", "created_at"]
    )


def downgrade() -> None:
    # Drop tables in reverse dependency order
    op.drop_index("ix_audit_entries_deal_created", table_name="audit_entries")
    op.drop_table("audit_entries")
    op.drop_table("file_links")
    op.drop_index("ix_deals_company_id", table_name="deals")
    op.drop_table("deals")
    op.drop_table("customers")
    op.drop_table("companies")
