"""Persistence models for companies, customers, deals, file links, audit and participants.

SQLAlchemy models on the shared declarative Base:
- CompanyModel: Company with its base folder name and three drive ids
- CustomerModel: Customer contact belonging to a company
- DealModel: Deal lifecycle state plus its base-folder reference
- FileLinkModel: Labelled deal sub-folder (one per label per deal)
- AuditEntryModel: Insert-only record of every lifecycle mutation
- ParticipantModel: Outside party (vendor, distributor, ...) on a deal

Rows are never deleted. Deal status/outcome columns are written only by
the deal lifecycle state machine.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.salesops.core.database import Base


class CompanyModel(Base):
    """Company whose documents live in three drives (sales, projects, finance).

    ``code`` is the human-facing identifier (three letters, four digits) and
    is unique; a collision surfaces as DuplicateIdentityError.
    """

    __tablename__ = "companies"
    __table_args__ = (UniqueConstraint("code", name="uq_company_code"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    code: Mapped[str] = mapped_column(String(7), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sub_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    office_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    site_id: Mapped[str | None] = mapped_column(String(300), nullable=True)
    base_folder_name: Mapped[str | None] = mapped_column(String(400), nullable=True)
    sales_drive_id: Mapped[str | None] = mapped_column(String(300), nullable=True)
    projects_drive_id: Mapped[str | None] = mapped_column(String(300), nullable=True)
    finance_drive_id: Mapped[str | None] = mapped_column(String(300), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class CustomerModel(Base):
    """Customer contact for a company."""

    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False
    )
    client_name: Mapped[str] = mapped_column(String(300), nullable=False)
    mobile_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    comm_pref: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class DealModel(Base):
    """Deal with ordered status, type classification and exclusive outcomes.

    ``is_lost`` and ``is_completed`` are never both true; the folder_*
    columns reference the deal's base folder in the company's sales drive.
    """

    __tablename__ = "deals"
    __table_args__ = (
        Index("ix_deals_company_id", "company_id"),
        CheckConstraint(
            "NOT (is_lost AND is_completed)", name="ck_deals_exclusive_outcome"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False
    )
    customer_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id"), nullable=True
    )
    project_name: Mapped[str] = mapped_column(String(300), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), default="NOT_STARTED", server_default=text("'NOT_STARTED'")
    )
    type: Mapped[str] = mapped_column(
        String(50), default="NEW_OPPORTUNITY", server_default=text("'NEW_OPPORTUNITY'")
    )
    owner_upn: Mapped[str] = mapped_column(String(255), nullable=False)
    estimated_size: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    is_lost: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false")
    )
    is_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false")
    )
    lost_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    alt_opportunity: Mapped[str | None] = mapped_column(Text, nullable=True)
    folder_drive_id: Mapped[str | None] = mapped_column(String(300), nullable=True)
    folder_item_id: Mapped[str | None] = mapped_column(String(300), nullable=True)
    folder_web_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class FileLinkModel(Base):
    """Labelled deal sub-folder. One row per (deal, label)."""

    __tablename__ = "file_links"
    __table_args__ = (
        UniqueConstraint("deal_id", "label", name="uq_file_link_deal_label"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    deal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("deals.id"), nullable=False
    )
    label: Mapped[str] = mapped_column(String(50), nullable=False)
    drive_id: Mapped[str] = mapped_column(String(300), nullable=False)
    item_id: Mapped[str] = mapped_column(String(300), nullable=False)
    web_url: Mapped[str] = mapped_column(String(2000), nullable=False)


class AuditEntryModel(Base):
    """Immutable record of one deal lifecycle mutation."""

    __tablename__ = "audit_entries"
    __table_args__ = (
        Index("ix_audit_entries_deal_created", "deal_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    deal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("deals.id"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    actor_upn: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[dict] = mapped_column(
        JSON, default=dict, server_default=text("'{}'::json")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class ParticipantModel(Base):
    """Outside party on a deal: vendor, distributor, partner or consultant."""

    __tablename__ = "participants"
    __table_args__ = (Index("ix_participants_deal_id", "deal_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    deal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("deals.id"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    company_name: Mapped[str] = mapped_column(String(300), nullable=False)
    poc_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    poc_contact: Mapped[str | None] = mapped_column(String(100), nullable=True)
    poc_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    product_brand: Mapped[str | None] = mapped_column(String(300), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
