"""Pydantic schemas for companies, customers, deals, file links and audit entries.

Defines the structured types exchanged between the repository, the deal
lifecycle state machine and the workflows:
- Enums: DealStatus (ordered), DealType, FileLabel, CommPref, DealView,
  ParticipantKind
- Companies: CompanyCreate/Read, CompanySummary, CompanyDetail
- Customers: CustomerCreate/Read
- Deals: DealCreate/Read, FileLinkCreate/Read, ParticipantCreate/Read
- Lists: DocumentListItem
- Audit: AuditEntryCreate/Read
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator

COMPANY_CODE_PATTERN = re.compile(r"^[A-Za-z]{3}\d{4}$")


# ── Enums ───────────────────────────────────────────────────────────────────


class DealStatus(str, Enum):
    """Lifecycle stage of a deal. Declaration order is the progression order."""

    NOT_STARTED = "NOT_STARTED"
    PENDING_TO_QUOTE = "PENDING_TO_QUOTE"
    PENDING_VENDOR_QUOTE = "PENDING_VENDOR_QUOTE"
    WAITING_FOR_PO = "WAITING_FOR_PO"
    WAITING_FOR_CONFIRMATION = "WAITING_FOR_CONFIRMATION"
    IN_PRE_SALES_STAGE = "IN_PRE_SALES_STAGE"


class DealType(str, Enum):
    """Deal classification, independent of status."""

    NEW_OPPORTUNITY = "NEW_OPPORTUNITY"
    CONFIRMED = "CONFIRMED"
    THIRD_QUOTE = "THIRD_QUOTE"
    UPCOMING = "UPCOMING"


class FileLabel(str, Enum):
    """Semantic label of a provisioned deal sub-folder."""

    QUOTES = "QUOTES"
    PURCHASE_ORDERS = "PURCHASE_ORDERS"
    AGREEMENTS = "AGREEMENTS"
    SERVICE_REPORTS = "SERVICE_REPORTS"
    HANDOVER_REPORTS = "HANDOVER_REPORTS"
    DELIVERY_ORDERS = "DELIVERY_ORDERS"
    INVOICES = "INVOICES"
    CREDIT_NOTES = "CREDIT_NOTES"
    RECEIPTS = "RECEIPTS"


class CommPref(str, Enum):
    """Preferred communication channel for a customer."""

    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"
    TELEGRAM = "TELEGRAM"


class DealView(str, Enum):
    """Named deal listings."""

    ACTIVE = "active"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    LOST = "lost"


class ParticipantKind(str, Enum):
    """Role of an outside party on a deal."""

    VENDOR = "VENDOR"
    DISTRIBUTOR = "DISTRIBUTOR"
    PARTNER = "PARTNER"
    CONSULTANT = "CONSULTANT"


# ── Companies ───────────────────────────────────────────────────────────────


class CompanyCreate(BaseModel):
    """Schema for onboarding a company and its three drives."""

    name: str = Field(min_length=1)
    code: str
    address: str | None = None
    sub_address: str | None = None
    office_number: str | None = None
    site_id: str = Field(min_length=1)
    sales_drive_id: str = Field(min_length=1)
    projects_drive_id: str = Field(min_length=1)
    finance_drive_id: str = Field(min_length=1)

    @field_validator("code")
    @classmethod
    def _check_code(cls, value: str) -> str:
        if not COMPANY_CODE_PATTERN.match(value):
            raise ValueError("Company code must be three letters followed by four digits")
        return value


class CompanyRead(BaseModel):
    """Persisted company."""

    id: str
    code: str
    name: str
    address: str | None = None
    sub_address: str | None = None
    office_number: str | None = None
    site_id: str | None = None
    base_folder_name: str | None = None
    sales_drive_id: str | None = None
    projects_drive_id: str | None = None
    finance_drive_id: str | None = None
    created_at: datetime | None = None

    def drive_ids(self) -> list[str]:
        return [
            d
            for d in (self.sales_drive_id, self.projects_drive_id, self.finance_drive_id)
            if d
        ]

    def is_provisionable(self) -> bool:
        """True when the base folder and all three drives are configured."""
        return bool(self.base_folder_name) and len(self.drive_ids()) == 3


class CompanySummary(BaseModel):
    """Company with deal counts and the URLs of its three base folders."""

    id: str
    code: str
    name: str
    address: str = ""
    active_deals: int = 0
    confirmed_deals: int = 0
    completed_deals: int = 0
    lost_deals: int = 0
    sales_url: str | None = None
    projects_url: str | None = None
    finance_url: str | None = None


# ── Customers ───────────────────────────────────────────────────────────────


class CustomerCreate(BaseModel):
    company_id: str
    client_name: str = Field(min_length=1)
    mobile_number: str | None = None
    comm_pref: CommPref | None = None


class CustomerRead(BaseModel):
    id: str
    company_id: str
    client_name: str
    mobile_number: str | None = None
    comm_pref: CommPref | None = None
    created_at: datetime | None = None


# ── Deals ───────────────────────────────────────────────────────────────────


class FileLinkCreate(BaseModel):
    """Provisioned sub-folder to attach to a new deal."""

    label: FileLabel
    drive_id: str
    item_id: str
    web_url: str


class FileLinkRead(FileLinkCreate):
    id: str
    deal_id: str


class ParticipantCreate(BaseModel):
    """Outside party (vendor, distributor, ...) attached to a deal."""

    kind: ParticipantKind
    company_name: str = Field(min_length=1)
    poc_name: str | None = None
    poc_contact: str | None = None
    poc_email: EmailStr | None = None
    product_brand: str | None = None


class ParticipantRead(ParticipantCreate):
    id: str
    deal_id: str
    created_at: datetime | None = None


class DealCreate(BaseModel):
    """Input for the deal-creation workflow."""

    company_id: str
    customer_id: str | None = None
    project_name: str = Field(min_length=1)
    type: DealType = DealType.NEW_OPPORTUNITY
    status: DealStatus = DealStatus.NOT_STARTED
    owner_upn: str = Field(min_length=1)
    estimated_size: Decimal | None = Field(default=None, gt=0)


class DealRead(BaseModel):
    """Persisted deal with lifecycle flags and its base-folder reference."""

    id: str
    company_id: str
    customer_id: str | None = None
    project_name: str
    status: DealStatus = DealStatus.NOT_STARTED
    type: DealType = DealType.NEW_OPPORTUNITY
    owner_upn: str = ""
    estimated_size: Decimal | None = None
    is_lost: bool = False
    is_completed: bool = False
    lost_reason: str | None = None
    alt_opportunity: str | None = None
    folder_drive_id: str | None = None
    folder_item_id: str | None = None
    folder_web_url: str | None = None
    files: list[FileLinkRead] = Field(default_factory=list)
    participants: list[ParticipantRead] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.is_lost or self.is_completed


class CompanyDetail(CompanyRead):
    """One company with its customers, its deals and its base-folder URLs."""

    customers: list[CustomerRead] = Field(default_factory=list)
    deals: list[DealRead] = Field(default_factory=list)
    sales_url: str | None = None
    projects_url: str | None = None
    finance_url: str | None = None


# ── Document Lists ──────────────────────────────────────────────────────────


class DocumentListItem(BaseModel):
    """One labelled deal folder in a document list (quotes, invoices, ...)."""

    id: str
    company: str
    project: str
    url: str


# ── Audit ───────────────────────────────────────────────────────────────────


class AuditEntryCreate(BaseModel):
    deal_id: str
    action: str
    actor_upn: str
    payload: dict[str, Any] = Field(default_factory=dict)


class AuditEntryRead(AuditEntryCreate):
    id: str
    created_at: datetime | None = None
