"""Folder naming and the fixed sub-folder tree of a deal.

Company base folder: ``"{name} - {code}"`` at the root of each of the
company's three drives. Deal base folder: ``"{seq:04d} - {project}"`` under
the company base folder, with three labelled sub-folders per drive.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

from src.salesops.deals.schemas import CompanyRead, FileLabel


class DriveArea(str, Enum):
    """Functional area of a company drive."""

    SALES = "sales"
    PROJECTS = "projects"
    FINANCE = "finance"


class SubfolderDef(NamedTuple):
    area: DriveArea
    name: str
    label: FileLabel


DEAL_SUBFOLDERS: tuple[SubfolderDef, ...] = (
    SubfolderDef(DriveArea.SALES, "Quotes", FileLabel.QUOTES),
    SubfolderDef(DriveArea.SALES, "Purchase Orders", FileLabel.PURCHASE_ORDERS),
    SubfolderDef(DriveArea.SALES, "Agreements", FileLabel.AGREEMENTS),
    SubfolderDef(DriveArea.PROJECTS, "Service Reports", FileLabel.SERVICE_REPORTS),
    SubfolderDef(DriveArea.PROJECTS, "Handover Reports", FileLabel.HANDOVER_REPORTS),
    SubfolderDef(DriveArea.PROJECTS, "Delivery Orders", FileLabel.DELIVERY_ORDERS),
    SubfolderDef(DriveArea.FINANCE, "Invoices", FileLabel.INVOICES),
    SubfolderDef(DriveArea.FINANCE, "Credit Notes", FileLabel.CREDIT_NOTES),
    SubfolderDef(DriveArea.FINANCE, "Receipts", FileLabel.RECEIPTS),
)


def company_base_folder_name(name: str, code: str) -> str:
    return f"{name} - {code}"


def format_sequence(seq: int) -> str:
    """Zero-pad a deal sequence number to four digits."""
    return f"{seq:04d}"


def deal_base_path(base_folder_name: str, sequence: int, project_name: str) -> str:
    return f"{base_folder_name}/{format_sequence(sequence)} - {project_name}"


def drive_for_area(company: CompanyRead, area: DriveArea) -> str | None:
    return {
        DriveArea.SALES: company.sales_drive_id,
        DriveArea.PROJECTS: company.projects_drive_id,
        DriveArea.FINANCE: company.finance_drive_id,
    }[area]
