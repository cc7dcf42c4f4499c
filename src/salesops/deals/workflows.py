"""Company onboarding, deal creation, company summaries and company detail.

These workflows sit on top of the repository and the folder provisioner:

- Onboarding persists the company, then ensures its base folder in the
  sales, projects and finance drives concurrently.
- Deal creation numbers the deal within its company, provisions the deal
  base folder plus the nine labelled sub-folders, and persists the deal
  with one file link per label. Folders created before a provisioning
  failure are left in place and reused by the next attempt.
- Summaries count deals per outcome and resolve the three base-folder URLs,
  degrading an unresolvable URL to None.
- Company detail lists customers and deals alongside the same URLs.
"""

from __future__ import annotations

import asyncio

import structlog

from src.salesops.deals.repository import DealRepository
from src.salesops.deals.schemas import (
    CompanyCreate,
    CompanyDetail,
    CompanyRead,
    CompanySummary,
    DealCreate,
    DealRead,
    DealType,
    FileLinkCreate,
)
from src.salesops.errors import (
    EntityNotFoundError,
    IncompleteConfigurationError,
    SalesOpsError,
)
from src.salesops.folders.layout import (
    DEAL_SUBFOLDERS,
    company_base_folder_name,
    deal_base_path,
    drive_for_area,
)
from src.salesops.folders.provisioner import FolderProvisioner

logger = structlog.get_logger(__name__)


class SalesWorkflows:
    """Entity-creation workflows that materialize folders for companies and deals.

    Args:
        repository: Persistence for companies, customers and deals.
        provisioner: Remote folder provisioner.
    """

    def __init__(self, repository: DealRepository, provisioner: FolderProvisioner) -> None:
        self._repo = repository
        self._provisioner = provisioner

    async def onboard_company(self, data: CompanyCreate) -> CompanyRead:
        """Create a company and its base folder in each of its three drives.

        Raises:
            DuplicateIdentityError: If the company code already exists.
            RemoteStorageError: If a base folder cannot be ensured. The
                company record and any folders already created remain.
        """
        base_folder = company_base_folder_name(data.name, data.code)
        company = await self._repo.create_company(data, base_folder)
        logger.info("company.created", company_id=company.id, code=company.code)

        await self._provisioner.ensure_many(
            [(drive_id, base_folder) for drive_id in company.drive_ids()],
            require_url=False,
        )
        logger.info(
            "company.folders_provisioned",
            company_id=company.id,
            base_folder=base_folder,
        )
        return company

    async def create_deal(self, data: DealCreate) -> DealRead:
        """Create a deal and its folder tree.

        Raises:
            EntityNotFoundError: If the company or customer does not exist.
            IncompleteConfigurationError: If the company lacks drive ids or
                a base folder name.
            RemoteStorageError / UnresolvableReferenceError: If a folder
                cannot be provisioned with a URL; no deal is persisted.
        """
        company = await self._repo.get_company(data.company_id)
        if company is None:
            raise EntityNotFoundError(
                f"Company not found: {data.company_id}", company_id=data.company_id
            )
        if not company.is_provisionable():
            raise IncompleteConfigurationError(
                "Company is missing required drive configuration",
                company_id=company.id,
            )
        if data.customer_id and await self._repo.get_customer(data.customer_id) is None:
            raise EntityNotFoundError(
                f"Customer not found: {data.customer_id}", customer_id=data.customer_id
            )

        sequence = await self._repo.count_deals(company.id) + 1
        base_path = deal_base_path(company.base_folder_name or "", sequence, data.project_name)

        sales_folder = await self._provisioner.ensure_with_url(
            company.sales_drive_id or "", base_path
        )

        targets = [
            (drive_for_area(company, sub.area) or "", f"{base_path}/{sub.name}")
            for sub in DEAL_SUBFOLDERS
        ]
        refs = await self._provisioner.ensure_many(targets)

        files = [
            FileLinkCreate(
                label=sub.label,
                drive_id=ref.drive_id,
                item_id=ref.item_id,
                web_url=ref.web_url or "",
            )
            for sub, ref in zip(DEAL_SUBFOLDERS, refs)
        ]

        deal = await self._repo.create_deal(data, sales_folder, files)
        logger.info(
            "deal.created",
            deal_id=deal.id,
            company_id=company.id,
            base_path=base_path,
            file_links=len(files),
        )
        return deal

    async def get_company_detail(self, company_id: str) -> CompanyDetail:
        """One company with its customers, deals (newest first) and folder URLs.

        Raises:
            EntityNotFoundError: If the company does not exist.
        """
        company = await self._repo.get_company(company_id)
        if company is None:
            raise EntityNotFoundError(
                f"Company not found: {company_id}", company_id=company_id
            )

        customers, deals, (sales_url, projects_url, finance_url) = await asyncio.gather(
            self._repo.list_customers(company.id),
            self._repo.list_deals(company_id=company.id),
            self._base_folder_urls(company),
        )
        return CompanyDetail(
            **company.model_dump(),
            customers=customers,
            deals=deals,
            sales_url=sales_url,
            projects_url=projects_url,
            finance_url=finance_url,
        )

    async def summarize_companies(self) -> list[CompanySummary]:
        """Summaries of every company with deal counts and base-folder URLs."""
        companies = await self._repo.list_companies()
        return list(
            await asyncio.gather(*(self._summarize(company) for company in companies))
        )

    async def _summarize(self, company: CompanyRead) -> CompanySummary:
        deals = await self._repo.list_deals(company_id=company.id)

        sales_url, projects_url, finance_url = await self._base_folder_urls(company)

        address = ", ".join(
            part.strip()
            for part in (company.address, company.sub_address, company.office_number)
            if part and part.strip()
        )

        return CompanySummary(
            id=company.id,
            code=company.code,
            name=company.name,
            address=address,
            active_deals=sum(1 for d in deals if not d.is_terminal),
            confirmed_deals=sum(
                1 for d in deals if not d.is_lost and d.type == DealType.CONFIRMED
            ),
            completed_deals=sum(1 for d in deals if d.is_completed),
            lost_deals=sum(1 for d in deals if d.is_lost),
            sales_url=sales_url,
            projects_url=projects_url,
            finance_url=finance_url,
        )

    async def _resolve_folder_url(
        self, drive_id: str | None, base_path: str | None
    ) -> str | None:
        if not drive_id or not base_path:
            return None
        try:
            folder = await self._provisioner.ensure_with_url(drive_id, base_path)
        except SalesOpsError as exc:
            logger.warning(
                "company.folder_url_unavailable",
                drive_id=drive_id,
                base_path=base_path,
                kind=exc.kind.value,
                error=exc.message,
            )
            return None
        return folder.web_url

    async def _base_folder_urls(
        self, company: CompanyRead
    ) -> tuple[str | None, str | None, str | None]:
        """Sales, projects and finance base-folder URLs, None where unresolvable."""
        sales_url, projects_url, finance_url = await asyncio.gather(
            self._resolve_folder_url(company.sales_drive_id, company.base_folder_name),
            self._resolve_folder_url(company.projects_drive_id, company.base_folder_name),
            self._resolve_folder_url(company.finance_drive_id, company.base_folder_name),
        )
        return sales_url, projects_url, finance_url
