"""Deal management repository -- async persistence for companies, customers and deals.

Provides DealRepository with the session_factory callable pattern. Handles
serialization between Pydantic schemas and SQLAlchemy models, and exposes
``deal_transaction()``: a unit of work that locks one deal row, lets the
caller apply field updates and append audit entries, and commits both
together (or neither).
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import aclosing, asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.salesops.deals.models import (
    AuditEntryModel,
    CompanyModel,
    CustomerModel,
    DealModel,
    FileLinkModel,
    ParticipantModel,
)
from src.salesops.deals.schemas import (
    AuditEntryCreate,
    AuditEntryRead,
    CompanyCreate,
    CompanyRead,
    CustomerCreate,
    CustomerRead,
    DealCreate,
    DealRead,
    DealType,
    DealView,
    DocumentListItem,
    FileLabel,
    FileLinkCreate,
    FileLinkRead,
    ParticipantCreate,
    ParticipantRead,
)
from src.salesops.errors import DuplicateIdentityError, EntityNotFoundError
from src.salesops.services.graph.models import FolderRef

logger = structlog.get_logger(__name__)

# Fields a lifecycle transition may write
MUTABLE_DEAL_FIELDS = frozenset(
    {"status", "type", "is_lost", "is_completed", "lost_reason", "alt_opportunity"}
)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _parse_id(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _model_to_company(model: CompanyModel) -> CompanyRead:
    """Convert CompanyModel to CompanyRead schema."""
    return CompanyRead(
        id=str(model.id),
        code=model.code,
        name=model.name,
        address=model.address,
        sub_address=model.sub_address,
        office_number=model.office_number,
        site_id=model.site_id,
        base_folder_name=model.base_folder_name,
        sales_drive_id=model.sales_drive_id,
        projects_drive_id=model.projects_drive_id,
        finance_drive_id=model.finance_drive_id,
        created_at=model.created_at,
    )


def _model_to_customer(model: CustomerModel) -> CustomerRead:
    return CustomerRead(
        id=str(model.id),
        company_id=str(model.company_id),
        client_name=model.client_name,
        mobile_number=model.mobile_number,
        comm_pref=model.comm_pref,
        created_at=model.created_at,
    )


def _model_to_file_link(model: FileLinkModel) -> FileLinkRead:
    return FileLinkRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        label=model.label,
        drive_id=model.drive_id,
        item_id=model.item_id,
        web_url=model.web_url,
    )


def _model_to_participant(model: ParticipantModel) -> ParticipantRead:
    return ParticipantRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        kind=model.kind,
        company_name=model.company_name,
        poc_name=model.poc_name,
        poc_contact=model.poc_contact,
        poc_email=model.poc_email,
        product_brand=model.product_brand,
        created_at=model.created_at,
    )


def _model_to_deal(
    model: DealModel,
    files: list[FileLinkModel] | None = None,
    participants: list[ParticipantModel] | None = None,
) -> DealRead:
    """Convert DealModel (plus optional file links and participants) to DealRead."""
    return DealRead(
        id=str(model.id),
        company_id=str(model.company_id),
        customer_id=str(model.customer_id) if model.customer_id else None,
        project_name=model.project_name,
        status=model.status,
        type=model.type,
        owner_upn=model.owner_upn,
        estimated_size=model.estimated_size,
        is_lost=bool(model.is_lost),
        is_completed=bool(model.is_completed),
        lost_reason=model.lost_reason,
        alt_opportunity=model.alt_opportunity,
        folder_drive_id=model.folder_drive_id,
        folder_item_id=model.folder_item_id,
        folder_web_url=model.folder_web_url,
        files=[_model_to_file_link(f) for f in (files or [])],
        participants=[_model_to_participant(p) for p in (participants or [])],
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _model_to_audit(model: AuditEntryModel) -> AuditEntryRead:
    return AuditEntryRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        action=model.action,
        actor_upn=model.actor_upn,
        payload=model.payload or {},
        created_at=model.created_at,
    )


# ── Unit of Work ────────────────────────────────────────────────────────────


class DealUnitOfWork(ABC):
    """One deal, locked for the duration of a lifecycle mutation.

    Changes made through ``update`` and entries added through
    ``append_audit`` become visible together when the owning
    ``deal_transaction`` block exits cleanly, and are discarded if it
    raises.
    """

    @property
    @abstractmethod
    def deal(self) -> DealRead:
        """Current state of the deal, including pending updates."""

    @abstractmethod
    def update(self, **changes: Any) -> None:
        """Stage field changes on the locked deal."""

    @abstractmethod
    async def append_audit(self, entry: AuditEntryCreate) -> None:
        """Stage an audit entry in the same transaction."""


class SqlDealUnitOfWork(DealUnitOfWork):
    """DealUnitOfWork over a row locked with SELECT ... FOR UPDATE."""

    def __init__(self, session: AsyncSession, model: DealModel) -> None:
        self._session = session
        self._model = model

    @property
    def deal(self) -> DealRead:
        return _model_to_deal(self._model)

    def update(self, **changes: Any) -> None:
        unknown = set(changes) - MUTABLE_DEAL_FIELDS
        if unknown:
            raise ValueError(f"Fields not writable by a transition: {sorted(unknown)}")
        for key, value in changes.items():
            if isinstance(value, Enum):
                value = value.value
            setattr(self._model, key, value)
        self._model.updated_at = datetime.now(timezone.utc)

    async def append_audit(self, entry: AuditEntryCreate) -> None:
        self._session.add(
            AuditEntryModel(
                deal_id=uuid.UUID(entry.deal_id),
                action=entry.action,
                actor_upn=entry.actor_upn,
                payload=entry.payload,
            )
        )
        # Surface insert failures inside the transaction
        await self._session.flush()


# ── Repository ──────────────────────────────────────────────────────────────


class DealRepository:
    """Async persistence for companies, customers, deals and their related records.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Companies ───────────────────────────────────────────────────────────

    async def create_company(
        self, data: CompanyCreate, base_folder_name: str
    ) -> CompanyRead:
        """Create a company.

        Raises:
            DuplicateIdentityError: If the company code is already taken.
        """
        async for session in self._session_factory():
            model = CompanyModel(
                code=data.code,
                name=data.name,
                address=data.address,
                sub_address=data.sub_address,
                office_number=data.office_number,
                site_id=data.site_id,
                base_folder_name=base_folder_name,
                sales_drive_id=data.sales_drive_id,
                projects_drive_id=data.projects_drive_id,
                finance_drive_id=data.finance_drive_id,
            )
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateIdentityError(
                    f"Company ID already exists: {data.code}", code=data.code
                ) from exc
            await session.refresh(model)
            return _model_to_company(model)

    async def get_company(self, company_id: str) -> CompanyRead | None:
        parsed = _parse_id(company_id)
        if parsed is None:
            return None
        async for session in self._session_factory():
            model = await session.get(CompanyModel, parsed)
            if model is None:
                return None
            return _model_to_company(model)

    async def list_companies(self) -> list[CompanyRead]:
        """List all companies ordered by name."""
        async for session in self._session_factory():
            stmt = select(CompanyModel).order_by(CompanyModel.name)
            result = await session.execute(stmt)
            return [_model_to_company(m) for m in result.scalars().all()]

    # ── Customers ───────────────────────────────────────────────────────────

    async def create_customer(self, data: CustomerCreate) -> CustomerRead:
        async for session in self._session_factory():
            model = CustomerModel(
                company_id=uuid.UUID(data.company_id),
                client_name=data.client_name,
                mobile_number=data.mobile_number,
                comm_pref=data.comm_pref.value if data.comm_pref else None,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_customer(model)

    async def get_customer(self, customer_id: str) -> CustomerRead | None:
        parsed = _parse_id(customer_id)
        if parsed is None:
            return None
        async for session in self._session_factory():
            model = await session.get(CustomerModel, parsed)
            if model is None:
                return None
            return _model_to_customer(model)

    async def list_customers(self, company_id: str) -> list[CustomerRead]:
        """Customers of a company ordered by client name."""
        parsed = _parse_id(company_id)
        if parsed is None:
            return []
        async for session in self._session_factory():
            stmt = (
                select(CustomerModel)
                .where(CustomerModel.company_id == parsed)
                .order_by(CustomerModel.client_name)
            )
            result = await session.execute(stmt)
            return [_model_to_customer(m) for m in result.scalars().all()]

    # ── Deals ───────────────────────────────────────────────────────────────

    async def count_deals(self, company_id: str) -> int:
        """Number of deals ever created for a company (drives folder sequence)."""
        async for session in self._session_factory():
            stmt = select(func.count(DealModel.id)).where(
                DealModel.company_id == uuid.UUID(company_id)
            )
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def create_deal(
        self,
        data: DealCreate,
        folder: FolderRef,
        files: list[FileLinkCreate],
    ) -> DealRead:
        """Create a deal with its base-folder reference and labelled sub-folders."""
        async for session in self._session_factory():
            model = DealModel(
                company_id=uuid.UUID(data.company_id),
                customer_id=uuid.UUID(data.customer_id) if data.customer_id else None,
                project_name=data.project_name,
                status=data.status.value,
                type=data.type.value,
                owner_upn=data.owner_upn,
                estimated_size=data.estimated_size,
                folder_drive_id=folder.drive_id,
                folder_item_id=folder.item_id,
                folder_web_url=folder.web_url,
            )
            session.add(model)
            await session.flush()

            links = [
                FileLinkModel(
                    deal_id=model.id,
                    label=f.label.value,
                    drive_id=f.drive_id,
                    item_id=f.item_id,
                    web_url=f.web_url,
                )
                for f in files
            ]
            session.add_all(links)
            await session.commit()
            await session.refresh(model)
            for link in links:
                await session.refresh(link)
            return _model_to_deal(model, links)

    async def get_deal(self, deal_id: str) -> DealRead | None:
        """Get a deal with its file links and participants, or None if missing."""
        parsed = _parse_id(deal_id)
        if parsed is None:
            return None
        async for session in self._session_factory():
            model = await session.get(DealModel, parsed)
            if model is None:
                return None
            files, participants = await self._load_children(session, [parsed])
            return _model_to_deal(model, files[parsed], participants[parsed])

    async def list_deals(
        self,
        view: DealView | None = None,
        company_id: str | None = None,
    ) -> list[DealRead]:
        """List deals, newest first, optionally narrowed to a view and company.

        A malformed ``company_id`` matches no company and yields an empty list.
        """
        stmt = select(DealModel).order_by(DealModel.created_at.desc())

        if company_id is not None:
            parsed_company = _parse_id(company_id)
            if parsed_company is None:
                return []
            stmt = stmt.where(DealModel.company_id == parsed_company)

        if view == DealView.ACTIVE:
            stmt = stmt.where(
                DealModel.is_lost.is_(False), DealModel.is_completed.is_(False)
            )
        elif view == DealView.CONFIRMED:
            stmt = stmt.where(
                DealModel.type == DealType.CONFIRMED.value,
                DealModel.is_lost.is_(False),
                DealModel.is_completed.is_(False),
            )
        elif view == DealView.COMPLETED:
            stmt = stmt.where(DealModel.is_completed.is_(True))
        elif view == DealView.LOST:
            stmt = stmt.where(DealModel.is_lost.is_(True))

        async for session in self._session_factory():
            result = await session.execute(stmt)
            models = list(result.scalars().all())
            files, participants = await self._load_children(
                session, [m.id for m in models]
            )
            return [_model_to_deal(m, files[m.id], participants[m.id]) for m in models]

    @staticmethod
    async def _load_children(
        session: AsyncSession, deal_ids: list[uuid.UUID]
    ) -> tuple[
        dict[uuid.UUID, list[FileLinkModel]], dict[uuid.UUID, list[ParticipantModel]]
    ]:
        """File links and participants of the given deals, keyed by deal id."""
        files: dict[uuid.UUID, list[FileLinkModel]] = defaultdict(list)
        participants: dict[uuid.UUID, list[ParticipantModel]] = defaultdict(list)
        if not deal_ids:
            return files, participants

        file_rows = await session.execute(
            select(FileLinkModel).where(FileLinkModel.deal_id.in_(deal_ids))
        )
        for link in file_rows.scalars().all():
            files[link.deal_id].append(link)

        participant_rows = await session.execute(
            select(ParticipantModel)
            .where(ParticipantModel.deal_id.in_(deal_ids))
            .order_by(ParticipantModel.created_at)
        )
        for participant in participant_rows.scalars().all():
            participants[participant.deal_id].append(participant)

        return files, participants

    # ── Participants ────────────────────────────────────────────────────────

    async def add_participant(
        self, deal_id: str, data: ParticipantCreate
    ) -> ParticipantRead:
        """Attach an outside party to a deal.

        Raises:
            EntityNotFoundError: If the deal does not exist.
        """
        parsed = _parse_id(deal_id)
        if parsed is None:
            raise EntityNotFoundError(f"Deal not found: {deal_id}", deal_id=deal_id)
        async for session in self._session_factory():
            if await session.get(DealModel, parsed) is None:
                raise EntityNotFoundError(f"Deal not found: {deal_id}", deal_id=deal_id)
            model = ParticipantModel(
                deal_id=parsed,
                kind=data.kind.value,
                company_name=data.company_name,
                poc_name=data.poc_name,
                poc_contact=data.poc_contact,
                poc_email=data.poc_email,
                product_brand=data.product_brand,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_participant(model)

    # ── Document Lists ──────────────────────────────────────────────────────

    async def list_file_links(self, label: FileLabel) -> list[DocumentListItem]:
        """Labelled folders of every deal not lost, ordered by project name.

        Links without a URL are left out.
        """
        async for session in self._session_factory():
            stmt = (
                select(
                    FileLinkModel.id,
                    FileLinkModel.web_url,
                    DealModel.project_name,
                    CompanyModel.name,
                )
                .join(DealModel, FileLinkModel.deal_id == DealModel.id)
                .join(CompanyModel, DealModel.company_id == CompanyModel.id)
                .where(
                    FileLinkModel.label == label.value,
                    DealModel.is_lost.is_(False),
                )
                .order_by(DealModel.project_name)
            )
            result = await session.execute(stmt)
            return [
                DocumentListItem(
                    id=str(link_id), company=company, project=project, url=url
                )
                for link_id, url, project, company in result.all()
                if url
            ]

    @asynccontextmanager
    async def deal_transaction(self, deal_id: str) -> AsyncIterator[DealUnitOfWork]:
        """Lock a deal row and yield a unit of work committed on clean exit.

        Raises:
            EntityNotFoundError: If the deal does not exist.
        """
        parsed = _parse_id(deal_id)
        if parsed is None:
            raise EntityNotFoundError(f"Deal not found: {deal_id}", deal_id=deal_id)

        async with aclosing(self._session_factory()) as sessions:
            async for session in sessions:
                async with session.begin():
                    stmt = (
                        select(DealModel)
                        .where(DealModel.id == parsed)
                        .with_for_update()
                    )
                    result = await session.execute(stmt)
                    model = result.scalar_one_or_none()
                    if model is None:
                        raise EntityNotFoundError(
                            f"Deal not found: {deal_id}", deal_id=deal_id
                        )
                    yield SqlDealUnitOfWork(session, model)
                break

    # ── Audit ───────────────────────────────────────────────────────────────

    async def list_audit_entries(self, deal_id: str) -> list[AuditEntryRead]:
        """Audit trail of a deal, oldest first."""
        parsed = _parse_id(deal_id)
        if parsed is None:
            return []
        async for session in self._session_factory():
            stmt = (
                select(AuditEntryModel)
                .where(AuditEntryModel.deal_id == parsed)
                .order_by(AuditEntryModel.created_at)
            )
            result = await session.execute(stmt)
            return [_model_to_audit(m) for m in result.scalars().all()]
