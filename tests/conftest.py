"""Shared fixtures.

Provides:
- In-memory deal repository and fake drive client (no database or Graph)
- FolderProvisioner with a mocked sleep so URL retries are instant
- DealStateMachine and SalesWorkflows wired to the doubles
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.salesops.deals.audit import AuditRecorder
from src.salesops.deals.transitions import DealStateMachine
from src.salesops.deals.workflows import SalesWorkflows
from src.salesops.folders.provisioner import FolderProvisioner
from tests.doubles import SYSTEM_ACTOR, FakeDriveClient, InMemoryDealRepository


@pytest.fixture
def repo() -> InMemoryDealRepository:
    return InMemoryDealRepository()


@pytest.fixture
def drive() -> FakeDriveClient:
    return FakeDriveClient()


@pytest.fixture
def sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep recording the requested delays."""
    return AsyncMock()


@pytest.fixture
def provisioner(drive: FakeDriveClient, sleep: AsyncMock) -> FolderProvisioner:
    return FolderProvisioner(client=drive, retry_delay=0.5, sleep=sleep)


@pytest.fixture
def recorder() -> AuditRecorder:
    return AuditRecorder(system_actor=SYSTEM_ACTOR)


@pytest.fixture
def machine(repo: InMemoryDealRepository, recorder: AuditRecorder) -> DealStateMachine:
    return DealStateMachine(repository=repo, audit=recorder)


@pytest.fixture
def workflows(
    repo: InMemoryDealRepository, provisioner: FolderProvisioner
) -> SalesWorkflows:
    return SalesWorkflows(repository=repo, provisioner=provisioner)
