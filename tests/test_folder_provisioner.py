"""Tests for FolderProvisioner -- idempotent folder walks and URL resolution.

Tests cover:
- ensure: creates only missing segments, idempotence, path normalization,
  create-race coalescing, propagation of non-not-found failures
- ensure_with_url: direct URL, refetch by id, refetch by path, the single
  fixed-delay retry, unresolvable folders
- ensure_many: ordering, partial failure
"""

from __future__ import annotations

import asyncio

import pytest

from src.salesops.errors import (
    ErrorKind,
    RemoteConflictError,
    RemoteNotFoundError,
    TransientRemoteError,
    UnresolvableReferenceError,
)
from src.salesops.folders.provisioner import FolderProvisioner
from tests.doubles import FakeDriveClient


# ── ensure tests ─────────────────────────────────────────────────────────────


class TestEnsure:
    """Tests for FolderProvisioner.ensure."""

    async def test_creates_every_missing_segment(self, provisioner, drive) -> None:
        ref = await provisioner.ensure("d1", "A/B/C")

        assert drive.creates() == [("d1", "A"), ("d1", "A/B"), ("d1", "A/B/C")]
        assert ref.item_id == drive.folders[("d1", "A/B/C")].id
        assert ref.drive_id == "d1"
        assert ref.name == "C"

    async def test_creates_only_missing_suffix(self, provisioner, drive) -> None:
        drive.seed("d1", "A/B")

        await provisioner.ensure("d1", "A/B/C")

        assert drive.creates() == [("d1", "A/B/C")]

    async def test_second_call_creates_nothing(self, provisioner, drive) -> None:
        first = await provisioner.ensure("d1", "A/B")
        drive.calls.clear()

        second = await provisioner.ensure("d1", "A/B")

        assert drive.creates() == []
        assert second.item_id == first.item_id

    async def test_outer_separators_are_ignored(self, provisioner, drive) -> None:
        """'/A/B/' and 'A/B' address the same folder."""
        first = await provisioner.ensure("d1", "/A/B/")
        second = await provisioner.ensure("d1", "A/B")

        assert first.item_id == second.item_id
        assert len(drive.creates()) == 2

    async def test_empty_path_is_drive_root(self, provisioner, drive) -> None:
        ref = await provisioner.ensure("d1", "/")

        assert ref.item_id == "root-d1"
        assert drive.creates() == []

    async def test_empty_drive_id_rejected(self, provisioner) -> None:
        with pytest.raises(ValueError):
            await provisioner.ensure("", "A")

    async def test_create_race_is_coalesced(self, provisioner, drive) -> None:
        """Lookup says missing, create conflicts -> re-lookup returns the winner."""
        winner = drive.seed("d1", "A")
        drive.fail_next("get_item_by_path", RemoteNotFoundError("gone", status_code=404))

        ref = await provisioner.ensure("d1", "A")

        assert ref.item_id == winner.id
        assert drive.calls[-1] == ("get_item_by_path", "d1", "A")

    async def test_concurrent_calls_create_one_folder(self, provisioner, drive) -> None:
        refs = await asyncio.gather(*(provisioner.ensure("d1", "A/B") for _ in range(4)))

        assert len({r.item_id for r in refs}) == 1
        assert len([k for k in drive.folders if k[0] == "d1"]) == 2

    async def test_lookup_failure_other_than_not_found_propagates(
        self, provisioner, drive
    ) -> None:
        drive.fail_next("get_item_by_path", TransientRemoteError("boom", status_code=500))

        with pytest.raises(TransientRemoteError):
            await provisioner.ensure("d1", "A")

        assert drive.creates() == []

    async def test_create_failure_propagates(self, provisioner, drive) -> None:
        drive.fail_next("create_folder", TransientRemoteError("boom", status_code=503))

        with pytest.raises(TransientRemoteError):
            await provisioner.ensure("d1", "A/B")

    async def test_conflict_then_missing_surfaces_as_transient(
        self, provisioner, drive
    ) -> None:
        """A conflict whose re-lookup still finds nothing fails as transient."""
        drive.fail_next("create_folder", RemoteConflictError("exists", status_code=409))

        with pytest.raises(TransientRemoteError) as exc_info:
            await provisioner.ensure("d1", "A")

        assert exc_info.value.kind == ErrorKind.TRANSIENT_REMOTE_FAILURE
        assert not isinstance(exc_info.value, RemoteNotFoundError)
        assert isinstance(exc_info.value.__cause__, RemoteNotFoundError)
        assert exc_info.value.context["path"] == "A"


# ── ensure_with_url tests ────────────────────────────────────────────────────


class TestEnsureWithUrl:
    """Tests for FolderProvisioner.ensure_with_url."""

    async def test_existing_folder_url_returned_directly(
        self, provisioner, drive, sleep
    ) -> None:
        drive.seed("d1", "A")

        ref = await provisioner.ensure_with_url("d1", "A")

        assert ref.web_url == "https://drive.example.com/d1/A"
        assert [c[0] for c in drive.calls] == ["get_item_by_path"]
        sleep.assert_not_called()

    async def test_created_folder_url_fetched_by_id(self, sleep) -> None:
        drive = FakeDriveClient(omit_url_on_create=True)
        provisioner = FolderProvisioner(client=drive, retry_delay=0.5, sleep=sleep)

        ref = await provisioner.ensure_with_url("d1", "A")

        assert ref.web_url == "https://drive.example.com/d1/A"
        assert drive.calls[-1] == ("get_item", "d1", ref.item_id)
        sleep.assert_not_called()

    async def test_falls_back_to_path_lookup(self, sleep) -> None:
        drive = FakeDriveClient(omit_url_on_create=True)
        provisioner = FolderProvisioner(client=drive, retry_delay=0.5, sleep=sleep)
        item = drive.seed("d1", "A")
        drive.withheld_urls[item.id] = 2  # walk lookup + refetch by id

        ref = await provisioner.ensure_with_url("d1", "A")

        assert ref.web_url == "https://drive.example.com/d1/A"
        assert [c[0] for c in drive.calls] == [
            "get_item_by_path",
            "get_item",
            "get_item_by_path",
        ]

    async def test_failed_fetch_retried_once_after_fixed_delay(self, sleep) -> None:
        drive = FakeDriveClient(omit_url_on_create=True)
        provisioner = FolderProvisioner(client=drive, retry_delay=0.5, sleep=sleep)
        drive.fail_next("get_item", TransientRemoteError("lag", status_code=500))

        ref = await provisioner.ensure_with_url("d1", "A")

        assert ref.web_url is not None
        sleep.assert_awaited_once_with(0.5)
        assert [c[0] for c in drive.calls].count("get_item") == 2

    async def test_second_fetch_failure_propagates(self, sleep) -> None:
        drive = FakeDriveClient(omit_url_on_create=True)
        provisioner = FolderProvisioner(client=drive, retry_delay=0.5, sleep=sleep)
        drive.fail_next("get_item", TransientRemoteError("lag", status_code=500))
        drive.fail_next("get_item", TransientRemoteError("still", status_code=500))

        with pytest.raises(TransientRemoteError):
            await provisioner.ensure_with_url("d1", "A")

        assert sleep.await_count == 1

    async def test_unresolvable_url(self, provisioner, drive) -> None:
        item = drive.seed("d1", "A")
        drive.withheld_urls[item.id] = 10

        with pytest.raises(UnresolvableReferenceError) as exc_info:
            await provisioner.ensure_with_url("d1", "A")

        assert exc_info.value.kind == ErrorKind.UNRESOLVABLE_REFERENCE
        assert exc_info.value.context["path"] == "A"


# ── ensure_many tests ────────────────────────────────────────────────────────


class TestEnsureMany:
    """Tests for FolderProvisioner.ensure_many."""

    async def test_results_follow_target_order(self, provisioner) -> None:
        targets = [("d1", "A/X"), ("d2", "A/Y"), ("d3", "A/Z")]

        refs = await provisioner.ensure_many(targets)

        assert [(r.drive_id, r.name) for r in refs] == [
            ("d1", "X"),
            ("d2", "Y"),
            ("d3", "Z"),
        ]
        assert all(r.web_url for r in refs)

    async def test_partial_failure_raises_after_all_finish(
        self, provisioner, drive
    ) -> None:
        """One failing target raises; the others are still created."""
        drive.seed("bad", "A")
        item = drive.folders[("bad", "A")]
        drive.withheld_urls[item.id] = 10

        with pytest.raises(UnresolvableReferenceError):
            await provisioner.ensure_many([("d1", "A"), ("bad", "A"), ("d2", "A")])

        assert ("d1", "A") in drive.folders
        assert ("d2", "A") in drive.folders

    async def test_without_url_requirement(self, sleep) -> None:
        drive = FakeDriveClient(omit_url_on_create=True)
        provisioner = FolderProvisioner(client=drive, retry_delay=0.5, sleep=sleep)

        refs = await provisioner.ensure_many([("d1", "A"), ("d2", "A")], require_url=False)

        assert [r.web_url for r in refs] == [None, None]
        assert all(c[0] != "get_item" for c in drive.calls)
