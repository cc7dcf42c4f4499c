"""Idempotent remote folder provisioning.

Walks a slash-delimited path one segment at a time against the remote
drive: each accumulated prefix is looked up, and only a prefix that reports
not-found is created, under its already-confirmed parent, with the "fail"
conflict behaviour. A create that loses a race to a concurrent creator
surfaces as a conflict and is coalesced into a re-lookup of the same path;
if that re-lookup still finds nothing the call fails as a transient remote
error, so not-found never escapes the walk. Repeating a call therefore
never creates a second folder.

Freshly created folders may not carry their canonical URL yet (read-after-
write lag). ensure_with_url re-fetches by id and then by path, each with
exactly one retry after a fixed delay, and fails rather than returning a
folder without a URL.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from src.salesops.errors import (
    RemoteConflictError,
    RemoteNotFoundError,
    RemoteStorageError,
    TransientRemoteError,
    UnresolvableReferenceError,
)
from src.salesops.services.graph.client import GraphDriveClient, sanitize_path
from src.salesops.services.graph.models import DriveItem, FolderRef

logger = structlog.get_logger(__name__)

DEFAULT_RETRY_DELAY = 0.5


@dataclass
class _Walk:
    """Progress of one ensure() call: confirmed prefix plus segments left."""

    drive_id: str
    remaining: deque[str]
    parent_path: str = ""
    last_item: DriveItem | None = field(default=None)

    @property
    def next_path(self) -> str:
        segment = self.remaining[0]
        return f"{self.parent_path}/{segment}" if self.parent_path else segment


class FolderProvisioner:
    """Ensures nested folders exist in a remote drive and resolves their URLs.

    Args:
        client: Authenticated drive client.
        retry_delay: Fixed delay (seconds) before the single URL-resolution retry.
        sleep: Awaitable sleep used between attempts (tests inject a fake).
    """

    def __init__(
        self,
        client: GraphDriveClient,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._retry_delay = retry_delay
        self._sleep = sleep

    # ── Path walk ──────────────────────────────────────────────────────────

    async def ensure(self, drive_id: str, path: str) -> FolderRef:
        """Ensure every folder on ``path`` exists and return the deepest one.

        Args:
            drive_id: Remote drive id.
            path: Slash-delimited folder path; leading/trailing separators are
                ignored and an empty path denotes the drive root.

        Returns:
            FolderRef for the deepest folder. ``web_url`` may be None for a
            folder that was created by this call.

        Raises:
            ValueError: If drive_id is empty.
            RemoteStorageError: Any lookup failure other than not-found, or a
                create failure other than a coalescible conflict.
        """
        if not drive_id:
            raise ValueError("ensure requires a valid drive_id")

        clean = sanitize_path(path)
        if not clean:
            root = await self._client.get_item_by_path(drive_id, "")
            return FolderRef.from_item(drive_id, root)

        walk = _Walk(
            drive_id=drive_id,
            remaining=deque(s for s in clean.split("/") if s),
        )
        while walk.remaining:
            await self._step(walk)

        assert walk.last_item is not None
        return FolderRef.from_item(drive_id, walk.last_item)

    async def _step(self, walk: _Walk) -> None:
        """Confirm the next segment of the walk, creating it when missing."""
        segment = walk.remaining[0]
        current_path = walk.next_path

        try:
            item = await self._client.get_item_by_path(walk.drive_id, current_path)
        except RemoteNotFoundError:
            logger.debug(
                "folder.segment_missing",
                drive_id=walk.drive_id,
                path=current_path,
            )
            item = await self._create_segment(walk, segment, current_path)

        walk.last_item = item
        walk.parent_path = current_path
        walk.remaining.popleft()

    async def _create_segment(
        self, walk: _Walk, segment: str, current_path: str
    ) -> DriveItem:
        try:
            return await self._client.create_folder(
                walk.drive_id, walk.parent_path, segment
            )
        except RemoteConflictError:
            # Lost a creation race; the folder now exists
            logger.info(
                "folder.create_conflict_coalesced",
                drive_id=walk.drive_id,
                path=current_path,
            )
            try:
                return await self._client.get_item_by_path(walk.drive_id, current_path)
            except RemoteNotFoundError as exc:
                raise TransientRemoteError(
                    f"Folder reported as existing but not yet readable: {current_path}",
                    status_code=exc.status_code,
                    drive_id=walk.drive_id,
                    path=current_path,
                ) from exc

    # ── URL resolution ─────────────────────────────────────────────────────

    async def ensure_with_url(self, drive_id: str, path: str) -> FolderRef:
        """Ensure the folder path exists and return a reference with a canonical URL.

        Raises:
            UnresolvableReferenceError: If the folder exists but no URL could
                be obtained after every resolution step.
            RemoteStorageError: If a retried fetch fails a second time.
        """
        clean = sanitize_path(path)
        ref = await self.ensure(drive_id, clean)
        if ref.web_url:
            return ref

        if ref.item_id:
            fetched = await self._fetch_once_more_on_failure(
                self._client.get_item, drive_id, ref.item_id
            )
            if fetched.web_url:
                return FolderRef.from_item(drive_id, fetched)
            ref = FolderRef.from_item(drive_id, fetched)

        fetched = await self._fetch_once_more_on_failure(
            self._client.get_item_by_path, drive_id, clean
        )
        if fetched.web_url:
            return FolderRef.from_item(drive_id, fetched)

        logger.error(
            "folder.url_unresolvable",
            drive_id=drive_id,
            path=clean,
            item_id=ref.item_id,
        )
        raise UnresolvableReferenceError(
            f"Unable to resolve web URL for folder path: {clean}",
            drive_id=drive_id,
            path=clean,
        )

    async def _fetch_once_more_on_failure(
        self,
        fetch: Callable[[str, str], Awaitable[DriveItem]],
        drive_id: str,
        key: str,
    ) -> DriveItem:
        """Run a metadata fetch, retrying exactly once after the fixed delay."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(2),
            wait=wait_fixed(self._retry_delay),
            retry=retry_if_exception_type(RemoteStorageError),
            sleep=self._sleep,
            reraise=True,
            before_sleep=lambda state: logger.info(
                "folder.url_fetch_retry",
                drive_id=drive_id,
                key=key,
                error=str(state.outcome.exception()) if state.outcome else None,
            ),
        )
        item: DriveItem | None = None
        async for attempt in retrying:
            with attempt:
                item = await fetch(drive_id, key)
        assert item is not None
        return item

    # ── Batch provisioning ─────────────────────────────────────────────────

    async def ensure_many(
        self,
        targets: Sequence[tuple[str, str]],
        require_url: bool = True,
    ) -> list[FolderRef]:
        """Provision independent ``(drive_id, path)`` targets concurrently.

        Results are returned in the order of ``targets``. The first failure
        is raised once every call has finished; folders created by the other
        calls are left in place.
        """
        ensure = self.ensure_with_url if require_url else self.ensure
        results = await asyncio.gather(
            *(ensure(drive_id, path) for drive_id, path in targets),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            logger.warning(
                "folder.batch_partial_failure",
                total=len(targets),
                failed=len(failures),
            )
            raise failures[0]

        return list(results)  # type: ignore[arg-type]
