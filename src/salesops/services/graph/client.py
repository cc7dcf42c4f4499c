"""Async client for the Microsoft Graph drive-item endpoints.

Wraps the three calls folder provisioning needs: fetch an item by id,
fetch an item by path, and create a child folder. HTTP outcomes are mapped
onto the typed remote errors: 404 -> RemoteNotFoundError, 409 ->
RemoteConflictError, anything else (other statuses, timeouts, refused
connections) -> TransientRemoteError. A 401 also drops the cached token so
the next call re-authenticates.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

from src.salesops.errors import (
    RemoteConflictError,
    RemoteNotFoundError,
    TransientRemoteError,
)
from src.salesops.services.graph.auth import GraphAuthManager
from src.salesops.services.graph.models import DriveItem

logger = structlog.get_logger(__name__)

CONFLICT_BEHAVIOR_KEY = "@microsoft.graph.conflictBehavior"


def sanitize_path(path: str) -> str:
    """Strip leading and trailing separators from a slash-delimited path."""
    return path.strip("/")


def encode_path(path: str) -> str:
    """Percent-encode each segment of a clean path, keeping the separators."""
    return "/".join(quote(segment, safe="") for segment in path.split("/"))


class GraphDriveClient:
    """Authenticated drive-item client for one Graph endpoint.

    Args:
        auth_manager: Supplies bearer tokens.
        base_url: Graph API root, e.g. https://graph.microsoft.com/v1.0.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        auth_manager: GraphAuthManager,
        base_url: str = "https://graph.microsoft.com/v1.0",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth = auth_manager
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _request(
        self, method: str, endpoint: str, json: dict[str, Any] | None = None
    ) -> DriveItem:
        token = await self._auth.get_token()
        headers = {"Authorization": f"Bearer {token}"}
        url = f"{self._base_url}{endpoint}"

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(method, url, headers=headers, json=json)
        except httpx.TimeoutException as exc:
            raise TransientRemoteError(
                f"Graph request timed out: {method} {endpoint}", endpoint=endpoint
            ) from exc
        except httpx.HTTPError as exc:
            raise TransientRemoteError(
                f"Graph request failed: {method} {endpoint}: {exc}", endpoint=endpoint
            ) from exc

        status = response.status_code
        if status == 404:
            raise RemoteNotFoundError(
                f"Drive item not found: {endpoint}", status_code=status, endpoint=endpoint
            )
        if status == 409:
            raise RemoteConflictError(
                f"Drive item already exists: {endpoint}",
                status_code=status,
                endpoint=endpoint,
            )
        if status == 401:
            self._auth.invalidate()
        if status >= 400:
            logger.warning(
                "graph.request_failed",
                method=method,
                endpoint=endpoint,
                status_code=status,
            )
            raise TransientRemoteError(
                f"Graph request failed with status {status}: {method} {endpoint}",
                status_code=status,
                endpoint=endpoint,
            )

        return DriveItem.model_validate(response.json())

    async def get_item(self, drive_id: str, item_id: str) -> DriveItem:
        """Fetch drive item metadata by item id."""
        return await self._request("GET", f"/drives/{drive_id}/items/{item_id}")

    async def get_item_by_path(self, drive_id: str, path: str) -> DriveItem:
        """Fetch drive item metadata by slash-delimited path.

        An empty path (after sanitizing) resolves to the drive root.
        """
        clean = sanitize_path(path)
        if not clean:
            return await self._request("GET", f"/drives/{drive_id}/root")
        return await self._request("GET", f"/drives/{drive_id}/root:/{encode_path(clean)}")

    async def create_folder(self, drive_id: str, parent_path: str, name: str) -> DriveItem:
        """Create a child folder, failing with RemoteConflictError if the name exists.

        Args:
            drive_id: Target drive.
            parent_path: Path of the parent folder; empty for the drive root.
            name: Name of the folder to create.
        """
        clean_parent = sanitize_path(parent_path)
        if clean_parent:
            endpoint = f"/drives/{drive_id}/root:/{encode_path(clean_parent)}:/children"
        else:
            endpoint = f"/drives/{drive_id}/root/children"

        body = {"name": name, "folder": {}, CONFLICT_BEHAVIOR_KEY: "fail"}
        item = await self._request("POST", endpoint, json=body)
        logger.info(
            "graph.folder_created",
            drive_id=drive_id,
            parent_path=clean_parent,
            name=name,
            item_id=item.id,
        )
        return item
