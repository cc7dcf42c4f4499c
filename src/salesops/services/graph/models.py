"""Pydantic schemas for Microsoft Graph drive items and access tokens."""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field


class DriveItem(BaseModel):
    """Subset of Graph driveItem metadata the provisioner depends on."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = ""
    web_url: str | None = Field(default=None, alias="webUrl")


class FolderRef(BaseModel):
    """Resolved reference to a remote folder: drive, item id and canonical URL."""

    drive_id: str
    item_id: str
    name: str = ""
    web_url: str | None = None

    @classmethod
    def from_item(cls, drive_id: str, item: DriveItem) -> FolderRef:
        return cls(
            drive_id=drive_id,
            item_id=item.id,
            name=item.name,
            web_url=item.web_url,
        )


class AccessToken(BaseModel):
    """Bearer token with an absolute monotonic expiry."""

    value: str
    expires_at: float

    def is_expired(self, skew_seconds: float = 0.0) -> bool:
        return time.monotonic() >= self.expires_at - skew_seconds
