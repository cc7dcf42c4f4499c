"""Microsoft Graph integration for drive folders.

Provides the token manager and the async drive-item client used by
folder provisioning.
"""

from src.salesops.services.graph.auth import GraphAuthManager
from src.salesops.services.graph.client import GraphDriveClient
from src.salesops.services.graph.models import AccessToken, DriveItem, FolderRef

__all__ = [
    "AccessToken",
    "DriveItem",
    "FolderRef",
    "GraphAuthManager",
    "GraphDriveClient",
]
