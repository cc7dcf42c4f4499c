"""Idempotent folder provisioning on top of the remote drive client.

Exports:
    FolderProvisioner: Ensures folder paths exist and resolves their URLs.
    DEAL_SUBFOLDERS: The fixed labelled sub-folder tree of a deal.
"""

from src.salesops.folders.layout import DEAL_SUBFOLDERS, DriveArea, SubfolderDef
from src.salesops.folders.provisioner import FolderProvisioner

__all__ = [
    "DEAL_SUBFOLDERS",
    "DriveArea",
    "FolderProvisioner",
    "SubfolderDef",
]
