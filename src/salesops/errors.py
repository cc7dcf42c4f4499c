"""Typed failures shared by folder provisioning and the deal lifecycle.

Every failure carries an ErrorKind so callers branch on the kind instead of
matching messages or HTTP status codes. NOT_FOUND and CONFLICT are control
flow inside the folder walk; all other kinds reach the calling workflow.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the core."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TRANSIENT_REMOTE_FAILURE = "transient_remote_failure"
    REMOTE_AUTH_FAILURE = "remote_auth_failure"
    UNRESOLVABLE_REFERENCE = "unresolvable_reference"
    INVALID_TRANSITION = "invalid_transition"
    NOT_FOUND_ENTITY = "not_found_entity"
    DUPLICATE_IDENTITY = "duplicate_identity"
    INCOMPLETE_CONFIGURATION = "incomplete_configuration"


class SalesOpsError(Exception):
    """Base class for all typed failures."""

    kind: ErrorKind = ErrorKind.TRANSIENT_REMOTE_FAILURE

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


# ── Remote storage ──────────────────────────────────────────────────────────


class RemoteStorageError(SalesOpsError):
    """A remote drive API call failed.

    Args:
        message: Human-readable description.
        status_code: HTTP status returned by the API, None for transport
            failures (timeouts, refused connections).
    """

    kind = ErrorKind.TRANSIENT_REMOTE_FAILURE

    def __init__(
        self, message: str, status_code: int | None = None, **context: Any
    ) -> None:
        super().__init__(message, **context)
        self.status_code = status_code


class RemoteNotFoundError(RemoteStorageError):
    """The requested drive item does not exist (404)."""

    kind = ErrorKind.NOT_FOUND


class RemoteConflictError(RemoteStorageError):
    """A folder with the requested name already exists (409)."""

    kind = ErrorKind.CONFLICT


class TransientRemoteError(RemoteStorageError):
    """Any other remote failure, including timeouts."""

    kind = ErrorKind.TRANSIENT_REMOTE_FAILURE


class RemoteAuthError(RemoteStorageError):
    """An access token for the remote API could not be acquired."""

    kind = ErrorKind.REMOTE_AUTH_FAILURE


class UnresolvableReferenceError(SalesOpsError):
    """The folder exists but no canonical URL could be obtained for it."""

    kind = ErrorKind.UNRESOLVABLE_REFERENCE


# ── Deal lifecycle / persistence ────────────────────────────────────────────


class InvalidTransitionError(SalesOpsError, ValueError):
    """A lifecycle guard rejected the requested mutation."""

    kind = ErrorKind.INVALID_TRANSITION


class EntityNotFoundError(SalesOpsError, LookupError):
    """A referenced company, customer or deal does not exist."""

    kind = ErrorKind.NOT_FOUND_ENTITY


class DuplicateIdentityError(SalesOpsError):
    """A human-facing identifier (company code) is already taken."""

    kind = ErrorKind.DUPLICATE_IDENTITY


class IncompleteConfigurationError(SalesOpsError):
    """A company lacks the drive ids or base folder name needed for provisioning."""

    kind = ErrorKind.INCOMPLETE_CONFIGURATION
