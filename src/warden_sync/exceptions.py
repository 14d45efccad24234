"""
Exception hierarchy for the PathCompanion synchronization engine.

Every failure raised by the sync core is a ``SyncError`` carrying an
``ErrorKind`` so the routing layer can map it to a transport status without
parsing messages. Nothing here is fatal to the process: each error is scoped
to a single request or a single batch item.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .importers.base import ImportConflict


class ErrorKind(str, Enum):
    """Typed error kinds surfaced to callers."""
    ACCOUNT_NOT_LINKED = "AccountNotLinked"
    CREDENTIAL_RE_ENTRY_REQUIRED = "CredentialReEntryRequired"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    MALFORMED_ENCODING = "MalformedEncoding"
    UNDECODABLE_RECORD = "UndecodableRecord"
    RECORD_NOT_FOUND = "RecordNotFound"
    NAME_CONFLICT = "NameConflict"
    EXTERNAL_SERVICE_UNAVAILABLE = "ExternalServiceUnavailable"
    PERSISTENCE_FAILURE = "PersistenceFailure"


class SyncError(Exception):
    """Base exception for all sync errors.

    Attributes:
        kind: The typed error kind
        message: Human-readable error message
        details: Optional dictionary of additional error context
    """

    kind: ErrorKind = ErrorKind.PERSISTENCE_FAILURE

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize the error.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the routing layer."""
        return {
            "error": self.message,
            "kind": self.kind.value,
            "details": self.details,
        }


class AccountNotLinkedError(SyncError):
    """The user has never connected (or has disconnected) the external account."""
    kind = ErrorKind.ACCOUNT_NOT_LINKED


class CredentialReEntryRequiredError(SyncError):
    """The stored credential can no longer be decrypted.

    Usually means the server-held encryption key changed since the
    credential was stored. The user must reconnect the account; retrying
    will not help.
    """
    kind = ErrorKind.CREDENTIAL_RE_ENTRY_REQUIRED


class AuthenticationFailedError(SyncError):
    """The external vault rejected the credentials or the session ticket."""
    kind = ErrorKind.AUTHENTICATION_FAILED


class MalformedEncodingError(SyncError):
    """A record value is not valid base64."""
    kind = ErrorKind.MALFORMED_ENCODING


class UndecodableRecordError(SyncError):
    """None of the decode strategies produced a JSON document.

    ``details["attempts"]`` lists every strategy tried with its failure.
    """
    kind = ErrorKind.UNDECODABLE_RECORD


class RecordNotFoundError(SyncError):
    """An external key or a local character does not exist."""
    kind = ErrorKind.RECORD_NOT_FOUND


class NameConflictError(SyncError):
    """An import would duplicate an unlinked local character by name.

    The caller must resubmit with a merge target or accept a new record.
    """
    kind = ErrorKind.NAME_CONFLICT

    def __init__(self, conflict: "ImportConflict"):
        super().__init__(conflict.message, {"conflict": conflict.model_dump()})
        self.conflict = conflict


class ExternalServiceUnavailableError(SyncError):
    """Network failure, timeout or server error talking to the external vault."""
    kind = ErrorKind.EXTERNAL_SERVICE_UNAVAILABLE


class PersistenceFailureError(SyncError):
    """A write failed, was refused by the vault, or would break a store invariant."""
    kind = ErrorKind.PERSISTENCE_FAILURE
