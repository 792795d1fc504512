"""Custom exception classes for the ingestion and budgeting pipeline.

This module defines a hierarchy of exceptions used throughout sync,
categorization and budgeting. Each exception maps to a specific
error code defined in errors.py.

Propagation policy:
- Per-record and per-rule errors (FormatError, RuleEvaluationError) are
  caught close to where they happen and downgraded to skip/flag.
- Per-connection errors (ScraperError, PersistenceError, AuthenticationError)
  are caught by the sync orchestrator and recorded in the aggregate result.
- ConfigurationError is fatal and aborts a sync cycle before any work.
"""

from typing import Any


class BankSyncError(Exception):
    """Base exception for all pipeline errors.

    All custom exceptions inherit from this base class and include
    an error_code that maps to the error catalog.

    Attributes:
        error_code: Code from the error catalog (e.g., "VAULT_001")
        details: Additional context about the error (for logging)
        http_status: HTTP status code to return (default: 500)
    """

    default_code = "SYS_001"
    default_status = 500

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        http_status: int | None = None,
    ):
        """Initialize the exception.

        Args:
            message: Human-readable message (defaults to the error code)
            error_code: Error code from errors.py
            details: Additional error context (not shown to users)
            http_status: HTTP status code
        """
        self.error_code = error_code or self.default_code
        self.details = details or {}
        self.http_status = http_status or self.default_status
        self.message = message or self.error_code
        super().__init__(self.message)


class ConfigurationError(BankSyncError):
    """Raised when required configuration is missing (e.g. the master secret).

    Fatal: a sync cycle that hits this aborts before any connection runs.
    """

    default_code = "CFG_001"
    default_status = 500


class FormatError(BankSyncError):
    """Raised for malformed ciphertext or malformed external input.

    Local to one blob or record; never aborts a batch.
    """

    default_code = "VAULT_001"
    default_status = 400


class AuthenticationError(BankSyncError):
    """Raised when an authenticated-encryption tag check fails.

    Treated as corruption/tampering of a single blob, or a wrong key.
    """

    default_code = "VAULT_002"
    default_status = 400


class ScraperError(BankSyncError):
    """Raised when the external scraper collaborator fails for a connection."""

    default_code = "SCRAPE_001"
    default_status = 502

    def __init__(self, message: str | None = None, *, error_type: str | None = None, **kwargs):
        self.error_type = error_type
        super().__init__(message, **kwargs)

    @property
    def requires_reauthentication(self) -> bool:
        """Whether the provider rejected the stored login/token."""
        if self.error_type == "AUTH_REQUIRED":
            return True
        text = self.message.lower()
        return any(hint in text for hint in ("re-authenticate", "expired", "idtoken"))


class PersistenceError(BankSyncError):
    """Raised when a record store write fails.

    Already-committed records of the same connection are kept; inserts are
    idempotent per external id.
    """

    default_code = "DB_001"
    default_status = 500


class RuleEvaluationError(BankSyncError):
    """Raised when a rule cannot be evaluated (e.g. invalid regex pattern)."""

    default_code = "RULE_001"
    default_status = 400


class ValidationError(BankSyncError):
    """Raised when input data fails validation.

    This includes:
    - Malformed budget months
    - Category tree violations
    - Unknown enum values
    """

    default_code = "VAL_001"
    default_status = 400


class NotFoundError(BankSyncError):
    """Raised when a resource does not exist within the caller's household."""

    default_code = "API_001"
    default_status = 404


class SyncInProgressError(BankSyncError):
    """Raised when a connection already has a sync in flight."""

    default_code = "SYNC_001"
    default_status = 409
