"""Error codes and user-friendly messages.

This module defines the error catalog for sync, categorization and budgets.
Each error has:
- code: Unique identifier
- message: Technical description (for logs)
- user_message: User-friendly explanation
- suggestion: Actionable guidance for the user
- retry_allowed: Whether the error is retryable
"""

ERROR_CATALOG: dict[str, dict] = {
    "CFG_001": {
        "code": "CFG_001",
        "message": "Credential master secret is not configured",
        "user_message": "Bank sync is not available because the server is misconfigured.",
        "suggestion": "Please contact support. No connections were synced.",
        "retry_allowed": False,
    },
    "VAULT_001": {
        "code": "VAULT_001",
        "message": "Malformed encrypted credential blob",
        "user_message": "The stored bank credentials could not be read.",
        "suggestion": "Please re-enter the credentials for this connection.",
        "retry_allowed": False,
    },
    "VAULT_002": {
        "code": "VAULT_002",
        "message": "Encrypted credential authentication failed (tampered or wrong key)",
        "user_message": "The stored bank credentials appear to be corrupted.",
        "suggestion": "Please re-enter the credentials for this connection.",
        "retry_allowed": False,
    },
    "SCRAPE_001": {
        "code": "SCRAPE_001",
        "message": "Bank scraper failed",
        "user_message": "We couldn't fetch transactions from your bank.",
        "suggestion": "Please try again later. Your bank's website may be unavailable.",
        "retry_allowed": True,
    },
    "SCRAPE_002": {
        "code": "SCRAPE_002",
        "message": "Unsupported bank provider",
        "user_message": "This bank is not supported yet.",
        "suggestion": "Please choose one of the supported banks.",
        "retry_allowed": False,
    },
    "SCRAPE_003": {
        "code": "SCRAPE_003",
        "message": "Bank session expired, re-authentication required",
        "user_message": "Your bank asked us to log in again.",
        "suggestion": "Please reconnect this bank account.",
        "retry_allowed": False,
    },
    "DB_001": {
        "code": "DB_001",
        "message": "Database transaction failed during transaction persistence",
        "user_message": "We couldn't save your transactions due to a database error.",
        "suggestion": "Please try again in a few moments.",
        "retry_allowed": True,
    },
    "DB_002": {
        "code": "DB_002",
        "message": "Resource already exists",
        "user_message": "This record already exists",
        "suggestion": "Please check if the record was already created",
        "retry_allowed": False,
    },
    "RULE_001": {
        "code": "RULE_001",
        "message": "Invalid rule pattern",
        "user_message": "This rule's pattern is not a valid regular expression.",
        "suggestion": "Fix the pattern or change the rule type to keyword.",
        "retry_allowed": False,
    },
    "VAL_001": {
        "code": "VAL_001",
        "message": "Input data failed validation",
        "user_message": "Invalid input data",
        "suggestion": "Please check your input and try again",
        "retry_allowed": True,
    },
    "SYNC_001": {
        "code": "SYNC_001",
        "message": "Sync already in progress for this connection",
        "user_message": "This bank connection is already syncing.",
        "suggestion": "Wait for the current sync to finish.",
        "retry_allowed": True,
    },
    # API-specific errors
    "API_001": {
        "code": "API_001",
        "message": "Resource not found",
        "user_message": "We couldn't find this item.",
        "suggestion": "Please refresh and try again.",
        "retry_allowed": False,
    },
    "API_002": {
        "code": "API_002",
        "message": "Missing or invalid household scope",
        "user_message": "We couldn't determine your household.",
        "suggestion": "Please sign in again.",
        "retry_allowed": False,
    },
    "SYS_001": {
        "code": "SYS_001",
        "message": "Internal server error",
        "user_message": "An unexpected error occurred",
        "suggestion": "Please try again later or contact support",
        "retry_allowed": True,
    },
}


def get_error(error_code: str) -> dict:
    """Get error definition by code.

    Args:
        error_code: Error code from the catalog

    Returns:
        Dict with error details (a generic entry for unknown codes)
    """
    if error_code not in ERROR_CATALOG:
        return {
            "code": "UNKNOWN",
            "message": f"Unknown error code: {error_code}",
            "user_message": "An unexpected error occurred.",
            "suggestion": "Please try again. Contact support if the problem persists.",
            "retry_allowed": True,
        }
    return ERROR_CATALOG[error_code]


def get_user_message(error_code: str) -> str:
    """Get user-friendly message for an error code."""
    return get_error(error_code)["user_message"]


def is_retryable(error_code: str) -> bool:
    """Check if an error is retryable."""
    return get_error(error_code)["retry_allowed"]
