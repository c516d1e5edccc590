"""
Withdrawal Engine - Error Taxonomy.

============================================================
PURPOSE
============================================================
Classification of every withdrawal failure.

ERROR CATEGORIES:
1. Validation Errors - Request rejected before any chain call
2. Funds Errors - Balance too low after reserving gas
3. Verification Errors - Pre/post balance checks failed
4. Authorization Errors - Authorization gate denied
5. Chain Errors - Reverted, unconfirmed, or network failure

No error is retryable. Every failure is terminal for the
request that produced it; a resubmission needs a fresh
nonce and is the caller's decision.

============================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Set


# ============================================================
# ERROR CATEGORIES
# ============================================================

class ErrorCategory(Enum):
    """Error category classification."""

    VALIDATION = "VALIDATION"
    """Request validation failed."""

    FUNDS = "FUNDS"
    """Insufficient funds."""

    VERIFICATION = "VERIFICATION"
    """Balance verification failed."""

    AUTHORIZATION = "AUTHORIZATION"
    """Authorization gate denied the withdrawal."""

    CHAIN = "CHAIN"
    """Chain rejected or did not confirm the transaction."""

    NETWORK = "NETWORK"
    """RPC communication failure."""


class ErrorSeverity(Enum):
    """Error severity levels."""

    WARNING = "WARNING"
    """Expected rejection, informational."""

    ERROR = "ERROR"
    """Standard error, needs attention."""

    CRITICAL = "CRITICAL"
    """Funds may be in an unexpected state."""


# ============================================================
# ERROR CODE REGISTRY
# ============================================================

@dataclass(frozen=True)
class ErrorCodeInfo:
    """Information about an error code."""

    code: str
    """Error code."""

    category: ErrorCategory
    """Error category."""

    severity: ErrorSeverity
    """Error severity."""

    http_status: int
    """HTTP status used at the request boundary."""

    description: str
    """Human-readable description."""


ERROR_CODES: Dict[str, ErrorCodeInfo] = {
    # ========== VALIDATION ERRORS ==========
    "INVALID_DESTINATION": ErrorCodeInfo(
        code="INVALID_DESTINATION",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.WARNING,
        http_status=400,
        description="Invalid or missing main destination wallet address.",
    ),
    "NEGATIVE_AMOUNT": ErrorCodeInfo(
        code="NEGATIVE_AMOUNT",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.WARNING,
        http_status=400,
        description="Withdrawal amount cannot be negative.",
    ),
    "INVALID_AMOUNT": ErrorCodeInfo(
        code="INVALID_AMOUNT",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.WARNING,
        http_status=400,
        description="Withdrawal amount is malformed or not allowed for this strategy.",
    ),
    "INVALID_STRATEGY": ErrorCodeInfo(
        code="INVALID_STRATEGY",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.WARNING,
        http_status=404,
        description="Invalid withdrawal strategy ID.",
    ),
    # ========== FUNDS ERRORS ==========
    "INSUFFICIENT_FUNDS": ErrorCodeInfo(
        code="INSUFFICIENT_FUNDS",
        category=ErrorCategory.FUNDS,
        severity=ErrorSeverity.ERROR,
        http_status=500,
        description="Insufficient treasury balance or amount too low after reserving gas.",
    ),
    # ========== VERIFICATION ERRORS ==========
    "BALANCE_DIVERGENCE": ErrorCodeInfo(
        code="BALANCE_DIVERGENCE",
        category=ErrorCategory.VERIFICATION,
        severity=ErrorSeverity.CRITICAL,
        http_status=500,
        description="Multi-RPC balance check failed (Divergence).",
    ),
    "POST_TRANSFER_VALIDATION_FAILED": ErrorCodeInfo(
        code="POST_TRANSFER_VALIDATION_FAILED",
        category=ErrorCategory.VERIFICATION,
        severity=ErrorSeverity.CRITICAL,
        http_status=500,
        description="Post-TX balance check failed (Balance did not drop).",
    ),
    # ========== AUTHORIZATION ERRORS ==========
    "AUTHORIZATION_DENIED": ErrorCodeInfo(
        code="AUTHORIZATION_DENIED",
        category=ErrorCategory.AUTHORIZATION,
        severity=ErrorSeverity.WARNING,
        http_status=500,
        description="2FA Timeout or Invalid Code.",
    ),
    # ========== CHAIN ERRORS ==========
    "TRANSACTION_REVERTED": ErrorCodeInfo(
        code="TRANSACTION_REVERTED",
        category=ErrorCategory.CHAIN,
        severity=ErrorSeverity.CRITICAL,
        http_status=500,
        description="Transaction failed or was reverted after being mined.",
    ),
    "PENDING_UNCONFIRMED": ErrorCodeInfo(
        code="PENDING_UNCONFIRMED",
        category=ErrorCategory.CHAIN,
        severity=ErrorSeverity.CRITICAL,
        http_status=500,
        description="Transaction submitted but not confirmed within the timeout.",
    ),
    # ========== NETWORK ERRORS ==========
    "NETWORK_FAILURE": ErrorCodeInfo(
        code="NETWORK_FAILURE",
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.ERROR,
        http_status=500,
        description="RPC or provider failure.",
    ),
    "SIGNER_UNAVAILABLE": ErrorCodeInfo(
        code="SIGNER_UNAVAILABLE",
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.CRITICAL,
        http_status=500,
        description="FATAL: Failed to load signer.",
    ),
}


# ============================================================
# HELPERS
# ============================================================

VALIDATION_ERROR_CODES: Set[str] = {
    code for code, info in ERROR_CODES.items()
    if info.category == ErrorCategory.VALIDATION
}

# Codes where a transaction may have reached the chain
ON_CHAIN_ERROR_CODES: Set[str] = {
    "POST_TRANSFER_VALIDATION_FAILED",
    "TRANSACTION_REVERTED",
    "PENDING_UNCONFIRMED",
}


def get_error_info(code: Optional[str]) -> ErrorCodeInfo:
    """Get error info, defaulting to NETWORK_FAILURE for unknown codes."""
    if code is None or code not in ERROR_CODES:
        return ERROR_CODES["NETWORK_FAILURE"]
    return ERROR_CODES[code]


def describe(code: str) -> str:
    """Default message for an error code."""
    return get_error_info(code).description


def http_status_for(code: Optional[str]) -> int:
    """HTTP status for a failed withdrawal."""
    return get_error_info(code).http_status


def is_validation_error(code: Optional[str]) -> bool:
    return code in VALIDATION_ERROR_CODES


def should_alert(code: Optional[str]) -> bool:
    """Whether a failure with this code warrants an operator alert."""
    return get_error_info(code).severity != ErrorSeverity.WARNING
