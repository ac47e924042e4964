"""
Purchase error taxonomy
Every failure is terminal for the attempt that raised it; nothing here is retried.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Machine-readable failure categories"""
    MALFORMED_CHALLENGE = "malformed_challenge"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    TRANSACTION_BUILD_FAILURE = "transaction_build_failure"
    SETTLEMENT_REJECTED = "settlement_rejected"
    PROTOCOL_VIOLATION = "protocol_violation"
    PURCHASE_IN_PROGRESS = "purchase_in_progress"


class PurchaseError(Exception):
    """Base class for purchase and payment errors."""

    kind: ErrorKind

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "details": self.details}


class MalformedChallengeError(PurchaseError):
    """Raised when a 402 body is missing required payment terms."""

    kind = ErrorKind.MALFORMED_CHALLENGE


class InsufficientFundsError(PurchaseError):
    """Raised when the payer's asset balance is below the required amount."""

    kind = ErrorKind.INSUFFICIENT_FUNDS

    def __init__(self, required: int, available: int, asset: str):
        super().__init__(
            f"Insufficient balance of {asset}: have {available}, need {required}",
            {"required": required, "available": available, "asset": asset},
        )
        self.required = required
        self.available = available
        self.asset = asset


class TransactionBuildError(PurchaseError):
    """Raised when addresses, anchor or asset metadata cannot be resolved."""

    kind = ErrorKind.TRANSACTION_BUILD_FAILURE


class SettlementRejectedError(PurchaseError):
    """Raised when the server rejects a request carrying a payment proof."""

    kind = ErrorKind.SETTLEMENT_REJECTED

    def __init__(self, status_code: int, body: Any = None):
        super().__init__(
            f"Purchase rejected with status {status_code}",
            {"status_code": status_code, "body": body},
        )
        self.status_code = status_code
        self.body = body


class ProtocolViolationError(PurchaseError):
    """Raised on an unexpected status or transport failure at any stage."""

    kind = ErrorKind.PROTOCOL_VIOLATION


class PurchaseInProgressError(PurchaseError):
    """Raised when an attempt for the same resource is already in flight."""

    kind = ErrorKind.PURCHASE_IN_PROGRESS
