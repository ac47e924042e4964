"""
Pinspire Agent Payment Module
x402 "exact" scheme payments with SPL tokens on Solana
"""

from pinspire_agent.payments.models import (
    PaymentChallenge,
    PaymentOption,
    PaymentEnvelope,
    PaymentProof,
    PENDING_SETTLEMENT,
)
from pinspire_agent.payments.errors import (
    ErrorKind,
    PurchaseError,
    MalformedChallengeError,
    InsufficientFundsError,
    TransactionBuildError,
    SettlementRejectedError,
    ProtocolViolationError,
    PurchaseInProgressError,
)
from pinspire_agent.payments.challenge import parse_challenge, select_option
from pinspire_agent.payments.encoding import encode_payment_header, decode_payment_header
from pinspire_agent.payments.ledger import LedgerClient, SolanaLedger
from pinspire_agent.payments.transaction import (
    SolanaTransactionBuilder,
    TransactionBuilder,
    UnsignedTransaction,
    PartiallySignedTransaction,
    FullySignedTransaction,
)
from pinspire_agent.payments.processor import PaymentHandler

__all__ = [
    "PaymentChallenge",
    "PaymentOption",
    "PaymentEnvelope",
    "PaymentProof",
    "PENDING_SETTLEMENT",
    "ErrorKind",
    "PurchaseError",
    "MalformedChallengeError",
    "InsufficientFundsError",
    "TransactionBuildError",
    "SettlementRejectedError",
    "ProtocolViolationError",
    "PurchaseInProgressError",
    "parse_challenge",
    "select_option",
    "encode_payment_header",
    "decode_payment_header",
    "LedgerClient",
    "SolanaLedger",
    "SolanaTransactionBuilder",
    "TransactionBuilder",
    "UnsignedTransaction",
    "PartiallySignedTransaction",
    "FullySignedTransaction",
    "PaymentHandler",
]
