"""
x402 payment models for the Pinspire buyer agent
Wire names are camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from pinspire_agent.payments.transaction import PartiallySignedTransaction

# Placeholder correlation value until a facilitator settles the transaction
PENDING_SETTLEMENT = "pending-settlement"


class PaymentExtra(BaseModel):
    """Scheme-specific extras attached to a payment option"""
    fee_payer: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )


class PaymentOption(BaseModel):
    """Single accepted payment option from a 402 challenge"""
    scheme: str = Field(min_length=1)
    network: str = ""
    max_amount_required: str = Field(description="Amount in the asset's smallest unit")
    resource: str = ""
    description: str = ""
    mime_type: str = ""
    pay_to: str = Field(min_length=1, description="Payee wallet address")
    max_timeout_seconds: int = Field(default=0, ge=0)
    asset: str = Field(min_length=1, description="Token mint address")
    extra: Optional[PaymentExtra] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    @field_validator("max_amount_required", mode="before")
    @classmethod
    def validate_amount(cls, v):
        if isinstance(v, bool):
            raise ValueError("amount must be a non-negative integer")
        if isinstance(v, int):
            v = str(v)
        if not isinstance(v, str) or not (v.isascii() and v.isdigit()):
            raise ValueError("amount must be a non-negative integer encoded as a string")
        return v

    @property
    def amount(self) -> int:
        return int(self.max_amount_required)

    @property
    def fee_payer(self) -> Optional[str]:
        return self.extra.fee_payer if self.extra else None


class PaymentChallenge(BaseModel):
    """x402 Payment Required response body (HTTP 402)"""
    x402_version: int
    error: str = ""
    accepts: List[PaymentOption]

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class TransactionPayload(BaseModel):
    """Scheme payload carrying the base64 serialized transaction"""
    transaction: str


class PaymentEnvelope(BaseModel):
    """Payment envelope sent, base64 encoded, in the X-PAYMENT header"""
    x402_version: int
    scheme: str
    network: str
    payload: TransactionPayload

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


@dataclass(frozen=True)
class PaymentProof:
    """
    Transport-ready payment proof.

    correlation_id stays PENDING_SETTLEMENT: the facilitator finalizes the
    transaction and its ledger signature is never reported back to the payer.
    """
    header: str
    envelope: PaymentEnvelope
    transaction: "PartiallySignedTransaction"
    correlation_id: str = PENDING_SETTLEMENT

    @property
    def is_settled(self) -> bool:
        return self.correlation_id != PENDING_SETTLEMENT
