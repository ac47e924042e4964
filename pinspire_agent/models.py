"""
Pinspire Agent Core Data Models
Purchase lifecycle state shared by the orchestrator, the buyer agent and the CLI
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from pinspire_agent.marketplace.models import PurchaseResult
from pinspire_agent.payments.errors import PurchaseError
from pinspire_agent.payments.models import PaymentChallenge, PaymentProof

if TYPE_CHECKING:
    from pinspire_agent.purchase.events import PurchaseEvent


class PurchaseState(str, Enum):
    """Purchase attempt lifecycle states"""
    INITIATED = "initiated"                    # Buy request about to be sent
    CHALLENGE_RECEIVED = "challenge_received"  # Valid 402 challenge parsed
    PROOF_SUBMITTED = "proof_submitted"        # Request resent with X-PAYMENT
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PurchaseState.COMPLETED, PurchaseState.FAILED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PurchaseAttempt:
    """One purchase request; never reused across requests"""
    resource_id: str
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: PurchaseState = PurchaseState.INITIATED
    challenge: Optional[PaymentChallenge] = None
    proof: Optional[PaymentProof] = None
    error: Optional[PurchaseError] = None
    exception: Optional[BaseException] = None  # cause of an abort outside the taxonomy
    settlement: Optional[PurchaseResult] = None
    created_at: datetime = field(default_factory=_utcnow)
    challenge_received_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    events: List["PurchaseEvent"] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == PurchaseState.COMPLETED

    @property
    def deadline(self) -> Optional[datetime]:
        """Challenge receipt + maxTimeoutSeconds of the selected option"""
        if not self.challenge or not self.challenge.accepts or not self.challenge_received_at:
            return None
        timeout = self.challenge.accepts[0].max_timeout_seconds
        if not timeout:
            return None
        return self.challenge_received_at + timedelta(seconds=timeout)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Advisory only: nothing cancels an attempt past its deadline"""
        deadline = self.deadline
        if deadline is None or self.state.is_terminal:
            return False
        return (now or _utcnow()) > deadline

    @property
    def transaction_hash(self) -> Optional[str]:
        """Settlement hash as reported by the server, if any"""
        return self.settlement.transaction_hash if self.settlement else None
