"""
Purchase Orchestrator for the Pinspire Agent
Drives one purchase through the x402 negotiation:
INITIATED -> CHALLENGE_RECEIVED -> PROOF_SUBMITTED -> COMPLETED/FAILED
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional, Set, Union

import httpx
import structlog
from pydantic import ValidationError

from pinspire_agent.marketplace.client import MarketplaceClient
from pinspire_agent.marketplace.models import PurchaseResult
from pinspire_agent.models import PurchaseAttempt, PurchaseState
from pinspire_agent.payments.challenge import parse_challenge
from pinspire_agent.payments.errors import (
    MalformedChallengeError,
    ProtocolViolationError,
    PurchaseError,
    PurchaseInProgressError,
    SettlementRejectedError,
)
from pinspire_agent.payments.processor import PaymentHandler
from pinspire_agent.payments.transaction import Signer
from pinspire_agent.purchase.events import PurchaseEvent, PurchaseEventStream

logger = structlog.get_logger()


class PurchaseOrchestrator:
    """
    Runs purchase attempts and owns their state.

    No state is retried automatically. Taxonomy errors end the attempt in
    FAILED and are recorded on it; any other exception also moves the attempt
    to FAILED, is kept on `attempt.exception` and is re-raised. Attempts are
    handed back to the caller and not retained once terminal.
    """

    def __init__(
        self,
        marketplace: MarketplaceClient,
        payment_handler: PaymentHandler,
        signer: Signer,
        events: Optional[PurchaseEventStream] = None,
    ):
        self.marketplace = marketplace
        self.payment_handler = payment_handler
        self.signer = signer
        self.events = events or PurchaseEventStream()
        self._in_flight: Set[str] = set()
        self._state_lock = asyncio.Lock()

    async def purchase(self, resource_id: Union[int, str]) -> PurchaseAttempt:
        """
        Buy a resource, paying through x402 if the server asks for it.

        Returns:
            The attempt in COMPLETED or FAILED state

        Raises:
            PurchaseInProgressError: An attempt for the same resource is in flight
        """
        key = str(resource_id)
        async with self._state_lock:
            if key in self._in_flight:
                raise PurchaseInProgressError(
                    f"Purchase of {key} is already in progress",
                    {"resource_id": key},
                )
            self._in_flight.add(key)

        attempt = PurchaseAttempt(resource_id=key)

        try:
            await self._transition_state(attempt, PurchaseState.INITIATED)
            await self._run(attempt)
            return attempt

        except asyncio.CancelledError as e:
            await self._abort(attempt, e)
            raise

        except Exception as e:
            logger.error("purchase_unexpected_error", attempt_id=attempt.attempt_id, resource_id=key, error=str(e))
            await self._abort(attempt, e)
            raise

        finally:
            async with self._state_lock:
                self._in_flight.discard(key)

    async def _run(self, attempt: PurchaseAttempt):
        key = attempt.resource_id

        # 1. INITIATED: plain buy request
        try:
            response = await self.marketplace.initiate_purchase(key)
        except httpx.HTTPError as e:
            await self._fail(attempt, ProtocolViolationError(f"Buy request failed: {e}"))
            return

        if response.status_code == 200:
            attempt.settlement = self._parse_result(response.body)
            await self._complete(attempt)
            return

        if response.status_code != 402:
            await self._fail(
                attempt,
                ProtocolViolationError(
                    f"Unexpected status {response.status_code} to buy request",
                    {"status_code": response.status_code, "body": response.body},
                ),
            )
            return

        # 2. CHALLENGE_RECEIVED
        try:
            challenge = parse_challenge(response.body)
        except MalformedChallengeError as e:
            await self._fail(attempt, e)
            return

        attempt.challenge = challenge
        attempt.challenge_received_at = datetime.now(timezone.utc)
        option = challenge.accepts[0]
        await self._transition_state(
            attempt,
            PurchaseState.CHALLENGE_RECEIVED,
            scheme=option.scheme,
            network=option.network,
            amount=option.amount,
            asset=option.asset,
        )

        try:
            proof = await self.payment_handler.create_payment(self.signer, challenge)
        except PurchaseError as e:
            await self._fail(attempt, e)
            return

        # 3. PROOF_SUBMITTED
        attempt.proof = proof
        await self._transition_state(attempt, PurchaseState.PROOF_SUBMITTED, correlation_id=proof.correlation_id)

        try:
            response = await self.marketplace.complete_purchase(key, proof.header)
        except httpx.HTTPError as e:
            await self._fail(attempt, ProtocolViolationError(f"Payment submission failed: {e}"))
            return

        if not response.is_success:
            await self._fail(attempt, SettlementRejectedError(response.status_code, response.body))
            return

        # 4. COMPLETED
        attempt.settlement = self._parse_result(response.body)
        await self._complete(attempt)

    def _parse_result(self, body: Any) -> Optional[PurchaseResult]:
        if not isinstance(body, dict):
            return None
        try:
            return PurchaseResult.model_validate(body)
        except ValidationError as e:
            logger.warning("purchase_result_unparsed", error=str(e))
            return None

    async def _complete(self, attempt: PurchaseAttempt):
        attempt.completed_at = datetime.now(timezone.utc)
        await self._transition_state(
            attempt,
            PurchaseState.COMPLETED,
            paid=attempt.proof is not None,
            transaction_hash=attempt.transaction_hash,
        )

    async def _fail(self, attempt: PurchaseAttempt, error: PurchaseError):
        attempt.error = error
        attempt.completed_at = datetime.now(timezone.utc)
        await self._transition_state(
            attempt,
            PurchaseState.FAILED,
            error_kind=error.kind.value,
            error=error.message,
        )

    async def _abort(self, attempt: PurchaseAttempt, exc: BaseException):
        attempt.exception = exc
        if attempt.state.is_terminal:
            return
        attempt.completed_at = datetime.now(timezone.utc)
        await self._transition_state(
            attempt,
            PurchaseState.FAILED,
            error=str(exc) or type(exc).__name__,
            exception=type(exc).__name__,
        )

    async def _transition_state(self, attempt: PurchaseAttempt, new_state: PurchaseState, **detail):
        """Record, log and publish a state transition"""
        old_state = None if not attempt.events else attempt.state
        attempt.state = new_state

        event = PurchaseEvent(
            attempt_id=attempt.attempt_id,
            resource_id=attempt.resource_id,
            from_state=old_state,
            to_state=new_state,
            detail=detail,
        )
        attempt.events.append(event)

        logger.info(
            "purchase_state_transition",
            attempt_id=attempt.attempt_id,
            resource_id=attempt.resource_id,
            from_state=old_state.value if old_state else None,
            to_state=new_state.value,
            **detail,
        )
        await self.events.emit(event)

    def is_in_flight(self, resource_id: Union[int, str]) -> bool:
        return str(resource_id) in self._in_flight
