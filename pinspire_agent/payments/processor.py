"""
Payment handler for the x402 protocol
Turns a payment challenge into a transport-ready, partially signed proof.
"""

from typing import Union

import structlog
from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException
from solders.hash import ParseHashError

from pinspire_agent.payments.challenge import RawChallenge, parse_challenge, select_option
from pinspire_agent.payments.encoding import encode_payment_header
from pinspire_agent.payments.errors import InsufficientFundsError, TransactionBuildError
from pinspire_agent.payments.ledger import LedgerClient
from pinspire_agent.payments.models import (
    PaymentChallenge,
    PaymentEnvelope,
    PaymentProof,
    TransactionPayload,
)
from pinspire_agent.payments.transaction import (
    Signer,
    SolanaTransactionBuilder,
    TransactionBuilder,
)

logger = structlog.get_logger()


class PaymentHandler:
    """
    Handles the buyer side of the x402 "exact" flow:
    parse -> balance check -> build -> partially sign -> encode

    Each step is a hard precondition of the next. Nothing is written to the
    ledger; the only side effects are ledger reads.
    """

    def __init__(self, ledger: LedgerClient, builder: TransactionBuilder = None):
        self.ledger = ledger
        self.builder = builder or SolanaTransactionBuilder()

    async def create_payment(
        self,
        signer: Signer,
        challenge: Union[PaymentChallenge, RawChallenge],
    ) -> PaymentProof:
        """
        Create a payment proof for the first option of a challenge.

        Args:
            signer: Payer's signing capability
            challenge: Parsed challenge or raw 402 body

        Returns:
            PaymentProof whose header goes in X-PAYMENT

        Raises:
            MalformedChallengeError: Challenge is missing required fields
            InsufficientFundsError: Payer balance is below the required amount
            TransactionBuildError: Anchor, decimals or accounts could not be resolved
        """
        challenge = parse_challenge(challenge)
        option = select_option(challenge)
        payer = signer.address

        available = await self.ledger.get_token_balance(payer, option.asset)
        if available < option.amount:
            logger.warning(
                "payment_insufficient_funds",
                payer=payer,
                asset=option.asset,
                required=option.amount,
                available=available,
            )
            raise InsufficientFundsError(
                required=option.amount,
                available=available,
                asset=option.asset,
            )

        fee_payer = option.fee_payer or payer
        try:
            anchor = await self.ledger.get_latest_anchor()
            decimals = await self.ledger.get_asset_decimals(option.asset)
        except (RPCException, SolanaRpcException, ValueError) as e:
            raise TransactionBuildError(f"Could not fetch ledger data: {e}") from e

        unsigned = self.builder.build(
            option,
            payer_address=payer,
            fee_payer_address=fee_payer,
            anchor=anchor,
            decimals=decimals,
        )

        try:
            signed = self.builder.partially_sign(unsigned, signer)
        except (ValueError, ParseHashError) as e:
            raise TransactionBuildError(f"Could not sign transaction: {e}") from e

        envelope = PaymentEnvelope(
            x402_version=challenge.x402_version,
            scheme=option.scheme,
            network=option.network,
            payload=TransactionPayload(transaction=signed.to_base64()),
        )
        header = encode_payment_header(envelope)

        logger.info(
            "payment_created",
            payer=payer,
            pay_to=option.pay_to,
            amount=option.amount,
            asset=option.asset,
            fee_payer=fee_payer,
            missing_signers=len(signed.missing_signers),
        )
        return PaymentProof(header=header, envelope=envelope, transaction=signed)
