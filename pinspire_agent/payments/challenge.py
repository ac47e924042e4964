"""
x402 challenge parsing
Turns a raw 402 response body into validated payment terms.
"""

import json
from typing import Any, Union

import structlog
from pydantic import ValidationError

from pinspire_agent.payments.errors import MalformedChallengeError
from pinspire_agent.payments.models import PaymentChallenge, PaymentOption

logger = structlog.get_logger()

RawChallenge = Union[PaymentChallenge, dict, str, bytes]


def parse_challenge(raw: RawChallenge) -> PaymentChallenge:
    """
    Parse and validate a 402 challenge body.

    Args:
        raw: Decoded JSON dict, JSON text/bytes, or an already parsed challenge

    Returns:
        Immutable PaymentChallenge with at least one option

    Raises:
        MalformedChallengeError: If the version, options or any option's
            payee, amount, asset or scheme is missing or invalid
    """
    if isinstance(raw, PaymentChallenge):
        challenge = raw
    else:
        body = _load_body(raw)
        try:
            challenge = PaymentChallenge.model_validate(body)
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise MalformedChallengeError(
                f"Invalid payment challenge: {', '.join(fields)}",
                {"fields": fields},
            ) from e

    if not challenge.accepts:
        raise MalformedChallengeError("No payment option in x402 challenge")

    logger.debug(
        "challenge_parsed",
        x402_version=challenge.x402_version,
        options=len(challenge.accepts),
    )
    return challenge


def select_option(challenge: PaymentChallenge) -> PaymentOption:
    """Pick the payment option to pay with: always the first one listed"""
    if not challenge.accepts:
        raise MalformedChallengeError("No payment option in x402 challenge")
    return challenge.accepts[0]


def _load_body(raw: Any) -> dict:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedChallengeError(f"Challenge body is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise MalformedChallengeError("Challenge body must be a JSON object")
    return raw
