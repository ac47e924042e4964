"""
Base64 codecs for x402 headers
"""

import base64
from typing import Union

from pinspire_agent.payments.models import PaymentEnvelope


def safe_base64_encode(data: Union[str, bytes]) -> str:
    """Encode string or bytes to a base64 string"""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("utf-8")


def safe_base64_decode(data: str) -> str:
    """Decode a base64 string to utf-8 text"""
    return base64.b64decode(data, validate=True).decode("utf-8")


def encode_payment_header(envelope: PaymentEnvelope) -> str:
    """Encode a PaymentEnvelope as base64 of its compact camelCase JSON"""
    return safe_base64_encode(envelope.model_dump_json(by_alias=True))


def decode_payment_header(header: str) -> PaymentEnvelope:
    """Decode an X-PAYMENT header back into a PaymentEnvelope"""
    return PaymentEnvelope.model_validate_json(safe_base64_decode(header))
