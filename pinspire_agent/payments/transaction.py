"""
Solana transaction construction for x402 "exact" payments

A payment moves through three types:
    UnsignedTransaction -> PartiallySignedTransaction -> FullySignedTransaction
The payer only ever produces the partially signed form; the fee payer
(facilitator) appends the last signature before broadcasting.
"""

import base64
from dataclasses import dataclass
from enum import Enum
from typing import List, Protocol, Tuple, Union

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.hash import Hash, ParseHashError
from solders.instruction import Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    TransferCheckedParams,
    get_associated_token_address,
    transfer_checked,
)

from pinspire_agent.payments.errors import TransactionBuildError
from pinspire_agent.payments.models import PaymentOption

DEFAULT_COMPUTE_UNIT_PRICE = 1  # micro-lamports
DEFAULT_COMPUTE_UNIT_LIMIT = 100_000

Address = Union[str, Pubkey]


class InstructionKind(str, Enum):
    """Role of each instruction in a payment transaction"""
    PRIORITY_FEE = "priority_fee"
    COMPUTE_LIMIT = "compute_limit"
    TRANSFER = "transfer"


# Fixed by the protocol: facilitators reject any other layout
INSTRUCTION_ORDER = (
    InstructionKind.PRIORITY_FEE,
    InstructionKind.COMPUTE_LIMIT,
    InstructionKind.TRANSFER,
)


class Signer(Protocol):
    """Signing capability; key material never leaves the implementation"""

    @property
    def address(self) -> str:
        ...

    def sign_message(self, message: bytes) -> Signature:
        ...


def _to_pubkey(value: Address) -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    return Pubkey.from_string(value)


def resolve_token_account(owner: Address, asset: Address) -> Pubkey:
    """
    Derive the associated token account holding asset for owner.

    Pure: the same (owner, asset) always yields the same address and no RPC
    call is made.

    Raises:
        ValueError: If either address is not valid base58
    """
    return get_associated_token_address(_to_pubkey(owner), _to_pubkey(asset))


def versioned_message_bytes(message: MessageV0) -> bytes:
    """Bytes a signer signs for a v0 message (version prefix included)"""
    return bytes([0x80]) + bytes(message)


@dataclass(frozen=True)
class UnsignedTransaction:
    """Ordered, unsigned payment transaction skeleton"""
    payer: str
    fee_payer: str
    anchor: str
    instructions: Tuple[Tuple[InstructionKind, Instruction], ...]

    def __post_init__(self):
        if self.kinds != INSTRUCTION_ORDER:
            raise ValueError(
                f"Instructions must be ordered {[k.value for k in INSTRUCTION_ORDER]}, "
                f"got {[k.value for k in self.kinds]}"
            )

    @property
    def kinds(self) -> Tuple[InstructionKind, ...]:
        return tuple(kind for kind, _ in self.instructions)

    def compile(self) -> MessageV0:
        """Compile to a v0 message with the fee payer as account 0"""
        return MessageV0.try_compile(
            _to_pubkey(self.fee_payer),
            [ix for _, ix in self.instructions],
            [],
            Hash.from_string(self.anchor),
        )


class FullySignedTransaction:
    """Transaction carrying every required signature; ready for the ledger"""

    def __init__(self, transaction: VersionedTransaction):
        self._transaction = transaction

    @property
    def transaction(self) -> VersionedTransaction:
        return self._transaction

    @property
    def signature(self) -> str:
        """Ledger identifier of the transaction (the fee payer's signature)"""
        return str(self._transaction.signatures[0])

    def serialize(self) -> bytes:
        return bytes(self._transaction)

    def to_base64(self) -> str:
        return base64.b64encode(self.serialize()).decode("utf-8")


class PartiallySignedTransaction:
    """
    Multi-signature transaction missing at least the fee payer's signature
    when a facilitator pays fees.

    Valid for transport, not for ledger submission. Signatures are appended
    by building new instances, never by mutating this one.
    """

    def __init__(self, transaction: VersionedTransaction):
        self._transaction = transaction

    @classmethod
    def from_base64(cls, encoded: str) -> "PartiallySignedTransaction":
        return cls(VersionedTransaction.from_bytes(base64.b64decode(encoded)))

    @property
    def transaction(self) -> VersionedTransaction:
        return self._transaction

    @property
    def message(self) -> MessageV0:
        return self._transaction.message

    @property
    def required_signers(self) -> List[str]:
        count = self.message.header.num_required_signatures
        return [str(key) for key in self.message.account_keys[:count]]

    @property
    def missing_signers(self) -> List[str]:
        default = Signature.default()
        return [
            address
            for address, signature in zip(self.required_signers, self._transaction.signatures)
            if signature == default
        ]

    @property
    def is_settlement_ready(self) -> bool:
        return not self.missing_signers

    def add_signature(self, address: str, signature: Signature) -> "PartiallySignedTransaction":
        """
        Return a copy with a co-signer's signature in place.

        Raises:
            ValueError: If address is not a required signer or the signature
                does not verify against the message
        """
        signers = self.required_signers
        if address not in signers:
            raise ValueError(f"{address} is not a required signer")
        if not signature.verify(Pubkey.from_string(address), versioned_message_bytes(self.message)):
            raise ValueError(f"Signature does not verify for {address}")

        signatures = list(self._transaction.signatures)
        signatures[signers.index(address)] = signature
        return PartiallySignedTransaction(VersionedTransaction.populate(self.message, signatures))

    def finalize(self) -> FullySignedTransaction:
        """
        Raises:
            ValueError: If any required signature is still missing
        """
        missing = self.missing_signers
        if missing:
            raise ValueError(f"Missing signatures for {', '.join(missing)}")
        return FullySignedTransaction(self._transaction)

    def serialize(self) -> bytes:
        return bytes(self._transaction)

    def to_base64(self) -> str:
        return base64.b64encode(self.serialize()).decode("utf-8")


def partially_sign(unsigned: UnsignedTransaction, signer: Signer) -> PartiallySignedTransaction:
    """
    Sign the payer's portion of a transaction.

    Every other required signature is left as the default placeholder.

    Raises:
        ValueError: If signer is not the transaction's payer
    """
    if signer.address != unsigned.payer:
        raise ValueError(f"Signer {signer.address} is not the payer {unsigned.payer}")

    message = unsigned.compile()
    count = message.header.num_required_signatures
    signers = [str(key) for key in message.account_keys[:count]]

    signatures = [Signature.default()] * count
    signatures[signers.index(signer.address)] = signer.sign_message(versioned_message_bytes(message))
    return PartiallySignedTransaction(VersionedTransaction.populate(message, signatures))


class TransactionBuilder(Protocol):
    """Ledger-specific transaction construction used by the payment handler"""

    def build(
        self,
        option: PaymentOption,
        payer_address: str,
        fee_payer_address: str,
        anchor: str,
        decimals: int,
    ) -> UnsignedTransaction:
        ...

    def partially_sign(self, unsigned: UnsignedTransaction, signer: Signer) -> PartiallySignedTransaction:
        ...


class SolanaTransactionBuilder:
    """Builds SPL transfer_checked payments with compute budget instructions"""

    def __init__(
        self,
        compute_unit_price: int = DEFAULT_COMPUTE_UNIT_PRICE,
        compute_unit_limit: int = DEFAULT_COMPUTE_UNIT_LIMIT,
        token_program_id: Pubkey = TOKEN_PROGRAM_ID,
    ):
        self.compute_unit_price = compute_unit_price
        self.compute_unit_limit = compute_unit_limit
        self.token_program_id = token_program_id

    def build(
        self,
        option: PaymentOption,
        payer_address: str,
        fee_payer_address: str,
        anchor: str,
        decimals: int,
    ) -> UnsignedTransaction:
        """
        Build the unsigned payment transaction for a payment option.

        Args:
            option: Selected payment option
            payer_address: Owner of the source token account
            fee_payer_address: Account paying network fees (facilitator or payer)
            anchor: Recent blockhash, fetched immediately before building
            decimals: Decimals of the option's asset

        Raises:
            TransactionBuildError: If an address or the anchor is invalid
        """
        try:
            mint = _to_pubkey(option.asset)
            owner = _to_pubkey(payer_address)
            _to_pubkey(fee_payer_address)
            Hash.from_string(anchor)

            source = resolve_token_account(owner, mint)
            dest = resolve_token_account(option.pay_to, mint)
        except (ValueError, ParseHashError) as e:
            raise TransactionBuildError(f"Could not resolve transaction accounts: {e}") from e

        transfer_ix = transfer_checked(
            TransferCheckedParams(
                program_id=self.token_program_id,
                source=source,
                mint=mint,
                dest=dest,
                owner=owner,
                amount=option.amount,
                decimals=decimals,
            )
        )

        return UnsignedTransaction(
            payer=payer_address,
            fee_payer=fee_payer_address,
            anchor=anchor,
            instructions=(
                (InstructionKind.PRIORITY_FEE, set_compute_unit_price(self.compute_unit_price)),
                (InstructionKind.COMPUTE_LIMIT, set_compute_unit_limit(self.compute_unit_limit)),
                (InstructionKind.TRANSFER, transfer_ix),
            ),
        )

    def partially_sign(self, unsigned: UnsignedTransaction, signer: Signer) -> PartiallySignedTransaction:
        return partially_sign(unsigned, signer)
