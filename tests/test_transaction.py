"""
Unit tests for Solana payment transaction construction
Uses real solders keys and hashes so layout and signatures are checked on the wire bytes
"""

import pytest
from solders.compute_budget import ID as COMPUTE_BUDGET_PROGRAM_ID
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

from pinspire_agent.payments.errors import TransactionBuildError
from pinspire_agent.payments.transaction import (
    INSTRUCTION_ORDER,
    InstructionKind,
    PartiallySignedTransaction,
    SolanaTransactionBuilder,
    UnsignedTransaction,
    partially_sign,
    resolve_token_account,
    versioned_message_bytes,
)
from tests.factories import PaymentOptionFactory


@pytest.fixture
def builder():
    return SolanaTransactionBuilder(compute_unit_price=5, compute_unit_limit=200_000)


@pytest.fixture
def option():
    return PaymentOptionFactory(max_amount_required="500000")


class TestResolveTokenAccount:
    """Test associated token account derivation"""

    def test_matches_associated_token_address(self):
        """Test derivation matches the SPL associated token program"""
        owner = Keypair().pubkey()
        mint = Keypair().pubkey()

        assert resolve_token_account(owner, mint) == get_associated_token_address(owner, mint)

    def test_is_deterministic_for_strings(self):
        """Test the same owner and asset always resolve to the same account"""
        owner = str(Keypair().pubkey())
        mint = str(Keypair().pubkey())

        assert resolve_token_account(owner, mint) == resolve_token_account(owner, mint)
        assert resolve_token_account(owner, mint) == resolve_token_account(Pubkey.from_string(owner), mint)

    def test_invalid_address(self):
        """Test malformed base58 is rejected"""
        with pytest.raises(ValueError):
            resolve_token_account("not-an-address", str(Keypair().pubkey()))


class TestBuild:
    """Test unsigned transaction construction"""

    def test_instruction_order(self, builder, option, wallet, anchor):
        """Test instructions are priority fee, compute limit, transfer"""
        unsigned = builder.build(option, wallet.address, wallet.address, anchor, 6)

        assert unsigned.kinds == (
            InstructionKind.PRIORITY_FEE,
            InstructionKind.COMPUTE_LIMIT,
            InstructionKind.TRANSFER,
        )
        programs = [ix.program_id for _, ix in unsigned.instructions]
        assert programs == [COMPUTE_BUDGET_PROGRAM_ID, COMPUTE_BUDGET_PROGRAM_ID, TOKEN_PROGRAM_ID]

    def test_compute_budget_values(self, builder, option, wallet, anchor):
        """Test configured priority fee and compute limit are encoded"""
        unsigned = builder.build(option, wallet.address, wallet.address, anchor, 6)

        assert unsigned.instructions[0][1] == set_compute_unit_price(5)
        assert unsigned.instructions[1][1] == set_compute_unit_limit(200_000)

    def test_default_compute_budget(self, option, wallet, anchor):
        """Test defaults are 1 micro-lamport and 100k units"""
        unsigned = SolanaTransactionBuilder().build(option, wallet.address, wallet.address, anchor, 6)

        assert unsigned.instructions[0][1] == set_compute_unit_price(1)
        assert unsigned.instructions[1][1] == set_compute_unit_limit(100_000)

    def test_transfer_accounts(self, builder, option, wallet, anchor):
        """Test transfer moves funds between the two token accounts"""
        unsigned = builder.build(option, wallet.address, wallet.address, anchor, 6)
        transfer = unsigned.instructions[2][1]
        mint = Pubkey.from_string(option.asset)

        accounts = [meta.pubkey for meta in transfer.accounts]
        assert accounts[0] == get_associated_token_address(wallet.pubkey, mint)
        assert accounts[1] == mint
        assert accounts[2] == get_associated_token_address(Pubkey.from_string(option.pay_to), mint)
        assert accounts[3] == wallet.pubkey
        assert transfer.accounts[3].is_signer

    def test_transfer_amount_and_decimals(self, builder, option, wallet, anchor):
        """Test transfer_checked data carries amount and decimals"""
        unsigned = builder.build(option, wallet.address, wallet.address, anchor, 6)
        data = bytes(unsigned.instructions[2][1].data)

        # [instruction tag, u64 amount little endian, u8 decimals]
        assert data[0] == 12
        assert int.from_bytes(data[1:9], "little") == 500000
        assert data[9] == 6

    def test_invalid_payee(self, builder, wallet, anchor):
        """Test a bad payTo address fails the build"""
        option = PaymentOptionFactory(pay_to="0xNotASolanaAddress")

        with pytest.raises(TransactionBuildError):
            builder.build(option, wallet.address, wallet.address, anchor, 6)

    def test_invalid_asset(self, builder, wallet, anchor):
        """Test a bad mint address fails the build"""
        option = PaymentOptionFactory(asset="USDC")

        with pytest.raises(TransactionBuildError):
            builder.build(option, wallet.address, wallet.address, anchor, 6)

    def test_invalid_anchor(self, builder, option, wallet):
        """Test a malformed blockhash fails the build"""
        with pytest.raises(TransactionBuildError):
            builder.build(option, wallet.address, wallet.address, "not-a-blockhash", 6)

    def test_wrong_instruction_order_rejected(self, builder, option, wallet, anchor):
        """Test UnsignedTransaction refuses any other layout"""
        unsigned = builder.build(option, wallet.address, wallet.address, anchor, 6)
        swapped = (unsigned.instructions[1], unsigned.instructions[0], unsigned.instructions[2])

        with pytest.raises(ValueError):
            UnsignedTransaction(
                payer=unsigned.payer,
                fee_payer=unsigned.fee_payer,
                anchor=unsigned.anchor,
                instructions=swapped,
            )

    def test_order_constant(self):
        """Test the documented order"""
        assert [k.value for k in INSTRUCTION_ORDER] == ["priority_fee", "compute_limit", "transfer"]


class TestPartialSigning:
    """Test payer-only signing with a facilitator fee payer"""

    def test_fee_payer_is_first_account(self, builder, option, wallet, facilitator, anchor):
        """Test the facilitator pays fees as account 0"""
        unsigned = builder.build(option, wallet.address, str(facilitator.pubkey()), anchor, 6)
        signed = partially_sign(unsigned, wallet)

        assert signed.message.account_keys[0] == facilitator.pubkey()
        assert signed.required_signers == [str(facilitator.pubkey()), wallet.address]

    def test_only_payer_signs(self, builder, option, wallet, facilitator, anchor):
        """Test the payer signature verifies and the fee payer slot stays empty"""
        unsigned = builder.build(option, wallet.address, str(facilitator.pubkey()), anchor, 6)
        signed = partially_sign(unsigned, wallet)
        message_bytes = versioned_message_bytes(signed.message)

        signatures = signed.transaction.signatures
        assert signatures[0] == Signature.default()
        assert signatures[1].verify(wallet.pubkey, message_bytes)
        assert signed.missing_signers == [str(facilitator.pubkey())]
        assert not signed.is_settlement_ready

    def test_fee_payer_defaults_to_payer(self, builder, option, wallet, anchor):
        """Test a self-paid transaction needs only the payer"""
        unsigned = builder.build(option, wallet.address, wallet.address, anchor, 6)
        signed = partially_sign(unsigned, wallet)

        assert signed.required_signers == [wallet.address]
        assert signed.missing_signers == []
        assert signed.finalize().signature == str(signed.transaction.signatures[0])

    def test_facilitator_completes_transaction(self, builder, option, wallet, facilitator, anchor):
        """Test appending the fee payer signature yields a fully signed transaction"""
        unsigned = builder.build(option, wallet.address, str(facilitator.pubkey()), anchor, 6)
        signed = partially_sign(unsigned, wallet)

        fee_signature = facilitator.sign_message(versioned_message_bytes(signed.message))
        completed = signed.add_signature(str(facilitator.pubkey()), fee_signature)
        final = completed.finalize()

        assert completed.is_settlement_ready
        assert final.signature == str(fee_signature)
        # The original partial transaction is untouched
        assert signed.missing_signers == [str(facilitator.pubkey())]

    def test_finalize_requires_all_signatures(self, builder, option, wallet, facilitator, anchor):
        """Test a partially signed transaction cannot be finalized"""
        unsigned = builder.build(option, wallet.address, str(facilitator.pubkey()), anchor, 6)
        signed = partially_sign(unsigned, wallet)

        with pytest.raises(ValueError):
            signed.finalize()

    def test_rejects_invalid_cosignature(self, builder, option, wallet, facilitator, anchor):
        """Test a signature over other bytes is refused"""
        unsigned = builder.build(option, wallet.address, str(facilitator.pubkey()), anchor, 6)
        signed = partially_sign(unsigned, wallet)

        with pytest.raises(ValueError):
            signed.add_signature(str(facilitator.pubkey()), facilitator.sign_message(b"something else"))

    def test_rejects_unknown_cosigner(self, builder, option, wallet, facilitator, anchor):
        """Test only required signers can be added"""
        unsigned = builder.build(option, wallet.address, str(facilitator.pubkey()), anchor, 6)
        signed = partially_sign(unsigned, wallet)
        stranger = Keypair()

        with pytest.raises(ValueError):
            signed.add_signature(
                str(stranger.pubkey()),
                stranger.sign_message(versioned_message_bytes(signed.message)),
            )

    def test_signer_must_be_payer(self, builder, option, wallet, anchor):
        """Test another key cannot sign for the payer"""
        unsigned = builder.build(option, wallet.address, wallet.address, anchor, 6)

        class OtherSigner:
            def __init__(self):
                self._keypair = Keypair()

            @property
            def address(self):
                return str(self._keypair.pubkey())

            def sign_message(self, message):
                return self._keypair.sign_message(message)

        with pytest.raises(ValueError):
            partially_sign(unsigned, OtherSigner())

    def test_base64_transport(self, builder, option, wallet, facilitator, anchor):
        """Test the serialized form decodes to the same partial transaction"""
        unsigned = builder.build(option, wallet.address, str(facilitator.pubkey()), anchor, 6)
        signed = builder.partially_sign(unsigned, wallet)

        decoded = PartiallySignedTransaction.from_base64(signed.to_base64())

        assert decoded.serialize() == signed.serialize()
        assert decoded.missing_signers == [str(facilitator.pubkey())]
        assert str(decoded.message.recent_blockhash) == anchor
