"""
Agent wallet
Holds the Solana keypair and exposes signing, balances and devnet airdrops.
Key material never leaves this module except through export_base58().
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import base58
import structlog
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from pinspire_agent.config import AgentConfig, get_agent_config
from pinspire_agent.payments.ledger import LAMPORTS_PER_SOL, SolanaLedger

logger = structlog.get_logger()

USDC_DECIMALS = 6


@dataclass
class WalletBalances:
    """Wallet balances in display units"""
    sol: Decimal
    usdc: Decimal

    def warnings(self, low_sol: float, low_usdc: float) -> list:
        messages = []
        if self.sol < Decimal(str(low_sol)):
            messages.append("Low SOL balance. You need SOL for transaction fees.")
        if self.usdc < Decimal(str(low_usdc)):
            messages.append("Low USDC balance. You need USDC to purchase images.")
        return messages


class AgentWallet:
    """Signer backed by a solders Keypair"""

    def __init__(self, keypair: Keypair, generated: bool = False):
        self._keypair = keypair
        self.generated = generated

    @classmethod
    def from_base58(cls, private_key: str) -> "AgentWallet":
        """
        Load a wallet from a base58-encoded 64-byte secret key.

        Raises:
            ValueError: If the key is not valid base58 or has the wrong length
        """
        try:
            return cls(Keypair.from_bytes(base58.b58decode(private_key)))
        except ValueError as e:
            raise ValueError(f"Invalid base58 private key: {e}") from e

    @classmethod
    def generate(cls) -> "AgentWallet":
        return cls(Keypair(), generated=True)

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    @property
    def address(self) -> str:
        return str(self.pubkey)

    def sign_message(self, message: bytes) -> Signature:
        return self._keypair.sign_message(message)

    def export_base58(self) -> str:
        """Secret key in the format AGENT_PRIVATE_KEY expects"""
        return base58.b58encode(bytes(self._keypair)).decode("utf-8")

    async def get_sol_balance(self, ledger: SolanaLedger) -> Decimal:
        lamports = await ledger.get_native_balance(self.address)
        return Decimal(lamports) / Decimal(LAMPORTS_PER_SOL)

    async def get_usdc_balance(self, ledger: SolanaLedger, usdc_mint: str) -> Decimal:
        """USDC balance; zero when the token account does not exist yet"""
        amount = await ledger.get_token_balance(self.address, usdc_mint)
        return Decimal(amount) / Decimal(10 ** USDC_DECIMALS)

    async def get_balances(self, ledger: SolanaLedger, usdc_mint: str) -> WalletBalances:
        return WalletBalances(
            sol=await self.get_sol_balance(ledger),
            usdc=await self.get_usdc_balance(ledger, usdc_mint),
        )

    async def request_airdrop(self, ledger: SolanaLedger, sol: float = 1.0) -> str:
        """Request a devnet SOL airdrop and return its signature"""
        lamports = int(Decimal(str(sol)) * LAMPORTS_PER_SOL)
        logger.info("airdrop_requested", address=self.address, sol=sol)
        return await ledger.request_airdrop(self.address, lamports)

    def __str__(self) -> str:
        return self.address

    def __repr__(self) -> str:
        return f"AgentWallet({self.address})"


def load_or_create_wallet(config: Optional[AgentConfig] = None) -> AgentWallet:
    """
    Load the wallet from AGENT_PRIVATE_KEY, or generate a fresh one.

    A generated wallet has generated=True; the caller is responsible for
    showing the key to the user so they can persist it.
    """
    config = config or get_agent_config()

    if config.agent_private_key:
        wallet = AgentWallet.from_base58(config.agent_private_key)
        logger.info("wallet_loaded", address=wallet.address)
        return wallet

    wallet = AgentWallet.generate()
    logger.warning("wallet_generated", address=wallet.address, reason="no AGENT_PRIVATE_KEY configured")
    return wallet
