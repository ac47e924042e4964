"""
Ledger access for x402 payments
The payment pipeline only sees the LedgerClient protocol; SolanaLedger is the
solana-py backed implementation.
"""

from typing import Optional, Protocol

import structlog
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey
from solders.signature import Signature

from pinspire_agent.payments.transaction import resolve_token_account

logger = structlog.get_logger()

# Default RPC URLs
DEVNET_RPC_URL = "https://api.devnet.solana.com"
MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"

SUPPORTED_SVM_NETWORKS = ("solana-devnet", "solana")

LAMPORTS_PER_SOL = 1_000_000_000

# Mint decimals that never need an RPC round trip
KNOWN_TOKEN_DECIMALS = {
    "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU": 6,  # USDC devnet
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": 6,  # USDC mainnet
}


class LedgerClient(Protocol):
    """Read-only ledger capability needed to build a payment"""

    async def get_latest_anchor(self) -> str:
        """Return a recent blockhash (base58)."""
        ...

    async def get_token_balance(self, owner: str, asset: str) -> int:
        """Return the owner's balance of asset in base units, 0 if unknown."""
        ...

    async def get_asset_decimals(self, asset: str) -> int:
        """Return the number of decimals of the asset."""
        ...


def get_rpc_url(network: str, custom_url: Optional[str] = None) -> str:
    """
    Get the RPC URL for a given Solana network.

    Args:
        network: Network name ("solana" or "solana-devnet")
        custom_url: Optional custom RPC URL to use instead of default

    Raises:
        ValueError: If network is not supported
    """
    if custom_url:
        return custom_url

    if network not in SUPPORTED_SVM_NETWORKS:
        raise ValueError(f"Unsupported SVM network: {network}")

    return DEVNET_RPC_URL if network == "solana-devnet" else MAINNET_RPC_URL


class SolanaLedger:
    """LedgerClient backed by a solana-py AsyncClient"""

    def __init__(self, client: AsyncClient):
        self.client = client

    @classmethod
    def for_network(cls, network: str, custom_url: Optional[str] = None) -> "SolanaLedger":
        return cls(AsyncClient(get_rpc_url(network, custom_url), commitment=Confirmed))

    async def get_latest_anchor(self) -> str:
        resp = await self.client.get_latest_blockhash(Confirmed)
        return str(resp.value.blockhash)

    async def get_token_balance(self, owner: str, asset: str) -> int:
        """
        Balance of asset held in the owner's associated token account.

        A missing token account (or any read failure) is reported as zero
        instead of surfacing a transport error.
        """
        try:
            token_account = resolve_token_account(owner, asset)
            resp = await self.client.get_token_account_balance(token_account, Confirmed)
            return int(resp.value.amount)
        except (RPCException, SolanaRpcException, ValueError) as e:
            logger.warning("token_balance_unavailable", owner=owner, asset=asset, error=str(e))
            return 0

    async def get_asset_decimals(self, asset: str) -> int:
        if asset in KNOWN_TOKEN_DECIMALS:
            return KNOWN_TOKEN_DECIMALS[asset]
        resp = await self.client.get_token_supply(Pubkey.from_string(asset), Confirmed)
        return resp.value.decimals

    async def get_native_balance(self, owner: str) -> int:
        """SOL balance in lamports"""
        resp = await self.client.get_balance(Pubkey.from_string(owner), Confirmed)
        return resp.value

    async def request_airdrop(self, owner: str, lamports: int) -> str:
        """Request a devnet airdrop and wait for confirmation"""
        resp = await self.client.request_airdrop(Pubkey.from_string(owner), lamports, Confirmed)
        signature: Signature = resp.value
        await self.client.confirm_transaction(signature, Confirmed)
        logger.info("airdrop_confirmed", owner=owner, lamports=lamports, signature=str(signature))
        return str(signature)

    async def close(self):
        await self.client.close()
