"""
Pytest configuration and shared fixtures
"""

import io
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog
from rich.console import Console
from solders.hash import Hash
from solders.keypair import Keypair

from pinspire_agent.cli import configure_logging
from pinspire_agent.config import AgentConfig
from pinspire_agent.payments.ledger import SolanaLedger
from pinspire_agent.wallet import AgentWallet


@pytest.fixture(autouse=True)
def stderr_logging():
    """Keep log lines out of captured stdout, as the CLI does"""
    configure_logging("DEBUG", "json")
    yield
    structlog.reset_defaults()


@pytest.fixture
def wallet() -> AgentWallet:
    """Payer wallet with a fresh keypair"""
    return AgentWallet.generate()


@pytest.fixture
def facilitator() -> Keypair:
    """Fee payer keypair standing in for the facilitator"""
    return Keypair()


@pytest.fixture
def anchor() -> str:
    """Recent blockhash"""
    return str(Hash.new_unique())


@pytest.fixture
def mock_ledger(anchor):
    """Ledger with a funded payer (1 USDC)"""
    ledger = MagicMock(spec=SolanaLedger)
    ledger.get_latest_anchor = AsyncMock(return_value=anchor)
    ledger.get_token_balance = AsyncMock(return_value=1_000_000)
    ledger.get_asset_decimals = AsyncMock(return_value=6)
    ledger.get_native_balance = AsyncMock(return_value=2_000_000_000)
    ledger.request_airdrop = AsyncMock(return_value="airdrop-signature")
    ledger.close = AsyncMock()
    return ledger


@pytest.fixture
def agent_config() -> AgentConfig:
    """Config isolated from any local .env"""
    return AgentConfig(
        _env_file=None,
        pinspire_api_url="http://marketplace.test",
        agent_private_key="",
        max_purchases=10,
    )


@pytest.fixture
def console() -> Console:
    """Rich console writing to a buffer"""
    return Console(file=io.StringIO(), width=120)
