"""
Pinspire Agent Configuration Management
Uses pydantic-settings for type-safe environment variable loading
"""

from typing import Literal
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# USDC mint addresses per Solana network
USDC_MINTS = {
    "solana-devnet": "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
    "solana": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
}


class AgentConfig(BaseSettings):
    """Configuration for the autonomous buyer agent"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Marketplace Connection
    pinspire_api_url: str = Field(default="http://localhost:3000", description="Base URL of the marketplace")
    agent_id: str = Field(default="autonomous-buyer-v1", description="Sent as x-agent-address")
    request_timeout: float = Field(default=30.0, description="HTTP timeout in seconds")

    # Wallet Configuration
    agent_private_key: str = Field(default="", description="Base58 encoded 64-byte secret key")

    # Network Configuration
    network: Literal["solana-devnet", "solana"] = Field(default="solana-devnet")
    rpc_url: str = Field(default="", description="Custom RPC URL, network default when empty")
    usdc_mint: str = Field(default=USDC_MINTS["solana-devnet"])

    # Transaction Fees
    compute_unit_price: int = Field(default=1, ge=0, description="Priority fee in micro-lamports")
    compute_unit_limit: int = Field(default=100_000, gt=0, description="Compute unit limit for a transfer")

    # Purchasing
    max_purchases: int = Field(default=10, ge=1, description="Max purchases per agent session")
    low_sol_warning: float = Field(default=0.001)
    low_usdc_warning: float = Field(default=0.01)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="text")

    @field_validator("pinspire_api_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @field_validator("agent_private_key")
    @classmethod
    def strip_private_key(cls, v):
        return v.strip()


# Singleton instance
_agent_config: AgentConfig | None = None


def get_agent_config() -> AgentConfig:
    """Get or create agent configuration singleton"""
    global _agent_config
    if _agent_config is None:
        _agent_config = AgentConfig()
    return _agent_config
