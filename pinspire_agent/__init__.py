"""
Pinspire Agent
Autonomous buyer for x402 payment-gated marketplaces on Solana
"""

__version__ = "0.1.0"
