"""
Pinspire marketplace client and response models
"""

from pinspire_agent.marketplace.client import MarketplaceClient, MarketplaceError
from pinspire_agent.marketplace.models import (
    MarketplaceInfo,
    BrowseResult,
    ImageListing,
    ImageInfo,
    PurchaseResult,
    PurchaseResponse,
)

__all__ = [
    "MarketplaceClient",
    "MarketplaceError",
    "MarketplaceInfo",
    "BrowseResult",
    "ImageListing",
    "ImageInfo",
    "PurchaseResult",
    "PurchaseResponse",
]
