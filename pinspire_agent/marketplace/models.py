"""
Marketplace response models
Parsed leniently: the marketplace may add fields, and only what the agent
displays or acts on is declared.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MarketplaceModel(BaseModel):
    """Base for camelCase marketplace payloads"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class MarketplaceInfo(MarketplaceModel):
    """GET /api/agent/info"""
    marketplace: str = ""
    version: str = ""
    currency: str = ""
    network: str = ""
    price_per_image: str = ""
    features: List[str] = Field(default_factory=list)
    endpoints: Dict[str, str] = Field(default_factory=dict)
    how_it_works: List[str] = Field(default_factory=list)


class ImageListing(MarketplaceModel):
    """Single entry of the browse listing"""
    id: int
    title: str = ""
    price: Decimal = Decimal("0")
    purchases: int = 0
    buy_endpoint: str = ""


class BrowseResult(MarketplaceModel):
    """GET /api/agent/info?action=browse"""
    success: bool = True
    total_images: int = 0
    images: List[ImageListing] = Field(default_factory=list)


class ImageDetails(MarketplaceModel):
    id: int
    title: str = ""
    price: Decimal = Decimal("0")
    format: str = ""
    purchases: int = 0
    creator: str = ""


class PurchaseTerms(MarketplaceModel):
    method: str = ""
    endpoint: str = ""
    payment_required: bool = True
    amount: str = ""
    network: str = ""


class ImageInfo(MarketplaceModel):
    """GET /api/agent/info?imageId=<id>"""
    success: bool = True
    image: ImageDetails
    purchase: Optional[PurchaseTerms] = None


class SettlementInfo(MarketplaceModel):
    """Transaction details as reported by the server, recorded verbatim"""
    hash: str = ""
    amount: Optional[Decimal] = None
    currency: str = ""
    network: str = ""


class PurchasedResource(MarketplaceModel):
    id: Optional[int] = None
    title: str = ""
    url: str = ""
    price: Optional[Decimal] = None
    format: str = ""
    license: str = ""


class Counterpart(MarketplaceModel):
    """Seller side of a completed purchase"""
    id: Optional[int] = None
    name: str = ""
    earned_this_sale: Optional[Decimal] = None
    total_earnings: Optional[Decimal] = None


class PurchaseResult(MarketplaceModel):
    """Successful POST /api/agent/buy response"""
    success: bool = True
    transaction: Optional[SettlementInfo] = None
    resource: Optional[PurchasedResource] = Field(
        default=None,
        validation_alias=AliasChoices("resource", "image"),
    )
    counterpart: Optional[Counterpart] = Field(
        default=None,
        validation_alias=AliasChoices("counterpart", "creator"),
    )

    @property
    def transaction_hash(self) -> Optional[str]:
        return self.transaction.hash if self.transaction and self.transaction.hash else None


class PurchaseResponse(BaseModel):
    """Raw status and body of a buy request"""
    status_code: int
    body: Any = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300
