"""
Pinspire marketplace HTTP client
Discovery, image details and the two-step x402 buy request.
"""

from typing import Any, Optional, Union

import httpx
import structlog

from pinspire_agent.marketplace.models import (
    BrowseResult,
    ImageInfo,
    MarketplaceInfo,
    PurchaseResponse,
)

logger = structlog.get_logger()

ResourceId = Union[int, str]


class MarketplaceError(Exception):
    """Raised when a discovery endpoint answers with a non-2xx status"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MarketplaceClient:
    """
    Async client for the agent endpoints of the marketplace.

    Every request carries the x-agent-address header. Transport errors
    (httpx.HTTPError) propagate to the caller unchanged.
    """

    def __init__(
        self,
        base_url: str,
        agent_id: str = "autonomous-buyer-v1",
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.agent_id = agent_id
        self.client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-agent-address": self.agent_id,
        }

    async def _get(self, path: str, params: Optional[dict] = None) -> Any:
        response = await self.client.get(f"{self.base_url}{path}", params=params, headers=self.headers)
        if response.is_error:
            logger.error("marketplace_request_failed", path=path, params=params, status=response.status_code)
            raise MarketplaceError(
                f"GET {path} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return response.json()

    async def get_marketplace_info(self) -> MarketplaceInfo:
        """Get marketplace information"""
        info = MarketplaceInfo.model_validate(await self._get("/api/agent/info"))
        logger.info("marketplace_discovered", marketplace=info.marketplace, network=info.network)
        return info

    async def browse_images(self) -> BrowseResult:
        """Browse available images"""
        result = BrowseResult.model_validate(await self._get("/api/agent/info", {"action": "browse"}))
        logger.info("images_browsed", count=len(result.images))
        return result

    async def get_image_info(self, image_id: ResourceId) -> ImageInfo:
        """Get details for a specific image"""
        return ImageInfo.model_validate(await self._get("/api/agent/info", {"imageId": str(image_id)}))

    async def _buy(self, resource_id: ResourceId, payment_header: Optional[str] = None) -> PurchaseResponse:
        headers = self.headers
        if payment_header:
            headers["X-PAYMENT"] = payment_header

        response = await self.client.post(
            f"{self.base_url}/api/agent/buy",
            params={"imageId": str(resource_id)},
            headers=headers,
        )
        try:
            body = response.json()
        except ValueError:
            body = response.text

        logger.debug(
            "buy_request_completed",
            resource_id=resource_id,
            with_payment=payment_header is not None,
            status=response.status_code,
        )
        return PurchaseResponse(status_code=response.status_code, body=body)

    async def initiate_purchase(self, resource_id: ResourceId) -> PurchaseResponse:
        """Initiate a purchase; a priced resource answers 402 with a challenge"""
        return await self._buy(resource_id)

    async def complete_purchase(self, resource_id: ResourceId, payment_header: str) -> PurchaseResponse:
        """Resubmit the purchase carrying the X-PAYMENT proof"""
        return await self._buy(resource_id, payment_header)

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()
