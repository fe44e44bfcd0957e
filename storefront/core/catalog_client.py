import logging
import httpx
from typing import Optional, Dict, Any, Iterable

from storefront.core.config import settings

logger = logging.getLogger(__name__)


class CatalogClient:
    """HTTP client for the product catalog: live stock and main SKUs.

    Lookups never raise. A failed or missing lookup returns ``None`` and the
    caller applies its fallback (zero stock, next SKU precedence rule).
    """

    def __init__(self, base_url: str = None, transport: httpx.AsyncBaseTransport = None):
        self.base_url = base_url or settings.CATALOG_API_BASE_URL
        self.transport = transport
        self.client = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=30.0, transport=self.transport)
        return self.client

    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        """
        GET /api/v1/products/{product_id}

        Returns the product document ({"stock": 4, "sku": "...", "basesku": "...", ...})
        or None when the product does not exist or the catalog is unreachable.
        """
        try:
            client = await self._get_client()
            response = await client.get(f"{self.base_url}/api/v1/products/{product_id}")
            if response.status_code == 404:
                logger.info(f"Catalog product not found: {product_id}")
                return None
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Catalog lookup for {product_id} failed with status {e.response.status_code}")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Catalog lookup for {product_id} failed: {str(e)}")
            return None

    async def get_stock(self, product_id: str) -> int:
        product = await self.get_product(product_id)
        if product is None:
            return 0
        stock = product.get("stock")
        try:
            return max(int(stock), 0) if stock is not None else 0
        except (TypeError, ValueError):
            logger.warning(f"Catalog returned unusable stock for {product_id}: {stock!r}")
            return 0

    async def get_stock_levels(self, product_ids: Iterable[str]) -> Dict[str, int]:
        """Stock snapshot for a cart view: {product_id: available units}."""
        levels = {}
        for product_id in dict.fromkeys(product_ids):
            levels[product_id] = await self.get_stock(product_id)
        return levels

    async def get_main_sku(self, product_id: str) -> Optional[str]:
        """Catalog-level SKU: ``sku``, else ``basesku``, else the product id itself."""
        product = await self.get_product(product_id)
        if product is None:
            return None
        return product.get("sku") or product.get("basesku") or product_id

    async def resolve_skus(self, product_ids: Iterable[str]) -> Dict[str, str]:
        """Main SKU per unique product id; ids whose lookup failed are left out."""
        sku_map = {}
        for product_id in dict.fromkeys(product_ids):
            sku = await self.get_main_sku(product_id)
            if sku:
                sku_map[product_id] = sku
        logger.debug(f"Resolved SKUs: {sku_map}")
        return sku_map

    async def close(self):
        """Close HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None


# Global instance
catalog_client = CatalogClient()
