"""
Single-product lookup by brand and product code.

Used by the owned-vehicle form to check a brand + code pair before the
user saves a record by hand.
"""

from typing import Optional
import structlog

from models.catalog import ProductMatchResponse
from services.vehicle_store import VehicleStore, get_vehicle_store
from exceptions import ProductNotFoundError

logger = structlog.get_logger(__name__)


class ProductMatchService:
    """Resolves one brand + code pair against the catalog."""

    def __init__(self, store: Optional[VehicleStore] = None):
        self.store = store or get_vehicle_store()

    def match(self, brand: str, product_code: str) -> ProductMatchResponse:
        """
        Find the catalog entry for a brand + code pair (case-insensitive).

        Args:
            brand: Manufacturer, e.g. "KATO"
            product_code: Catalog code, e.g. "10-1603"

        Returns:
            ProductMatchResponse, with components when the product is a set

        Raises:
            ProductNotFoundError: If no product matches
        """
        logger.info("matching_product", brand=brand, product_code=product_code)

        product = self.store.find_product(brand.strip(), product_code.strip())
        if product is None:
            logger.info("product_match_missed", brand=brand, product_code=product_code)
            raise ProductNotFoundError(brand, product_code)

        components = []
        if product.is_set and product.product_code:
            components = self.store.find_components(product.product_code)

        return ProductMatchResponse(product=product, components=components)


# Singleton instance for convenience
_product_match_service: Optional[ProductMatchService] = None


def get_product_match_service() -> ProductMatchService:
    """Get or create ProductMatchService instance."""
    global _product_match_service
    if _product_match_service is None:
        _product_match_service = ProductMatchService()
    return _product_match_service
