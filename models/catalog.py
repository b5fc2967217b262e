"""
Catalog (reference product) schemas.

Catalog entries are shared by all users and are read-only for the
owned-vehicle import.
"""

from pydantic import Field, field_validator
from typing import Any, Optional
from enum import Enum
import re

from models.base import BaseSchema
from exceptions import UnknownProductTypeError


class ProductType(str, Enum):
    """Catalog product type."""
    SINGLE = "SINGLE"
    SET = "SET"
    SET_SINGLE = "SET_SINGLE"

    @classmethod
    def from_raw(cls, value: Any) -> "ProductType":
        """
        Normalize a stored type value.

        Accepts the enum values, the Japanese labels used by older exports
        and a few loose spellings:
        - "セット" → SET
        - "set single" / "set単品" → SET_SINGLE
        - "" / None → SINGLE

        Raises:
            UnknownProductTypeError: For anything else
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.SINGLE

        text = str(value).strip()
        if not text:
            return cls.SINGLE

        normalized = re.sub(r"[\s_\-]+", "", text).lower()
        found = _TYPE_ALIASES.get(normalized)
        if found is None:
            raise UnknownProductTypeError(value)
        return found


_TYPE_ALIASES = {
    "single": ProductType.SINGLE,
    "単品": ProductType.SINGLE,
    "set": ProductType.SET,
    "セット": ProductType.SET,
    "setsingle": ProductType.SET_SINGLE,
    "set単品": ProductType.SET_SINGLE,
    "セット単品": ProductType.SET_SINGLE,
}


class CatalogEntry(BaseSchema):
    """
    Reference product as read from the products table.

    Set components (SET_SINGLE) point at their set through parent_code,
    which holds the set's product_code.
    """

    id: int = Field(..., description="Product ID")
    brand: str = Field(..., description="Manufacturer, e.g. KATO")
    product_code: Optional[str] = Field(None, description="Manufacturer catalog code")
    name: str = Field(..., description="Product name")
    type: ProductType = Field(ProductType.SINGLE, description="Product type")
    parent_code: Optional[str] = Field(None, description="Parent set code (set components only)")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> ProductType:
        return ProductType.from_raw(v)

    @field_validator("product_code", "parent_code")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Blank codes are treated as missing."""
        return v or None

    @property
    def is_set(self) -> bool:
        return self.type == ProductType.SET


class ProductMatchRequest(BaseSchema):
    """Brand + product code pair to resolve against the catalog."""

    brand: str = Field(..., min_length=1, description="Manufacturer")
    product_code: str = Field(..., min_length=1, description="Catalog code")


class ProductMatchResponse(BaseSchema):
    """Catalog entry matched by brand + code."""

    product: CatalogEntry
    components: list[CatalogEntry] = Field(
        default_factory=list,
        description="Known components when the product is a set"
    )
