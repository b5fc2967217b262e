"""
Owned vehicle schemas for validation and serialization.

An owned vehicle is either linked to a catalog product (product_id) or
recorded independently with its own descriptor, never both.
"""

from pydantic import Field, model_validator
from typing import Optional
from enum import Enum
from datetime import date
from decimal import Decimal

from models.base import BaseSchema, TimestampMixin


class VehicleStatus(str, Enum):
    """Current condition of an owned vehicle."""
    NORMAL = "NORMAL"
    NEEDS_REPAIR = "NEEDS_REPAIR"
    BROKEN = "BROKEN"


class StorageCondition(str, Enum):
    """Whether the vehicle is kept in its case."""
    WITH_CASE = "WITH_CASE"
    WITHOUT_CASE = "WITHOUT_CASE"


class IndependentDescriptor(BaseSchema):
    """Free-text description of a vehicle that has no catalog entry."""

    name: str = Field(..., min_length=1, max_length=255)
    brand: Optional[str] = Field(None, max_length=100)
    product_code: Optional[str] = Field(None, max_length=100)
    vehicle_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class OwnedVehicleCreate(BaseSchema):
    """
    Create an owned vehicle.

    Required: user_id and exactly one of product_id / independent
    """

    user_id: int = Field(..., description="Owning user")
    product_id: Optional[int] = Field(None, description="Linked catalog product")
    management_id: str = Field(
        "",
        max_length=100,
        description="User's own identifier, unique per user when non-empty"
    )
    current_status: VehicleStatus = VehicleStatus.NORMAL
    storage_condition: StorageCondition = StorageCondition.WITH_CASE
    purchase_date: Optional[date] = None
    purchase_price_including_tax: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    parent_management_id: Optional[str] = Field(
        None,
        description="Management ID of the set this record was expanded from"
    )
    independent: Optional[IndependentDescriptor] = None

    @model_validator(mode="after")
    def linked_or_independent(self) -> "OwnedVehicleCreate":
        """A record is either linked to a product or independent."""
        if (self.product_id is None) == (self.independent is None):
            raise ValueError("Exactly one of product_id or independent must be set")
        return self

    @property
    def is_independent(self) -> bool:
        return self.independent is not None

    def to_insert_dict(self) -> dict:
        """Row shape expected by the owned_vehicles insert function."""
        return {
            "user_id": self.user_id,
            "product_id": self.product_id,
            "management_id": self.management_id,
            "is_independent": self.is_independent,
            "current_status": self.current_status.value,
            "storage_condition": self.storage_condition.value,
            "purchase_date": self.purchase_date.isoformat() if self.purchase_date else None,
            "purchase_price_including_tax": (
                str(self.purchase_price_including_tax)
                if self.purchase_price_including_tax is not None else None
            ),
            "notes": self.notes,
            "parent_management_id": self.parent_management_id,
            "image_urls": [],
            "independent": (
                self.independent.model_dump() if self.independent is not None else None
            ),
        }


class OwnedVehicleResponse(BaseSchema, TimestampMixin):
    """Owned vehicle as stored."""

    id: int
    user_id: int
    product_id: Optional[int] = None
    management_id: str = ""
    is_independent: bool = False
    current_status: VehicleStatus = VehicleStatus.NORMAL
    storage_condition: StorageCondition = StorageCondition.WITH_CASE
    purchase_date: Optional[date] = None
    purchase_price_including_tax: Optional[Decimal] = None
    notes: Optional[str] = None
    parent_management_id: Optional[str] = None
