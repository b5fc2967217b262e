"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.catalog import (
    ProductType,
    CatalogEntry,
    ProductMatchRequest,
    ProductMatchResponse,
)
from models.owned_vehicle import (
    VehicleStatus,
    StorageCondition,
    IndependentDescriptor,
    OwnedVehicleCreate,
    OwnedVehicleResponse,
)
from models.vehicle_import import (
    ImportOutcome,
    CandidateRow,
    OwnedVehicleParseResult,
    ReconciledRow,
    SetExpansionJob,
    RowResult,
    ImportReport,
    ImportResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Catalog
    "ProductType",
    "CatalogEntry",
    "ProductMatchRequest",
    "ProductMatchResponse",

    # Owned vehicles
    "VehicleStatus",
    "StorageCondition",
    "IndependentDescriptor",
    "OwnedVehicleCreate",
    "OwnedVehicleResponse",

    # Import
    "ImportOutcome",
    "CandidateRow",
    "OwnedVehicleParseResult",
    "ReconciledRow",
    "SetExpansionJob",
    "RowResult",
    "ImportReport",
    "ImportResponse",
]
