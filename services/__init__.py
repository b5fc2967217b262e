"""
Business logic services.

Each service handles one step of the owned-vehicle import or one lookup.
"""

from services.vehicle_store import VehicleStore, SupabaseVehicleStore, get_vehicle_store
from services.reference_index import ReferenceIndex
from services.row_reconciler import reconcile_row, reconcile_rows
from services.set_expansion_service import SetExpansionService
from services.batch_committer import BatchCommitter
from services.import_report import ImportReportBuilder
from services.vehicle_import_service import VehicleImportService, get_vehicle_import_service
from services.product_match_service import ProductMatchService, get_product_match_service

__all__ = [
    "VehicleStore",
    "SupabaseVehicleStore",
    "get_vehicle_store",
    "ReferenceIndex",
    "reconcile_row",
    "reconcile_rows",
    "SetExpansionService",
    "BatchCommitter",
    "ImportReportBuilder",
    "VehicleImportService",
    "get_vehicle_import_service",
    "ProductMatchService",
    "get_product_match_service",
]
