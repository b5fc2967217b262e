"""
Record store used by the owned-vehicle import.

VehicleStore is the narrow contract the import engine depends on.
SupabaseVehicleStore implements it on top of the Supabase client.

Chunk writes go through the Postgres function

    import_owned_vehicles_chunk(p_rows jsonb, p_timeout_ms integer)
        returns setof owned_vehicles

defined in sql/import_owned_vehicles_chunk.sql. It inserts every
owned_vehicles row (and its independent_vehicles descriptor when present)
in p_rows order and returns the inserted rows in that order. A row that
fails, or a chunk running past p_timeout_ms, aborts the call; a function
call runs in a single transaction, so a chunk is stored completely or not
at all.
"""

from typing import Iterable, Optional, Protocol
from pydantic import ValidationError as SchemaError
import structlog

from config import get_import_client
from models.catalog import CatalogEntry, ProductType
from models.owned_vehicle import OwnedVehicleCreate, OwnedVehicleResponse
from utils.text_utils import normalize_identity
from exceptions import (
    ChunkCommitError,
    DatabaseError,
    UnknownProductTypeError,
)

logger = structlog.get_logger(__name__)

CATALOG_COLUMNS = "id, brand, product_code, name, type, parent_code"
CATALOG_PAGE_SIZE = 1000
ID_FILTER_BATCH = 200
CHUNK_FUNCTION = "import_owned_vehicles_chunk"


class VehicleStore(Protocol):
    """Store operations needed by one import run."""

    def fetch_catalog(self) -> list[dict]: ...

    def fetch_existing_management_ids(self, user_id: int, management_ids: Iterable[str]) -> set[str]: ...

    def create_many(self, records: list[OwnedVehicleCreate], timeout_ms: int) -> list[OwnedVehicleResponse]: ...

    def create_one(self, record: OwnedVehicleCreate) -> OwnedVehicleResponse: ...

    def find_set_components(self, user_id: int, parent_management_id: str) -> set[int]: ...

    def user_exists(self, user_id: int) -> bool: ...

    def find_product(self, brand: str, product_code: str) -> Optional[CatalogEntry]: ...

    def find_components(self, set_code: str) -> list[CatalogEntry]: ...


class SupabaseVehicleStore:
    """VehicleStore backed by Supabase tables and one Postgres function."""

    def __init__(self):
        self.db = get_import_client()
        self.products_table = "products"
        self.vehicles_table = "owned_vehicles"
        self.users_table = "users"

    # ===================
    # READ OPERATIONS
    # ===================

    def fetch_catalog(self) -> list[dict]:
        """
        Read the whole products catalog.

        Pages through the table because PostgREST caps a response at
        1000 rows.

        Returns:
            Raw product rows ordered by id
        """
        logger.debug("fetching_catalog")

        rows: list[dict] = []
        offset = 0
        try:
            while True:
                result = (
                    self.db.table(self.products_table)
                    .select(CATALOG_COLUMNS)
                    .order("id")
                    .range(offset, offset + CATALOG_PAGE_SIZE - 1)
                    .execute()
                )
                page = result.data or []
                rows.extend(page)
                if len(page) < CATALOG_PAGE_SIZE:
                    break
                offset += CATALOG_PAGE_SIZE

        except Exception as e:
            logger.error("fetch_catalog_failed", error=str(e))
            raise DatabaseError("select", str(e))

        logger.info("catalog_fetched", count=len(rows))
        return rows

    def fetch_existing_management_ids(
        self,
        user_id: int,
        management_ids: Iterable[str],
    ) -> set[str]:
        """
        Management IDs from the given list that the user already has.

        Args:
            user_id: Owning user
            management_ids: Non-empty IDs appearing in the import

        Returns:
            Subset of management_ids already stored
        """
        wanted = [m for m in dict.fromkeys(management_ids) if m]
        if not wanted:
            return set()

        found: set[str] = set()
        try:
            for start in range(0, len(wanted), ID_FILTER_BATCH):
                batch = wanted[start:start + ID_FILTER_BATCH]
                result = (
                    self.db.table(self.vehicles_table)
                    .select("management_id")
                    .eq("user_id", user_id)
                    .in_("management_id", batch)
                    .execute()
                )
                found.update(row["management_id"] for row in result.data or [])

        except Exception as e:
            logger.error(
                "fetch_existing_management_ids_failed",
                user_id=user_id,
                count=len(wanted),
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        logger.debug("existing_management_ids_fetched", requested=len(wanted), found=len(found))
        return found

    def find_set_components(self, user_id: int, parent_management_id: str) -> set[int]:
        """Product IDs already recorded as components of a set instance."""
        try:
            result = (
                self.db.table(self.vehicles_table)
                .select("product_id")
                .eq("user_id", user_id)
                .eq("parent_management_id", parent_management_id)
                .execute()
            )
            return {row["product_id"] for row in result.data or [] if row.get("product_id") is not None}

        except Exception as e:
            logger.error(
                "find_set_components_failed",
                user_id=user_id,
                parent_management_id=parent_management_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def user_exists(self, user_id: int) -> bool:
        try:
            result = (
                self.db.table(self.users_table)
                .select("id")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
            return bool(result.data)

        except Exception as e:
            logger.error("user_lookup_failed", user_id=user_id, error=str(e))
            raise DatabaseError("select", str(e))

    def find_product(self, brand: str, product_code: str) -> Optional[CatalogEntry]:
        """
        Case-insensitive lookup of one catalog entry.

        Returns:
            CatalogEntry or None if no product matches
        """
        logger.debug("finding_product", brand=brand, product_code=product_code)

        try:
            result = (
                self.db.table(self.products_table)
                .select(CATALOG_COLUMNS)
                .ilike("brand", _escape_like(brand))
                .ilike("product_code", _escape_like(product_code))
                .order("id")
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("find_product_failed", brand=brand, product_code=product_code, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return CatalogEntry(**result.data[0])

    def find_components(self, set_code: str) -> list[CatalogEntry]:
        """
        SET_SINGLE products belonging to the given set code.

        Matches parent_code and type exactly as ReferenceIndex does
        (NFKC-folded, case-insensitive, raw type labels accepted). Postgres
        cannot fold NFKC, so the catalog is read and filtered here.
        """
        wanted = normalize_identity(set_code)
        if not wanted:
            return []

        components = []
        for row in self.fetch_catalog():
            if normalize_identity(row.get("parent_code")) != wanted:
                continue
            try:
                entry = CatalogEntry(**row)
            except (UnknownProductTypeError, SchemaError):
                logger.warning("component_rejected", product_id=row.get("id"))
                continue
            if entry.type == ProductType.SET_SINGLE:
                components.append(entry)
        return components

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create_many(
        self,
        records: list[OwnedVehicleCreate],
        timeout_ms: int,
    ) -> list[OwnedVehicleResponse]:
        """
        Insert one chunk of owned vehicles atomically.

        Args:
            records: Rows to insert, in input order
            timeout_ms: Statement timeout for the chunk transaction

        Returns:
            Created rows, same order as records

        Raises:
            ChunkCommitError: If the function returned a different row count
            DatabaseError: If the call failed (nothing was stored)
        """
        if not records:
            return []

        logger.debug("creating_owned_vehicle_chunk", count=len(records), timeout_ms=timeout_ms)

        try:
            result = self.db.rpc(
                CHUNK_FUNCTION,
                {
                    "p_rows": [r.to_insert_dict() for r in records],
                    "p_timeout_ms": timeout_ms,
                },
            ).execute()
        except Exception as e:
            logger.error(
                "create_owned_vehicle_chunk_failed",
                count=len(records),
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

        rows = result.data or []
        if len(rows) != len(records):
            raise ChunkCommitError(
                f"Expected {len(records)} rows from {CHUNK_FUNCTION}, got {len(rows)}",
                details={"expected": len(records), "actual": len(rows)}
            )

        return [OwnedVehicleResponse(**row) for row in rows]

    def create_one(self, record: OwnedVehicleCreate) -> OwnedVehicleResponse:
        """Insert a single catalog-linked owned vehicle."""
        insert_data = record.to_insert_dict()
        insert_data.pop("independent")

        try:
            result = (
                self.db.table(self.vehicles_table)
                .insert(insert_data)
                .execute()
            )
        except Exception as e:
            logger.error(
                "create_owned_vehicle_failed",
                product_id=record.product_id,
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

        if not result.data:
            logger.error("create_owned_vehicle_empty_response", product_id=record.product_id)
            raise DatabaseError("insert", "no row returned")

        return OwnedVehicleResponse(**result.data[0])


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so ilike acts as a case-insensitive equality."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# Singleton instance for convenience
_vehicle_store: Optional[SupabaseVehicleStore] = None


def get_vehicle_store() -> SupabaseVehicleStore:
    """Get or create SupabaseVehicleStore instance."""
    global _vehicle_store
    if _vehicle_store is None:
        _vehicle_store = SupabaseVehicleStore()
    return _vehicle_store
