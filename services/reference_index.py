"""
In-memory catalog index for one import run.

Built once from a single bulk read of the products table so that row
reconciliation never queries the database per row. The index is rebuilt
for every run because the catalog may change between runs.
"""

from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union
from pydantic import ValidationError as SchemaError
import structlog

from models.catalog import CatalogEntry, ProductType
from exceptions import UnknownProductTypeError
from utils.text_utils import catalog_key, normalize_identity

logger = structlog.get_logger(__name__)


class ReferenceIndex:
    """
    Read-only lookup of catalog entries by (brand, product code).

    Keys are "brand:code" after NFKC folding and lowercasing, so
    "KATO" / "10-1603" and "kato" / "１０-１６０３" hit the same entry.
    Entries without a product code cannot be matched and are left out.
    """

    def __init__(
        self,
        by_key: Mapping[str, CatalogEntry],
        components_by_parent: Mapping[str, tuple[CatalogEntry, ...]],
        skipped: int = 0,
    ):
        self._by_key = MappingProxyType(dict(by_key))
        self._components = MappingProxyType(dict(components_by_parent))
        self.skipped = skipped

    @classmethod
    def build(cls, rows: Iterable[Union[CatalogEntry, dict]]) -> "ReferenceIndex":
        """
        Build the index from catalog rows.

        Rows with an unknown product type are rejected here and logged,
        so reconciliation only ever sees the closed ProductType enum.

        Args:
            rows: CatalogEntry objects or raw product dicts

        Returns:
            ReferenceIndex
        """
        by_key: dict[str, CatalogEntry] = {}
        components: dict[str, list[CatalogEntry]] = {}
        skipped = 0

        for row in rows:
            try:
                entry = row if isinstance(row, CatalogEntry) else CatalogEntry(**row)
            except (UnknownProductTypeError, SchemaError) as e:
                skipped += 1
                logger.warning(
                    "catalog_entry_rejected",
                    product_id=row.get("id") if isinstance(row, dict) else None,
                    error=str(e)
                )
                continue

            key = catalog_key(entry.brand, entry.product_code)
            if key is not None:
                if key in by_key:
                    logger.warning(
                        "catalog_key_collision",
                        key=key,
                        kept_id=by_key[key].id,
                        ignored_id=entry.id
                    )
                else:
                    by_key[key] = entry

            if entry.type == ProductType.SET_SINGLE and entry.parent_code:
                parent = normalize_identity(entry.parent_code)
                components.setdefault(parent, []).append(entry)

        logger.info(
            "reference_index_built",
            entries=len(by_key),
            sets_with_components=len(components),
            skipped=skipped
        )

        return cls(
            by_key,
            {parent: tuple(items) for parent, items in components.items()},
            skipped=skipped,
        )

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def lookup(self, brand: Optional[str], product_code: Optional[str]) -> Optional[CatalogEntry]:
        """Find the catalog entry for a brand + code pair."""
        key = catalog_key(brand, product_code)
        if key is None:
            return None
        return self._by_key.get(key)

    def components_of(self, entry: CatalogEntry) -> tuple[CatalogEntry, ...]:
        """Known SET_SINGLE components of a set, in catalog order."""
        if not entry.is_set or not entry.product_code:
            return ()
        return self._components.get(normalize_identity(entry.product_code), ())
