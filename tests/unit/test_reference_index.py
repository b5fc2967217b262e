"""
Unit tests for ReferenceIndex and catalog type normalization.

Run: pytest tests/unit/test_reference_index.py -v
"""

import pytest

from services.reference_index import ReferenceIndex
from models.catalog import CatalogEntry, ProductType
from exceptions import UnknownProductTypeError
from tests.factories import CatalogEntryFactory


class TestProductTypeFromRaw:
    """Tests for ProductType.from_raw()"""

    @pytest.mark.parametrize("raw,expected", [
        ("SINGLE", ProductType.SINGLE),
        ("set", ProductType.SET),
        ("SET_SINGLE", ProductType.SET_SINGLE),
        ("set-single", ProductType.SET_SINGLE),
        ("単品", ProductType.SINGLE),
        ("セット", ProductType.SET),
        ("セット単品", ProductType.SET_SINGLE),
        (None, ProductType.SINGLE),
        ("", ProductType.SINGLE),
    ])
    def test_known_values(self, raw, expected):
        assert ProductType.from_raw(raw) == expected

    def test_unknown_value_raises(self):
        with pytest.raises(UnknownProductTypeError) as exc:
            ProductType.from_raw("bundle")

        assert exc.value.details["provided"] == "bundle"


class TestReferenceIndexBuild:
    """Tests for ReferenceIndex.build()"""

    def test_lookup_hit(self):
        index = ReferenceIndex.build([
            CatalogEntryFactory.create(id=10, brand="KATO", product_code="10-1603")
        ])

        entry = index.lookup("KATO", "10-1603")

        assert entry is not None
        assert entry.id == 10

    def test_lookup_is_case_and_width_insensitive(self):
        """Full-width and case variants hit the same entry."""
        index = ReferenceIndex.build([
            CatalogEntryFactory.create(id=10, brand="KATO", product_code="10-1603")
        ])

        assert index.lookup("kato", "10-1603").id == 10
        assert index.lookup("ＫＡＴＯ", "１０-１６０３").id == 10
        assert index.lookup(" Kato ", " 10-1603").id == 10

    def test_lookup_miss(self):
        index = ReferenceIndex.build([CatalogEntryFactory.create(brand="KATO", product_code="1")])

        assert index.lookup("TOMIX", "1") is None

    def test_lookup_needs_both_parts(self):
        index = ReferenceIndex.build([CatalogEntryFactory.create(brand="KATO", product_code="1")])

        assert index.lookup("KATO", None) is None
        assert index.lookup(None, "1") is None

    def test_accepts_catalog_entries(self):
        entry = CatalogEntry(id=5, brand="TOMIX", product_code="98950", name="Set", type="SET")

        index = ReferenceIndex.build([entry])

        assert index.lookup("tomix", "98950") is entry

    def test_unknown_type_rejected_and_counted(self):
        """Rows with an unknown type never reach the index."""
        index = ReferenceIndex.build([
            CatalogEntryFactory.create(id=1, product_code="A", type="bundle"),
            CatalogEntryFactory.create(id=2, product_code="B"),
        ])

        assert len(index) == 1
        assert index.skipped == 1
        assert index.lookup("KATO", "A") is None

    def test_invalid_row_rejected(self):
        """Rows missing required fields are skipped."""
        index = ReferenceIndex.build([{"id": 1, "product_code": "X"}])

        assert len(index) == 0
        assert index.skipped == 1

    def test_entry_without_code_not_indexed(self):
        index = ReferenceIndex.build([{"id": 1, "brand": "KATO", "product_code": "", "name": "x"}])

        assert len(index) == 0

    def test_key_collision_keeps_first(self):
        index = ReferenceIndex.build([
            CatalogEntryFactory.create(id=1, brand="KATO", product_code="10-1603"),
            CatalogEntryFactory.create(id=2, brand="kato", product_code="10-1603"),
        ])

        assert index.lookup("KATO", "10-1603").id == 1

    def test_contains_uses_normalized_key(self):
        index = ReferenceIndex.build([CatalogEntryFactory.create(brand="KATO", product_code="10-1603")])

        assert "kato:10-1603" in index


class TestReferenceIndexComponents:
    """Tests for ReferenceIndex.components_of()"""

    def test_set_components_in_catalog_order(self):
        rows = CatalogEntryFactory.create_set("10-1603", components=2, id=100)
        index = ReferenceIndex.build(rows)

        set_entry = index.lookup("KATO", "10-1603")
        components = index.components_of(set_entry)

        assert set_entry.type == ProductType.SET
        assert [c.product_code for c in components] == ["10-1603-1", "10-1603-2"]

    def test_parent_code_matched_loosely(self):
        """Components match their set even with different case or width."""
        rows = [
            CatalogEntryFactory.create(id=1, product_code="S-1", type="SET"),
            CatalogEntryFactory.create(id=2, product_code="C-1", type="SET_SINGLE", parent_code="ｓ-1"),
        ]
        index = ReferenceIndex.build(rows)

        components = index.components_of(index.lookup("KATO", "S-1"))

        assert [c.id for c in components] == [2]

    def test_non_set_has_no_components(self):
        rows = [
            CatalogEntryFactory.create(id=1, product_code="S-1", type="SINGLE"),
            CatalogEntryFactory.create(id=2, product_code="C-1", type="SET_SINGLE", parent_code="S-1"),
        ]
        index = ReferenceIndex.build(rows)

        assert index.components_of(index.lookup("KATO", "S-1")) == ()

    def test_set_without_components(self):
        index = ReferenceIndex.build([CatalogEntryFactory.create(product_code="S-9", type="SET")])

        assert index.components_of(index.lookup("KATO", "S-9")) == ()

    def test_index_is_read_only(self):
        index = ReferenceIndex.build([CatalogEntryFactory.create(product_code="1")])

        with pytest.raises(TypeError):
            index._by_key["x"] = None
