"""
Unit tests for the in-memory site store
"""

import pytest

from siteledger.core.errors import DuplicateKeyError, SiteNotFoundError, VersionConflictError
from siteledger.store import InMemorySiteStore, ScanPage


@pytest.mark.unit
class TestScanPage:
    """Tests for paginated attribute scans"""

    def test_empty_store(self, memory_store):
        page = memory_store.scan_page("productionSiteId")

        assert page == ScanPage(values=[], last_key=None)

    def test_single_page(self, make_item):
        store = InMemorySiteStore([make_item("ACME", "production", 1), make_item("ACME", "production", 2)])

        page = store.scan_page("productionSiteId", limit=10)

        assert sorted(page.values) == ["1", "2"]
        assert page.last_key is None

    def test_missing_attribute_scans_as_none(self, make_item):
        """Test items without the attribute contribute None"""
        store = InMemorySiteStore([make_item("ACME", "consumption", 1)])

        page = store.scan_page("productionSiteId")

        assert page.values == [None]

    def test_pagination_resumes_after_last_key(self, make_item):
        """Test walking pages visits every item exactly once"""
        store = InMemorySiteStore([make_item("ACME", "production", n) for n in range(1, 8)])

        seen = []
        start_key = None
        pages = 0
        while True:
            page = store.scan_page("productionSiteId", start_key=start_key, limit=3)
            pages += 1
            seen.extend(page.values)
            if page.last_key is None:
                break
            start_key = page.last_key

        assert pages == 3
        assert sorted(seen, key=int) == [str(n) for n in range(1, 8)]

    def test_exact_page_boundary_has_no_last_key(self, make_item):
        """Test a page that ends exactly at the last item reports completion"""
        store = InMemorySiteStore([make_item("ACME", "production", n) for n in range(1, 4)])

        page = store.scan_page("productionSiteId", limit=3)

        assert len(page.values) == 3
        assert page.last_key is None


@pytest.mark.unit
class TestConditionalPut:
    """Tests for conditional insert semantics"""

    def test_put_then_get(self, memory_store, make_item):
        item = make_item("ACME", "production", 1, name="Kayathar")

        memory_store.conditional_put(item)

        assert memory_store.get_item("ACME_P0001", "METADATA") == item

    def test_duplicate_pk_rejected(self, memory_store, make_item):
        """Test a second insert with the same PK fails and leaves the first intact"""
        memory_store.conditional_put(make_item("ACME", "production", 1, name="first"))

        with pytest.raises(DuplicateKeyError, match="ACME_P0001"):
            memory_store.conditional_put(make_item("ACME", "production", 1, name="second"))

        assert memory_store.get_item("ACME_P0001", "METADATA")["name"] == "first"
        assert len(memory_store) == 1

    def test_duplicate_pk_with_other_sort_key_rejected(self, memory_store, make_item):
        """Test the existence check is on PK alone"""
        memory_store.conditional_put(make_item("ACME", "production", 1))

        with pytest.raises(DuplicateKeyError):
            memory_store.conditional_put(make_item("ACME", "production", 1, SK="OTHER"))

    def test_stored_item_is_a_copy(self, memory_store, make_item):
        """Test mutating the caller's dict does not change the stored item"""
        item = make_item("ACME", "production", 1, tags=["wind"])
        memory_store.conditional_put(item)

        item["tags"].append("solar")
        fetched = memory_store.get_item("ACME_P0001", "METADATA")
        fetched["name"] = "changed"

        stored = memory_store.get_item("ACME_P0001", "METADATA")
        assert stored["tags"] == ["wind"]
        assert "name" not in stored


@pytest.mark.unit
class TestQueriesAndUpdates:
    """Tests for company queries, replace and delete"""

    def test_query_by_company(self, make_item):
        store = InMemorySiteStore([
            make_item("ACME", "production", 1),
            make_item("ACME", "consumption", 1),
            make_item("GLOBEX", "production", 2),
        ])

        items = store.query_by_company("ACME")

        assert [item["PK"] for item in items] == ["ACME_C0001", "ACME_P0001"]

    def test_query_matches_numeric_company_id(self, make_item):
        """Test items stored with an integer companyId match its string form"""
        store = InMemorySiteStore([make_item(42, "production", 1)])

        assert len(store.query_by_company("42")) == 1

    def test_get_missing_item(self, memory_store):
        assert memory_store.get_item("ACME_P0001", "METADATA") is None

    def test_conditional_replace(self, memory_store, make_item):
        memory_store.conditional_put(make_item("ACME", "production", 1))

        memory_store.conditional_replace(
            make_item("ACME", "production", 1, version=2, name="renamed"), expected_version=1
        )

        stored = memory_store.get_item("ACME_P0001", "METADATA")
        assert stored["version"] == 2
        assert stored["name"] == "renamed"

    def test_conditional_replace_version_mismatch(self, memory_store, make_item):
        memory_store.conditional_put(make_item("ACME", "production", 1, version=3))

        with pytest.raises(VersionConflictError) as exc_info:
            memory_store.conditional_replace(make_item("ACME", "production", 1, version=3), expected_version=2)

        assert exc_info.value.actual == 3

    def test_conditional_replace_missing(self, memory_store, make_item):
        with pytest.raises(SiteNotFoundError):
            memory_store.conditional_replace(make_item("ACME", "production", 1), expected_version=1)

    def test_delete_item(self, memory_store, make_item):
        item = make_item("ACME", "production", 1)
        memory_store.conditional_put(item)

        assert memory_store.delete_item("ACME_P0001", "METADATA") == item
        assert memory_store.delete_item("ACME_P0001", "METADATA") is None
        assert len(memory_store) == 0
