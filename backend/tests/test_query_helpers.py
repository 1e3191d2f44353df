"""Tests for list helpers and document code counters."""

import pytest

from conftest import OTHER_TENANT, TENANT, make_warehouse
from crud import code_counters
from models.warehouses import Warehouse
from utils.query_helpers import apply_search, apply_sort, normalize_direction, paginate

SEARCH_FIELDS = ["code", "name"]


@pytest.fixture
def warehouses(db):
    return [make_warehouse(db, f"WH{n:02d}", name) for n, name in
            enumerate(["Central", "North depot", "South depot", "Harbour", "Airport"], start=1)]


def codes(query):
    return [warehouse.code for warehouse in query.all()]


class TestSearch:
    """Tests for apply_search()."""

    def test_matches_any_field_case_insensitive(self, db, warehouses):
        query = apply_search(db.query(Warehouse), Warehouse, "DEPOT", SEARCH_FIELDS)

        assert sorted(codes(query)) == ["WH02", "WH03"]

    def test_single_field(self, db, warehouses):
        query = apply_search(db.query(Warehouse), Warehouse, "wh01", SEARCH_FIELDS, search_field="name")

        assert codes(query) == []

    def test_unknown_field_searches_all(self, db, warehouses):
        query = apply_search(db.query(Warehouse), Warehouse, "wh01", SEARCH_FIELDS, search_field="password")

        assert codes(query) == ["WH01"]

    def test_blank_term_is_ignored(self, db, warehouses):
        assert len(apply_search(db.query(Warehouse), Warehouse, "  ", SEARCH_FIELDS).all()) == 5


class TestSort:
    """Tests for apply_sort()."""

    def test_allowed_field(self, db, warehouses):
        query = apply_sort(db.query(Warehouse), Warehouse, "name", "asc", SEARCH_FIELDS)

        assert codes(query) == ["WH05", "WH01", "WH04", "WH02", "WH03"]

    def test_unknown_field_falls_back(self, db, warehouses):
        query = apply_sort(db.query(Warehouse), Warehouse, "secret", "sideways", SEARCH_FIELDS, default="code")

        assert codes(query) == ["WH05", "WH04", "WH03", "WH02", "WH01"]

    @pytest.mark.parametrize("direction,expected", [("ASC", "asc"), ("desc", "desc"), (None, "asc"), ("up", "asc")])
    def test_normalize_direction(self, direction, expected):
        assert normalize_direction(direction) == expected


class TestPaginate:
    """Tests for paginate()."""

    def test_envelope(self, db, warehouses):
        query = apply_sort(db.query(Warehouse), Warehouse, "code", "asc", SEARCH_FIELDS)

        result = paginate(query, page=2, per_page=2, serializer=lambda warehouse: warehouse.code)

        assert result["data"] == ["WH03", "WH04"]
        assert result["pagination"] == {
            "current_page": 2,
            "per_page": 2,
            "total": 5,
            "last_page": 3,
            "from": 3,
            "to": 4,
            "has_more_pages": True,
        }

    def test_page_past_the_end(self, db, warehouses):
        result = paginate(db.query(Warehouse), page=9, per_page=2)

        assert result["data"] == []
        assert result["pagination"]["from"] is None
        assert result["pagination"]["has_more_pages"] is False

    def test_per_page_clamped(self, db, warehouses):
        assert paginate(db.query(Warehouse), page=0, per_page=1000)["pagination"]["per_page"] == 200
        assert paginate(db.query(Warehouse), page=0, per_page=0)["pagination"]["current_page"] == 1

    def test_empty_query_has_one_page(self, db):
        assert paginate(db.query(Warehouse))["pagination"]["last_page"] == 1


class TestCodeCounters:
    """Tests for per-tenant document numbering."""

    def test_counts_up_per_tenant(self, db):
        assert code_counters.next_value(db, TENANT, "purchase") == 1
        assert code_counters.next_value(db, TENANT, "purchase") == 2
        assert code_counters.next_value(db, OTHER_TENANT, "purchase") == 1
        assert code_counters.peek_value(db, TENANT, "purchase") == 2

    def test_counters_are_independent(self, db):
        code_counters.next_value(db, TENANT, "purchase")

        assert code_counters.peek_value(db, TENANT, "sale_INV") == 0

    def test_code_format(self, db):
        assert code_counters.next_code(db, TENANT, "adjust", "ADJ") == "ADJ-000001"
        assert code_counters.next_code(db, TENANT, "adjust", "ADJ", width=3) == "ADJ-002"
