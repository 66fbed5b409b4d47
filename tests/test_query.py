"""
Tests for query.py - date parsing and search query construction.
"""

import pytest
from datetime import date

from jobtrack.errors import ParseError
from jobtrack.query import SearchFilters, build_search_query, parse_date, resolve_date


class TestParseDate:
    """Test dd-mm-yyyy parsing."""

    def test_valid_date(self):
        assert parse_date("15-02-2024") == date(2024, 2, 15)

    def test_surrounding_whitespace(self):
        assert parse_date(" 01-03-2024 ") == date(2024, 3, 1)

    @pytest.mark.parametrize("value", ["2024-02-15", "15/02/2024", "31-02-2024", "tomorrow", ""])
    def test_invalid_dates(self, value):
        with pytest.raises(ParseError):
            parse_date(value)

    def test_resolve_today(self):
        assert resolve_date("today") == date.today()
        assert resolve_date(None) == date.today()
        assert resolve_date("") == date.today()

    def test_resolve_explicit(self):
        assert resolve_date("01-03-2024") == date(2024, 3, 1)

    def test_resolve_invalid(self):
        with pytest.raises(ParseError):
            resolve_date("03/01/2024")


class TestSearchFilters:
    """Test normalisation of raw filter values."""

    def test_empty_values_become_none(self):
        filters = SearchFilters.from_raw("", "", "")
        assert filters.is_empty()
        assert filters.dropped == []

    def test_valid_date_is_parsed(self):
        filters = SearchFilters.from_raw(date="15-02-2024")
        assert filters.date == date(2024, 2, 15)

    def test_bad_date_is_dropped(self):
        filters = SearchFilters.from_raw(title="Eng", date="2024/02/15")
        assert filters.date is None
        assert filters.title == "Eng"
        assert filters.dropped == ["date"]


class TestBuildSearchQuery:
    """Test the generated SQL."""

    def test_no_filters_has_no_where_clause(self):
        sql = str(build_search_query(SearchFilters()))
        assert "WHERE" not in sql
        assert "ORDER BY jobs.date ASC, jobs.id ASC" in sql

    def test_values_are_bound_not_inlined(self):
        payload = "x' OR 1=1 --"
        stmt = build_search_query(SearchFilters(title=payload, description=payload))
        sql = str(stmt)
        compiled = stmt.compile()

        assert payload not in sql
        assert "LIKE" in sql.upper()
        assert any(payload in str(v) for v in compiled.params.values())

    def test_date_is_bound(self):
        stmt = build_search_query(SearchFilters(date=date(2024, 2, 15)))
        compiled = stmt.compile()
        assert date(2024, 2, 15) in compiled.params.values()
        assert "2024" not in str(stmt)

    def test_all_filters_combined(self):
        stmt = build_search_query(SearchFilters(title="a", description="b", date=date(2024, 1, 1)))
        sql = str(stmt)
        assert sql.count(" AND ") >= 2
