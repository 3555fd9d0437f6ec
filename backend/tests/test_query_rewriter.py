"""
Tests for SQL rewriting: table qualification, JST->UTC literals, year bounds
"""

import pytest

from wafbot.services.query_rewriter import (
    GLUE_DB_AP_NORTHEAST_1,
    GLUE_DB_US_EAST_1,
    WAF_TABLE_AP_NORTHEAST_1,
    WAF_TABLE_US_EAST_1,
    describe_date_range,
    expand_year_bounds,
    extract_date_range,
    normalize_timestamp_range,
    qualify_tables,
    rewrite,
)

QUALIFIED_A = f"{GLUE_DB_AP_NORTHEAST_1}.{WAF_TABLE_AP_NORTHEAST_1}"
QUALIFIED_B = f"{GLUE_DB_US_EAST_1}.{WAF_TABLE_US_EAST_1}"

SAMPLE_QUERIES = [
    f"SELECT * FROM {WAF_TABLE_AP_NORTHEAST_1} LIMIT 5",
    f"SELECT * FROM {QUALIFIED_B} WHERE time_dt BETWEEN '2024-01-01 10:00:00' AND '2024-01-01 12:00:00'",
    f"SELECT count(*) FROM {WAF_TABLE_US_EAST_1} WHERE time_dt BETWEEN '2020' AND '2021'",
    "SELECT * FROM t WHERE year BETWEEN '2020' AND '2021'",
    "SELECT * FROM t WHERE time_dt BETWEEN '2024-01-01 10:00:00' AND 'yesterday'",
    "SELECT * FROM t WHERE time_dt BETWEEN '2024-01-01T10:00:00Z' AND '2024-01-02 00:00:00+09:00'",
    "not sql at all",
    "",
]


class TestQualifyTables:
    """Bare WAF table names get their Glue database prefix"""

    def test_qualifies_bare_primary_table(self):
        sql = f"SELECT * FROM {WAF_TABLE_AP_NORTHEAST_1}"
        assert qualify_tables(sql) == f"SELECT * FROM {QUALIFIED_A}"

    def test_qualifies_bare_secondary_table(self):
        sql = f"SELECT * FROM {WAF_TABLE_US_EAST_1}"
        assert qualify_tables(sql) == f"SELECT * FROM {QUALIFIED_B}"

    def test_already_qualified_is_untouched(self):
        sql = f"SELECT * FROM {QUALIFIED_A}"
        assert qualify_tables(sql) == sql

    def test_each_catalog_checked_on_its_own(self):
        sql = f"SELECT * FROM {QUALIFIED_A} UNION ALL SELECT * FROM {WAF_TABLE_US_EAST_1}"
        result = qualify_tables(sql)
        assert result.count(QUALIFIED_A) == 1
        assert result.count(QUALIFIED_B) == 1

    def test_second_pass_keeps_length(self):
        once = qualify_tables(f"SELECT * FROM {WAF_TABLE_AP_NORTHEAST_1}")
        assert len(qualify_tables(once)) == len(once)


class TestTimestampNormalization:
    """time_dt BETWEEN literals are JST and become UTC timestamp literals"""

    def test_shifts_both_bounds_back_nine_hours(self):
        sql = "SELECT * FROM t WHERE time_dt BETWEEN '2024-01-01 10:00:00' AND '2024-01-01 12:00:00'"
        result = normalize_timestamp_range(sql)
        assert "time_dt BETWEEN TIMESTAMP '2024-01-01 01:00:00' AND TIMESTAMP '2024-01-01 03:00:00'" in result

    def test_shift_crosses_midnight(self):
        sql = "WHERE time_dt BETWEEN '2024-03-01 05:00:00' AND '2024-03-01 08:59:59'"
        result = normalize_timestamp_range(sql)
        assert "TIMESTAMP '2024-02-29 20:00:00'" in result
        assert "TIMESTAMP '2024-02-29 23:59:59'" in result

    def test_unparseable_bound_is_wrapped_unchanged(self):
        sql = "WHERE time_dt BETWEEN '2024-01-01 10:00:00' AND 'yesterday'"
        result = normalize_timestamp_range(sql)
        assert result == "WHERE time_dt BETWEEN TIMESTAMP '2024-01-01 01:00:00' AND TIMESTAMP 'yesterday'"

    def test_zoned_literals_are_not_shifted(self):
        sql = "WHERE time_dt BETWEEN '2024-01-01 10:00:00+09:00' AND '2024-01-01T12:00:00Z'"
        result = normalize_timestamp_range(sql)
        assert "TIMESTAMP '2024-01-01 10:00:00+09:00'" in result
        assert "TIMESTAMP '2024-01-01T12:00:00Z'" in result

    def test_year_bounds_on_timestamp_column_are_expanded_without_shift(self):
        sql = "WHERE time_dt BETWEEN '2020' AND '2021'"
        result = rewrite(sql)
        assert result == "WHERE time_dt BETWEEN TIMESTAMP '2020-01-01 00:00:00' AND TIMESTAMP '2021-12-31 23:59:59'"

    def test_other_columns_are_left_alone(self):
        sql = "WHERE created BETWEEN '2024-01-01 10:00:00' AND '2024-01-01 12:00:00'"
        assert normalize_timestamp_range(sql) == sql


class TestYearExpansion:
    """Year-only BETWEEN bounds become full-year timestamps"""

    def test_expands_lower_and_upper(self):
        result = expand_year_bounds("SELECT * FROM t WHERE year BETWEEN '2020' AND '2021'")
        assert "BETWEEN TIMESTAMP '2020-01-01 00:00:00' AND TIMESTAMP '2021-12-31 23:59:59'" in result

    def test_non_year_bounds_untouched(self):
        sql = "WHERE x BETWEEN 'abc' AND '20210'"
        assert expand_year_bounds(sql) == sql

    def test_replaces_first_occurrence_anywhere(self):
        """Known positional limitation: an earlier identical literal is the one replaced"""
        sql = "SELECT '2020' AS label FROM t WHERE year BETWEEN '2020' AND '2021'"
        result = expand_year_bounds(sql)
        assert result.startswith("SELECT TIMESTAMP '2020-01-01 00:00:00' AS label")
        assert "BETWEEN '2020' AND TIMESTAMP '2021-12-31 23:59:59'" in result


class TestRewrite:
    """Full pipeline"""

    def test_strips_surrounding_whitespace(self):
        assert rewrite("  SELECT 1 \n") == "SELECT 1"

    @pytest.mark.parametrize("sql", SAMPLE_QUERIES)
    def test_idempotent(self, sql):
        once = rewrite(sql)
        assert rewrite(once) == once

    @pytest.mark.parametrize("sql", SAMPLE_QUERIES)
    def test_never_fails(self, sql):
        assert isinstance(rewrite(sql), str)

    def test_combined_rules(self):
        sql = (
            f"SELECT src_endpoint.ip FROM {WAF_TABLE_AP_NORTHEAST_1} "
            "WHERE time_dt BETWEEN '2024-06-01 09:00:00' AND '2024-06-02 09:00:00'"
        )
        result = rewrite(sql)
        assert QUALIFIED_A in result
        assert "TIMESTAMP '2024-06-01 00:00:00' AND TIMESTAMP '2024-06-02 00:00:00'" in result


class TestDateRange:
    def test_extracts_rewritten_bounds(self):
        sql = rewrite("WHERE time_dt BETWEEN '2024-01-01 10:00:00' AND '2024-01-01 12:00:00'")
        assert extract_date_range(sql) == ("2024-01-01 01:00:00", "2024-01-01 03:00:00")
        assert describe_date_range(sql) == "from 2024-01-01 01:00:00 to 2024-01-01 03:00:00"

    def test_unknown_without_range(self):
        assert extract_date_range("SELECT 1") is None
        assert describe_date_range("SELECT 1") == "unknown"
