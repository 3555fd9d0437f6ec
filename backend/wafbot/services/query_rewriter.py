"""
Query Rewriter
Normalizes generated SQL before submission:

- qualifies bare WAF table names with their Glue database
- converts JST ``time_dt BETWEEN`` literals to UTC timestamp literals
- expands year-only ``BETWEEN`` bounds to full timestamps

Every rule leaves its own output untouched, so rewriting twice is the
same as rewriting once.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

GLUE_DB_AP_NORTHEAST_1 = "amazon_security_lake_glue_db_ap_northeast_1"
GLUE_DB_US_EAST_1 = "amazon_security_lake_glue_db_us_east_1"
WAF_TABLE_AP_NORTHEAST_1 = "amazon_security_lake_table_ap_northeast_1_waf_2_0"
WAF_TABLE_US_EAST_1 = "amazon_security_lake_table_us_east_1_waf_2_0"

# bare table name -> fully-qualified name
QUALIFIED_TABLES: Dict[str, str] = {
    WAF_TABLE_AP_NORTHEAST_1: f"{GLUE_DB_AP_NORTHEAST_1}.{WAF_TABLE_AP_NORTHEAST_1}",
    WAF_TABLE_US_EAST_1: f"{GLUE_DB_US_EAST_1}.{WAF_TABLE_US_EAST_1}",
}

TIMESTAMP_COLUMN = "time_dt"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
# Literals without an offset are JST
LOCAL_UTC_OFFSET = timedelta(hours=9)

_TIMESTAMP_BETWEEN_RE = re.compile(
    rf"{TIMESTAMP_COLUMN}\s+BETWEEN\s+'([^']+)'\s+AND\s+'([^']+)'"
)
_BETWEEN_RE = re.compile(r"BETWEEN\s+'([^']+)'\s+AND\s+'([^']+)'")
_YEAR_RE = re.compile(r"^\d{4}$")


def qualify_tables(sql: str) -> str:
    """Prefix bare WAF table names with their database, once."""
    for table, qualified in QUALIFIED_TABLES.items():
        if table in sql and qualified not in sql:
            sql = sql.replace(table, qualified)
            logger.debug(f"Qualified table reference: {qualified}")
    return sql


def _is_year(literal: str) -> bool:
    return bool(_YEAR_RE.match(literal))


def _expand_year(year: str, upper: bool) -> str:
    return f"{year}-12-31 23:59:59" if upper else f"{year}-01-01 00:00:00"


def _local_to_utc(literal: str) -> str:
    """Shift a JST literal to UTC; anything unparseable or zoned is returned as-is."""
    if "+" in literal or "Z" in literal:
        return literal
    try:
        parsed = datetime.strptime(literal, TIMESTAMP_FORMAT)
    except ValueError:
        return literal
    converted = (parsed - LOCAL_UTC_OFFSET).strftime(TIMESTAMP_FORMAT)
    logger.info(f"JST to UTC conversion: {literal} -> {converted}")
    return converted


def _normalize_bound(literal: str, upper: bool) -> str:
    if _is_year(literal):
        return _expand_year(literal, upper)
    return _local_to_utc(literal)


def normalize_timestamp_range(sql: str) -> str:
    """
    Rewrite ``time_dt BETWEEN 'a' AND 'b'`` as typed UTC timestamp literals.

    Each bound is converted independently; one that cannot be parsed is kept
    verbatim but still wrapped.
    """
    def _replace(match: "re.Match[str]") -> str:
        lower = _normalize_bound(match.group(1), upper=False)
        upper = _normalize_bound(match.group(2), upper=True)
        return f"{TIMESTAMP_COLUMN} BETWEEN TIMESTAMP '{lower}' AND TIMESTAMP '{upper}'"

    return _TIMESTAMP_BETWEEN_RE.sub(_replace, sql)


def expand_year_bounds(sql: str) -> str:
    """
    Expand ``BETWEEN '2020' AND '2021'`` to full-year timestamp literals.

    Replacement is positional: the first occurrence of the quoted literal
    anywhere in the text is replaced, not necessarily the one inside the
    matched clause.
    """
    for lower, upper in _BETWEEN_RE.findall(sql):
        if _is_year(lower):
            sql = sql.replace(f"'{lower}'", f"TIMESTAMP '{_expand_year(lower, upper=False)}'", 1)
        if _is_year(upper):
            sql = sql.replace(f"'{upper}'", f"TIMESTAMP '{_expand_year(upper, upper=True)}'", 1)
    return sql


def rewrite(sql: str) -> str:
    """Apply every rewrite rule. Pure and total."""
    rewritten = sql.strip()
    rewritten = qualify_tables(rewritten)
    rewritten = normalize_timestamp_range(rewritten)
    rewritten = expand_year_bounds(rewritten)
    logger.info(f"Preprocessed query: {rewritten}")
    return rewritten


def extract_date_range(sql: str) -> Optional[Tuple[str, str]]:
    """Return the rewritten ``time_dt`` bounds, if the query has them"""
    match = re.search(
        rf"{TIMESTAMP_COLUMN}\s+BETWEEN\s+TIMESTAMP\s+'([^']+)'\s+AND\s+TIMESTAMP\s+'([^']+)'",
        sql,
    )
    if not match:
        return None
    return match.group(1), match.group(2)


def describe_date_range(sql: str) -> str:
    bounds = extract_date_range(sql)
    if not bounds:
        return "unknown"
    return f"from {bounds[0]} to {bounds[1]}"
