"""
Region Router
Chooses the Athena region for a query from the text of the SQL
"""

import logging

from wafbot.models.query_models import RegionTag

logger = logging.getLogger(__name__)

# Substrings in executed SQL that route to us-east-1 (checked case-sensitively)
US_EAST_1_TABLE_MARKERS = (
    "amazon_security_lake_glue_db_us_east_1",
    "amazon_security_lake_table_us_east_1",
    "waf_2_0_us_east_1",
)
FRONTEND_MARKER = "frontend"
GLOBAL_WEBACL_MARKER = "global/webacl"

# Keywords in a natural-language question that hint at the frontend WAF
US_EAST_1_QUESTION_KEYWORDS = (
    "frontend", "front-end", "front end",
    "global",
    "us-east-1", "us east 1",
)


def select_region(sql: str) -> RegionTag:
    """Deterministic region choice; defaults to ap-northeast-1"""
    for marker in US_EAST_1_TABLE_MARKERS:
        if marker in sql:
            logger.info("Region detection: us-east-1 (based on table reference)")
            return RegionTag.US_EAST_1

    if FRONTEND_MARKER in sql:
        logger.info("Region detection: us-east-1 (based on frontend-related keywords)")
        return RegionTag.US_EAST_1

    if GLOBAL_WEBACL_MARKER in sql:
        logger.info("Region detection: us-east-1 (based on global/webacl)")
        return RegionTag.US_EAST_1

    default = RegionTag.default()
    logger.info(f"Region detection: {default.value} (default)")
    return default


def contains_region_b_hint(text: str) -> bool:
    """Case-insensitive check of a user question for frontend/global WAF keywords"""
    lowered = text.lower()
    for keyword in US_EAST_1_QUESTION_KEYWORDS:
        if keyword in lowered:
            logger.info(f"Detected frontend-related keyword '{keyword}'")
            return True
    return False
