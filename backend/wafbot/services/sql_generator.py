"""
SQL Generation
Turns a natural-language WAF question into Athena SQL through the chat model
"""

import logging
import re
from typing import Optional

from wafbot.core.exceptions import GenerationError
from wafbot.core.logging_config import preview
from wafbot.services.bedrock_client import BedrockTextGenerator, TextGenerator, content_text
from wafbot.services.query_rewriter import QUALIFIED_TABLES, WAF_TABLE_AP_NORTHEAST_1, WAF_TABLE_US_EAST_1

logger = logging.getLogger(__name__)

_TABLE_A = QUALIFIED_TABLES[WAF_TABLE_AP_NORTHEAST_1]
_TABLE_B = QUALIFIED_TABLES[WAF_TABLE_US_EAST_1]

PROMPT_TEMPLATE = f"""Generate an Athena SQL query based on the following user request.

### Table Information:
- Table: {_TABLE_A} (WAF test-api table)
- Table: {_TABLE_B} (WAF test-frontend table)

### Main Columns:
- time_dt (timestamp) - Event timestamp
- accountid (string) - AWS Account ID
- metadata.product.feature.uid (string) - WAF identifier
- http_request.url.hostname (string) - Request hostname
- src_endpoint.ip (string) - Source IP address
- unmapped['action'] - WAF action (ALLOW, BLOCK, COUNT)

### SQL Examples:

-- Example 1: Count requests by action type
SELECT
    unmapped['action'] AS action_type,
    COUNT(*) AS request_count
FROM {_TABLE_A}
WHERE
    time_dt >= current_date - INTERVAL '1' DAY
GROUP BY unmapped['action']
ORDER BY request_count DESC
LIMIT 5;

-- Example 2: Top source IPs
SELECT
    src_endpoint.ip AS source_ip,
    COUNT(*) AS request_count
FROM {_TABLE_A}
WHERE
    time_dt >= current_date - INTERVAL '1' DAY
GROUP BY src_endpoint.ip
ORDER BY request_count DESC
LIMIT 5;

-- Example 3: Blocked requests analysis
SELECT
    http_request.url.hostname AS hostname,
    COUNT(*) AS block_count
FROM {_TABLE_A}
WHERE
    unmapped['action'] = 'BLOCK'
    AND time_dt >= current_date - INTERVAL '1' DAY
GROUP BY http_request.url.hostname
ORDER BY block_count DESC
LIMIT 5;
"""

REGION_B_NOTE = (
    f"Note: this request concerns the frontend (global) WAF. Query {_TABLE_B}."
)

PROMPT_FOOTER = "Please generate only the SQL query without any explanation."


def build_prompt(question: str, region_b_hint: bool = False) -> str:
    prompt = PROMPT_TEMPLATE + f"\n### User Request: {question}\n\n"
    if region_b_hint:
        prompt += REGION_B_NOTE + "\n\n"
    return prompt + PROMPT_FOOTER


def _sanitize_llm_sql_response(text: str) -> str:
    if not text:
        return ""
    cleaned = text.strip()
    fenced = re.search(r"```(?:sql)?\s*(.*?)```", cleaned, re.DOTALL | re.IGNORECASE)
    if fenced:
        cleaned = fenced.group(1).strip()
    cleaned = re.sub(r"^\s*SQL\s*:\s*", "", cleaned, flags=re.IGNORECASE)
    lines = cleaned.splitlines()
    start_idx = 0
    for i, line in enumerate(lines):
        if re.match(r"^\s*(WITH|SELECT|--)", line, re.IGNORECASE):
            start_idx = i
            break
    cleaned = "\n".join(lines[start_idx:]).strip()
    cleaned = cleaned.replace("```", "").strip()
    return cleaned


class SqlGenerator:
    """GenerateSQL(question) -> sql; any failure is a GenerationError"""

    def __init__(self, generator: Optional[TextGenerator] = None):
        self.generator = generator or BedrockTextGenerator()

    async def generate_sql(self, question: str, region_b_hint: bool = False) -> str:
        prompt = build_prompt(question, region_b_hint)
        try:
            content = await self.generator.generate(prompt)
        except Exception as e:
            logger.error(f"SQL generation call failed: {e}")
            raise GenerationError(f"SQL generation failed: {e}") from e

        text = content_text(content)
        if text is None:
            raise GenerationError(
                "SQL generation returned a malformed response",
                details={"content_type": type(content).__name__},
            )

        sql = _sanitize_llm_sql_response(text)
        if not sql:
            raise GenerationError("SQL generation returned empty SQL output")

        logger.info(f"Generated SQL: {preview(sql, 300)}")
        return sql
