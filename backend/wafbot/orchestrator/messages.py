"""
Chat message composition for query results and failures
"""

from typing import Optional

from wafbot.models.query_models import ResultTable

RESULT_TITLE = "*WAF Log Search Result*"
PROMPT_DISPLAY_LIMIT = 100


def shorten_prompt(text: str, limit: int = PROMPT_DISPLAY_LIMIT) -> str:
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def build_success_message(
    question: str,
    sql: str,
    table: ResultTable,
    formatted_table: str,
    analysis: str,
    execution_id: Optional[str] = None,
    console_url: Optional[str] = None,
    show_sql: bool = True,
    show_query_id: bool = True,
) -> str:
    parts = [f"{RESULT_TITLE}\n\n"]

    if show_sql:
        parts.append(f"*Input Prompt:*\n```\n{shorten_prompt(question)}\n```\n\n")
        parts.append(f"*Executed Query:*\n```\n{sql}\n```\n\n")

    # Header row is not counted
    parts.append(f"*Result:* {table.data_row_count} rows\n")
    if show_query_id and execution_id:
        parts.append(f"*Athena QueryID:* `{execution_id}`\n")
        parts.append(f"*Console URL:* {console_url}\n\n")

    if table.data_row_count > 0:
        parts.append("*Result Data:*\n")
        parts.append(formatted_table)
    else:
        parts.append("*Result Data:* No data available")

    parts.append(f"\n*Analysis Result:*\n{analysis}")
    return "".join(parts)


def build_failure_message(
    region: str,
    error_message: str,
    sql: str,
    console_url: Optional[str] = None,
) -> str:
    """SQL is always shown on failure, whatever the display toggles say"""
    message = f"Query failed (region: {region}): {error_message}\n\n"
    message += f"Executed SQL:\n```\n{sql}\n```"
    if console_url:
        message += f"\n\nAthena Console: {console_url}"
    return message
