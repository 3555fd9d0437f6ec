"""
Result Analysis
Asks the chat model for a short security-oriented summary of a query result
"""

import logging
from typing import Optional

from wafbot.models.query_models import ResultTable
from wafbot.services.bedrock_client import BedrockTextGenerator, TextGenerator, content_text
from wafbot.services.query_rewriter import describe_date_range
from wafbot.services.result_formatter import FormatMode, format_results

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No data found. Please try different search criteria."
ANALYSIS_UNAVAILABLE_MESSAGE = "Analysis is unavailable for this result."

ANALYSIS_PROMPT_TEMPLATE = """You are a security analyst reviewing AWS WAF logs.

### User Question:
{question}

### Executed Query:
{sql}

### Time Range:
{time_range}

### Query Results:
{table}

Summarize what these results show in 3 to 5 short bullet points. Point out
notable sources, blocked traffic and anything that looks like an attack.
Do not repeat the table."""


def build_analysis_prompt(question: str, sql: str, table: ResultTable) -> str:
    return ANALYSIS_PROMPT_TEMPLATE.format(
        question=question,
        sql=sql,
        time_range=describe_date_range(sql),
        table=format_results(table.rows, FormatMode.SUMMARIZE),
    )


class ResultAnalyzer:
    """Non-fatal: any model failure degrades to a fixed notice"""

    def __init__(self, generator: Optional[TextGenerator] = None):
        self.generator = generator or BedrockTextGenerator()

    async def analyze(self, question: str, sql: str, table: ResultTable) -> str:
        if table.data_row_count == 0:
            return NO_DATA_MESSAGE

        prompt = build_analysis_prompt(question, sql, table)
        try:
            content = await self.generator.generate(prompt)
        except Exception as e:
            logger.warning(f"Result analysis failed: {e}")
            return ANALYSIS_UNAVAILABLE_MESSAGE

        text = content_text(content)
        if not text or not text.strip():
            logger.warning("Result analysis returned no text")
            return ANALYSIS_UNAVAILABLE_MESSAGE
        return text.strip()
