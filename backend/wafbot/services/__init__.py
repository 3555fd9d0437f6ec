"""
Domain services for the WAF query bot
Rewriting, routing, execution, formatting and the external model and chat calls
"""

from .query_executor import ExecutionOutcome, QueryExecutor
from .result_formatter import FormatMode, format_results

__all__ = [
    "ExecutionOutcome",
    "QueryExecutor",
    "FormatMode",
    "format_results",
]
