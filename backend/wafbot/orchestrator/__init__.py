"""
Query Orchestrator - Slack question to Athena answer, one event at a time
"""

from wafbot.orchestrator.processor import QueryOrchestrator, WebhookResponse

__all__ = [
    "QueryOrchestrator",
    "WebhookResponse",
]
