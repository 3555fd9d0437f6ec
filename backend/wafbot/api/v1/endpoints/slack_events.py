"""
Slack Events API webhook
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from wafbot.core.client_registry import registry
from wafbot.core.exceptions import ConfigurationException
from wafbot.orchestrator.processor import QueryOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slack")


def get_orchestrator() -> QueryOrchestrator:
    orchestrator = registry.get_query_orchestrator()
    if orchestrator is None:
        raise ConfigurationException("Query orchestrator is not initialized")
    return orchestrator


@router.post("/events")
async def slack_events(
    request: Request,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
) -> Response:
    body = await request.body()
    result = await orchestrator.handle_webhook(body, dict(request.headers))
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type=result.content_type,
        headers=result.headers,
    )
