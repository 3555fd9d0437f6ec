"""
Startup wiring: builds the orchestrator and its collaborators from settings
"""

import logging
from typing import Optional, Tuple

from wafbot.core.client_registry import registry
from wafbot.core.config import Settings, get_settings
from wafbot.orchestrator.processor import QueryOrchestrator
from wafbot.services.athena_client import EngineClientRegistry
from wafbot.services.dedup_cache import (
    create_inbound_event_cache,
    create_outbound_notification_cache,
    create_recent_query_cache,
)
from wafbot.services.query_executor import QueryExecutor
from wafbot.services.result_analyzer import ResultAnalyzer
from wafbot.services.slack_notifier import SlackNotifier
from wafbot.services.slack_token import resolve_slack_token
from wafbot.services.sql_generator import SqlGenerator

logger = logging.getLogger(__name__)


def build_orchestrator(
    app_settings: Optional[Settings] = None,
    engine_clients: Optional[EngineClientRegistry] = None,
    slack_token: Optional[str] = None,
) -> QueryOrchestrator:
    """
    Construct the orchestrator once per process. The dedup caches created
    here live as long as the returned object.
    """
    cfg = app_settings or get_settings()
    clients = engine_clients or EngineClientRegistry()
    token = slack_token if slack_token is not None else resolve_slack_token(cfg.SLACK_BOT_TOKEN_SECRET_NAME)

    logger.info(
        f"Env config - SHOW_SQL_IN_SLACK: {cfg.SHOW_SQL_IN_SLACK}, "
        f"SHOW_QUERY_ID_IN_SLACK: {cfg.SHOW_QUERY_ID_IN_SLACK}"
    )

    executor = QueryExecutor(
        clients,
        cfg.region_profiles(),
        poll_interval=cfg.ATHENA_POLL_INTERVAL_SECONDS,
        timeout=cfg.ATHENA_QUERY_TIMEOUT_SECONDS,
        max_results=cfg.ATHENA_MAX_RESULTS,
    )
    notifier = SlackNotifier(
        token,
        cache=create_outbound_notification_cache(),
        api_url=cfg.SLACK_API_URL,
        timeout_seconds=cfg.SLACK_TIMEOUT_SECONDS,
    )
    return QueryOrchestrator(
        sql_generator=SqlGenerator(),
        executor=executor,
        analyzer=ResultAnalyzer(),
        notifier=notifier,
        inbound_cache=create_inbound_event_cache(),
        recent_query_cache=create_recent_query_cache(),
        bot_user_id=cfg.SLACK_BOT_USER_ID,
        show_sql=cfg.SHOW_SQL_IN_SLACK,
        show_query_id=cfg.SHOW_QUERY_ID_IN_SLACK,
    )


async def init_orchestrator() -> Tuple[bool, Optional[str]]:
    try:
        clients = EngineClientRegistry()
        orchestrator = build_orchestrator(engine_clients=clients)
        registry.set_engine_clients(clients)
        registry.set_query_orchestrator(orchestrator)
        logger.info("Query orchestrator initialized")
        return True, None
    except Exception as e:
        logger.error(f"Orchestrator init failed: {e}")
        return False, str(e)


def get_or_create_orchestrator() -> QueryOrchestrator:
    """Reuse the registered orchestrator so caches survive warm invocations"""
    orchestrator = registry.get_query_orchestrator()
    if orchestrator is None:
        orchestrator = build_orchestrator()
        registry.set_query_orchestrator(orchestrator)
    return orchestrator
