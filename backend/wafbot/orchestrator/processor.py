"""
Query Orchestrator
One request lifecycle per inbound Slack event:

intake and dedup -> SQL generation -> execution -> formatting and analysis -> notification
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Union

from pydantic import ValidationError

from wafbot.core.exceptions import NotificationError
from wafbot.core.logging_config import clear_event_context, preview, set_event_context
from wafbot.core.prometheus_metrics import events_total
from wafbot.models.slack_models import SlackEventEnvelope
from wafbot.orchestrator.messages import build_failure_message, build_success_message
from wafbot.services.dedup_cache import DedupCache
from wafbot.services.query_executor import QueryExecutor
from wafbot.services.region_router import contains_region_b_hint
from wafbot.services.result_analyzer import ResultAnalyzer
from wafbot.services.result_formatter import FormatMode, format_results
from wafbot.services.slack_notifier import SlackNotifier
from wafbot.services.sql_generator import SqlGenerator

logger = logging.getLogger(__name__)

RETRY_HEADER = "x-slack-retry-num"
RETRY_REASON_HEADER = "x-slack-retry-reason"
EVENT_CALLBACK = "event_callback"
MESSAGE_EVENT_TYPES = ("message", "app_mention")
MIN_QUESTION_LENGTH = 3

STATUS_OK = "ok"
STATUS_ERROR_REPORTED = "error reported to slack"

_ANY_MENTION_RE = re.compile(r"<@[A-Z0-9]+(?:\|[^>]*)?>")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class WebhookResponse:
    """Transport-neutral HTTP answer to a webhook delivery"""
    status_code: int
    body: str
    content_type: str = "application/json"
    headers: Dict[str, str] = field(default_factory=lambda: {"X-Processed": "true"})

    @classmethod
    def status(cls, status: str, status_code: int = 200) -> "WebhookResponse":
        return cls(status_code=status_code, body=json.dumps({"status": status}))

    @classmethod
    def challenge(cls, value: str) -> "WebhookResponse":
        return cls(status_code=200, body=value, content_type="text/plain")

    @property
    def disposition(self) -> str:
        if self.content_type == "text/plain":
            return "challenge"
        return json.loads(self.body).get("status", "unknown")


def normalize_question(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


class QueryOrchestrator:
    """
    Owns the three dedup caches for the life of the process. All
    collaborators are injected so tests can swap in fakes.
    """

    def __init__(
        self,
        sql_generator: SqlGenerator,
        executor: QueryExecutor,
        analyzer: ResultAnalyzer,
        notifier: SlackNotifier,
        inbound_cache: DedupCache,
        recent_query_cache: DedupCache,
        bot_user_id: Optional[str] = None,
        show_sql: bool = True,
        show_query_id: bool = True,
    ):
        self.sql_generator = sql_generator
        self.executor = executor
        self.analyzer = analyzer
        self.notifier = notifier
        self.inbound_cache = inbound_cache
        self.recent_query_cache = recent_query_cache
        self.bot_user_id = bot_user_id
        self.show_sql = show_sql
        self.show_query_id = show_query_id

    async def handle_webhook(
        self,
        body: Union[str, bytes],
        headers: Optional[Mapping[str, str]] = None,
    ) -> WebhookResponse:
        """Entry point for both the FastAPI route and the Lambda handler"""
        try:
            response = await self._handle(body, {k.lower(): v for k, v in (headers or {}).items()})
        finally:
            clear_event_context()
        events_total.labels(disposition=response.disposition).inc()
        return response

    async def _handle(self, body: Union[str, bytes], headers: Dict[str, str]) -> WebhookResponse:
        retry_num = headers.get(RETRY_HEADER)
        if retry_num:
            logger.info(f"Slack retry detected: {retry_num} (reason: {headers.get(RETRY_REASON_HEADER)})")
            return WebhookResponse.status("retry ignored")

        try:
            payload = json.loads(body)
        except ValueError as e:
            logger.warning(f"Failed to parse payload: {e}")
            return WebhookResponse.status("invalid request", status_code=400)
        if not isinstance(payload, dict):
            logger.warning("Payload is not a JSON object")
            return WebhookResponse.status("invalid request", status_code=400)

        challenge = payload.get("challenge")
        if isinstance(challenge, str):
            logger.info("Responding to Slack URL verification challenge")
            return WebhookResponse.challenge(challenge)

        try:
            envelope = SlackEventEnvelope.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Failed to parse event envelope: {e}")
            return WebhookResponse.status("invalid event format", status_code=400)

        if envelope.type != EVENT_CALLBACK:
            logger.info(f"Ignoring non-event callback request type: {envelope.type}")
            return WebhookResponse.status("ignored")

        event = envelope.event
        if event.type not in MESSAGE_EVENT_TYPES:
            logger.info(f"Ignoring non-message event type: {event.type}")
            return WebhookResponse.status("ignored non-message event")

        if event.bot_id or (self.bot_user_id and event.user == self.bot_user_id):
            logger.info("Ignoring bot's own message")
            return WebhookResponse.status("ignored bot message")

        if envelope.event_id:
            set_event_context(envelope.event_id)
            event_key = f"{envelope.event_id}_{event.text}_{event.channel}"
            if not self.inbound_cache.should_process(event_key):
                logger.info(f"Ignoring duplicate event (ID={envelope.event_id})")
                return WebhookResponse.status("duplicate event")

        logger.info(
            f"Event details - type: {event.type}, user: {event.user}, "
            f"channel: {event.channel}, text: {preview(event.text)}"
        )

        text = self.strip_mention(event.text)
        if len(text) < MIN_QUESTION_LENGTH:
            logger.info("Ignoring empty or too short message")
            return WebhookResponse.status("ignored empty message")

        query_key = f"{event.channel}:{normalize_question(text)}"
        if not self.recent_query_cache.should_process(query_key):
            logger.info(f"Ignoring duplicate query '{preview(text)}'")
            return WebhookResponse.status("duplicate query ignored")

        status = await self.process_question(event.channel, text)
        return WebhookResponse.status(status)

    def strip_mention(self, text: str) -> str:
        text = text.strip()
        if self.bot_user_id:
            text = re.sub(rf"<@{re.escape(self.bot_user_id)}(?:\|[^>]*)?>", "", text)
        else:
            text = _ANY_MENTION_RE.sub("", text)
        return text.strip()

    async def process_question(self, channel: str, text: str) -> str:
        """
        Run one question end to end and post the outcome.

        GenerationError propagates: without SQL there is nothing to report.
        Every other failure is posted to the channel.
        """
        logger.info(f"Processing query: {preview(text)}")

        region_b_hint = contains_region_b_hint(text)
        if region_b_hint:
            logger.info("Question mentions the frontend/global WAF")

        sql = await self.sql_generator.generate_sql(text, region_b_hint=region_b_hint)
        outcome = await self.executor.execute(sql)

        if outcome.error is not None:
            message = build_failure_message(
                region=outcome.region.value,
                error_message=outcome.error.message,
                sql=outcome.sql,
                console_url=outcome.console_url,
            )
            logger.warning(f"Query failed: {preview(message, 300)}")
            await self._notify(channel, message)
            return STATUS_ERROR_REPORTED

        table = outcome.table
        analysis_task = asyncio.create_task(self.analyzer.analyze(text, outcome.sql, table))
        formatted = format_results(table.rows, FormatMode.DISPLAY)
        analysis = await analysis_task

        message = build_success_message(
            question=text,
            sql=outcome.sql,
            table=table,
            formatted_table=formatted,
            analysis=analysis,
            execution_id=outcome.execution_id,
            console_url=outcome.console_url,
            show_sql=self.show_sql,
            show_query_id=self.show_query_id,
        )
        logger.info(
            f"Starting to send to Slack (region: {outcome.region.value}, message size: {len(message)})"
        )
        await self._notify(channel, message)
        return STATUS_OK

    async def _notify(self, channel: str, message: str) -> None:
        try:
            await self.notifier.post_message(channel, message)
        except NotificationError as e:
            # Not retried and never fails the invocation
            logger.error(f"Slack send error: {e.message}")
