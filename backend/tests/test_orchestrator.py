"""
Tests for webhook intake dispositions and the question-to-message flow
"""

import json
from unittest.mock import AsyncMock

import pytest

from conftest import RecordingNotifier, ScriptedTextGenerator
from wafbot.core.exceptions import (
    ExecutionFailedError,
    GenerationError,
    NotificationError,
    RejectedInputError,
)
from wafbot.models.query_models import ExecutionState, RegionTag, ResultTable
from wafbot.orchestrator.messages import build_failure_message, shorten_prompt
from wafbot.orchestrator.processor import QueryOrchestrator, normalize_question
from wafbot.services.dedup_cache import create_inbound_event_cache, create_recent_query_cache
from wafbot.services.query_executor import ExecutionOutcome
from wafbot.services.result_analyzer import ResultAnalyzer
from wafbot.services.sql_generator import REGION_B_NOTE, SqlGenerator

BOT_ID = "UBOT123"
CONSOLE_URL = "https://ap-northeast-1.console.aws.amazon.com/athena/home?region=ap-northeast-1#/query-editor/history/qid-1"
EXECUTED_SQL = "SELECT status, count(*) FROM amazon_security_lake_glue_db_ap_northeast_1.t GROUP BY 1"


def success_outcome(rows=None):
    rows = rows if rows is not None else [["_col0", "status", "count"], ["1", "BLOCK", "5"]]
    return ExecutionOutcome(
        sql=EXECUTED_SQL,
        region=RegionTag.AP_NORTHEAST_1,
        state=ExecutionState.SUCCEEDED,
        execution_id="qid-1",
        table=ResultTable.from_rows(rows),
        console_url=CONSOLE_URL,
    )


class Harness:
    def __init__(self, clock, outcome=None, model=None, notifier=None, **kwargs):
        self.model = model or ScriptedTextGenerator("SELECT 1")
        self.analysis_model = ScriptedTextGenerator("Mostly blocked scanners.")
        self.executor = AsyncMock()
        self.executor.execute.return_value = outcome or success_outcome()
        self.notifier = notifier or RecordingNotifier()
        self.orchestrator = QueryOrchestrator(
            sql_generator=SqlGenerator(self.model),
            executor=self.executor,
            analyzer=ResultAnalyzer(self.analysis_model),
            notifier=self.notifier,
            inbound_cache=create_inbound_event_cache(clock),
            recent_query_cache=create_recent_query_cache(clock),
            **kwargs,
        )

    async def send(self, payload, headers=None):
        body = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
        return await self.orchestrator.handle_webhook(body, headers or {})


def event(text="<@UBOT123> top blocked IPs", event_id="Ev1", channel="C1", user="U1", event_type="app_mention", **extra):
    inner = {"type": event_type, "user": user, "text": text, "channel": channel, **extra}
    return {"type": "event_callback", "event_id": event_id, "event": inner}


def status_of(response):
    return json.loads(response.body)["status"]


@pytest.fixture
def harness(clock):
    return Harness(clock, bot_user_id=BOT_ID)


class TestIntake:

    @pytest.mark.asyncio
    async def test_retry_header_short_circuits(self, harness):
        response = await harness.send(event(), headers={"X-Slack-Retry-Num": "1", "X-Slack-Retry-Reason": "http_timeout"})
        assert response.status_code == 200
        assert status_of(response) == "retry ignored"
        harness.executor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_unparseable_body(self, harness):
        response = await harness.send("{not json")
        assert response.status_code == 400
        assert status_of(response) == "invalid request"

    @pytest.mark.asyncio
    async def test_challenge_echoed(self, harness):
        response = await harness.send({"type": "url_verification", "challenge": "3eZbrw1aBm2rZgRNFdxV2595E9CY3gmdALWMmHkvFXO7tYXAYM8P"})
        assert response.status_code == 200
        assert response.content_type == "text/plain"
        assert response.body == "3eZbrw1aBm2rZgRNFdxV2595E9CY3gmdALWMmHkvFXO7tYXAYM8P"

    @pytest.mark.asyncio
    async def test_invalid_envelope(self, harness):
        response = await harness.send({"type": "event_callback", "event": "not-an-object"})
        assert response.status_code == 400
        assert status_of(response) == "invalid event format"

    @pytest.mark.asyncio
    async def test_non_callback_ignored(self, harness):
        response = await harness.send({"type": "app_rate_limited"})
        assert status_of(response) == "ignored"

    @pytest.mark.asyncio
    async def test_non_message_event_ignored(self, harness):
        response = await harness.send(event(event_type="reaction_added"))
        assert status_of(response) == "ignored non-message event"

    @pytest.mark.asyncio
    async def test_own_messages_ignored(self, harness):
        assert status_of(await harness.send(event(user=BOT_ID))) == "ignored bot message"
        assert status_of(await harness.send(event(event_id="Ev2", bot_id="B1"))) == "ignored bot message"
        harness.executor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_event(self, harness):
        assert status_of(await harness.send(event())) == "ok"
        assert status_of(await harness.send(event())) == "duplicate event"
        assert harness.executor.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_short_text_ignored(self, harness):
        response = await harness.send(event(text="<@UBOT123>  hi "))
        assert status_of(response) == "ignored empty message"

    @pytest.mark.asyncio
    async def test_duplicate_query_within_window(self, harness, clock):
        assert status_of(await harness.send(event(event_id="Ev1"))) == "ok"
        clock.advance(2)
        response = await harness.send(event(event_id="Ev2", text="<@UBOT123>   top  blocked IPs"))
        assert status_of(response) == "duplicate query ignored"

        clock.advance(5)
        assert status_of(await harness.send(event(event_id="Ev3"))) == "ok"

    @pytest.mark.asyncio
    async def test_every_response_marked_processed(self, harness):
        for payload in ("{", {"challenge": "x"}, {"type": "other"}, event()):
            response = await harness.send(payload)
            assert response.headers["X-Processed"] == "true"

    @pytest.mark.asyncio
    async def test_generic_mentions_stripped_without_bot_id(self, clock):
        harness = Harness(clock)
        await harness.send(event(text="<@U999> show blocked hosts"))
        assert "### User Request: show blocked hosts\n" in harness.model.prompts[0]

    @pytest.mark.asyncio
    async def test_labelled_bot_mention_stripped(self, harness):
        await harness.send(event(text="<@UBOT123|wafbot> show blocked hosts"))
        assert "### User Request: show blocked hosts\n" in harness.model.prompts[0]

    @pytest.mark.asyncio
    async def test_labelled_mentions_stripped_without_bot_id(self, clock):
        harness = Harness(clock)
        await harness.send(event(text="<@U999|wafbot> show blocked hosts"))
        assert "### User Request: show blocked hosts\n" in harness.model.prompts[0]


class TestProcessQuestion:

    @pytest.mark.asyncio
    async def test_success_message(self, harness):
        response = await harness.send(event())

        assert status_of(response) == "ok"
        harness.executor.execute.assert_awaited_once_with("SELECT 1")
        message = harness.notifier.messages[0]
        assert message["channel"] == "C1"
        text = message["text"]
        assert text.startswith("*WAF Log Search Result*\n\n")
        assert "*Input Prompt:*\n```\ntop blocked IPs\n```" in text
        assert f"*Executed Query:*\n```\n{EXECUTED_SQL}\n```" in text
        assert "*Result:* 1 rows\n" in text
        assert "*Athena QueryID:* `qid-1`" in text
        assert f"*Console URL:* {CONSOLE_URL}" in text
        assert "*Result Data:*\n```\n" in text
        assert "_col0" not in text
        assert text.endswith("\n*Analysis Result:*\nMostly blocked scanners.")

    @pytest.mark.asyncio
    async def test_display_toggles(self, clock):
        harness = Harness(clock, show_sql=False, show_query_id=False)
        await harness.send(event())
        text = harness.notifier.messages[0]["text"]

        assert "*Executed Query:*" not in text
        assert "*Input Prompt:*" not in text
        assert "*Athena QueryID:*" not in text
        assert "*Result:* 1 rows" in text

    @pytest.mark.asyncio
    async def test_empty_result(self, clock):
        harness = Harness(clock, outcome=success_outcome(rows=[["ip", "count"]]))
        await harness.send(event())
        text = harness.notifier.messages[0]["text"]

        assert "*Result:* 0 rows" in text
        assert "*Result Data:* No data available" in text
        assert "No data found. Please try different search criteria." in text
        assert harness.analysis_model.prompts == []

    @pytest.mark.asyncio
    async def test_execution_failure_reported(self, clock):
        error = ExecutionFailedError("Athena query failed: boom", region="us-east-1", execution_id="qid-9")
        outcome = ExecutionOutcome(
            sql=EXECUTED_SQL,
            region=RegionTag.US_EAST_1,
            state=ExecutionState.FAILED,
            execution_id="qid-9",
            error=error,
            console_url="https://us-east-1.console.aws.amazon.com/athena/home?region=us-east-1#/query-editor/history/qid-9",
        )
        harness = Harness(clock, outcome=outcome, show_sql=False)
        response = await harness.send(event())

        assert status_of(response) == "error reported to slack"
        text = harness.notifier.messages[0]["text"]
        assert text.startswith("Query failed (region: us-east-1): Athena query failed: boom\n\n")
        # SQL is shown on failure even with the toggle off
        assert f"Executed SQL:\n```\n{EXECUTED_SQL}\n```" in text
        assert text.endswith("Athena Console: https://us-east-1.console.aws.amazon.com/athena/home?region=us-east-1#/query-editor/history/qid-9")

    @pytest.mark.asyncio
    async def test_rejected_query_has_no_console_link(self, clock):
        outcome = ExecutionOutcome(
            sql="DROP TABLE x",
            region=RegionTag.AP_NORTHEAST_1,
            error=RejectedInputError("Invalid SQL command detected"),
        )
        harness = Harness(clock, outcome=outcome)
        await harness.send(event())
        text = harness.notifier.messages[0]["text"]

        assert "Invalid SQL command detected" in text
        assert "Athena Console" not in text

    @pytest.mark.asyncio
    async def test_generation_error_is_fatal(self, clock):
        harness = Harness(clock, model=ScriptedTextGenerator(""))
        with pytest.raises(GenerationError):
            await harness.send(event())
        harness.executor.execute.assert_not_called()
        assert harness.notifier.messages == []

    @pytest.mark.asyncio
    async def test_notification_failure_is_not_fatal(self, clock):
        harness = Harness(clock, notifier=RecordingNotifier(error=NotificationError("Slack API error: not_in_channel")))
        response = await harness.send(event())
        assert status_of(response) == "ok"

    @pytest.mark.asyncio
    async def test_region_hint_reaches_prompt(self, harness):
        await harness.send(event(text="<@UBOT123> frontend blocked requests"))
        assert REGION_B_NOTE in harness.model.prompts[0]

    @pytest.mark.asyncio
    async def test_analysis_failure_degrades(self, harness):
        harness.analysis_model.responses = [RuntimeError("model down")]
        response = await harness.send(event())
        assert status_of(response) == "ok"
        assert "Analysis is unavailable" in harness.notifier.messages[0]["text"]


class TestMessages:

    def test_prompt_shortened_past_limit(self):
        assert shorten_prompt("a" * 100) == "a" * 100
        assert shorten_prompt("a" * 101) == "a" * 97 + "..."

    def test_failure_message_without_console(self):
        text = build_failure_message("ap-northeast-1", "Athena start error: denied", "SELECT 1")
        assert text == "Query failed (region: ap-northeast-1): Athena start error: denied\n\nExecuted SQL:\n```\nSELECT 1\n```"

    def test_normalize_question(self):
        assert normalize_question("  top   blocked\nIPs ") == "top blocked IPs"
