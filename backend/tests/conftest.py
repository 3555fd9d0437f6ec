"""Pytest configuration and shared fixtures."""
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

# Add backend root to path for imports
backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))

from wafbot.models.query_models import EngineStatus, RegionProfile, RegionTag, ResultPage  # noqa: E402
from wafbot.services.athena_client import EngineClientRegistry  # noqa: E402


class FakeClock:
    """Deterministic monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEngineClient:
    """
    In-memory AnalyticalEngineClient.

    statuses are returned in order; the last one repeats forever.
    """

    def __init__(
        self,
        region: RegionTag = RegionTag.AP_NORTHEAST_1,
        statuses: Sequence[Any] = ("SUCCEEDED",),
        rows: Optional[List[List[Optional[str]]]] = None,
        next_token: Optional[str] = None,
        start_error: Optional[Exception] = None,
        status_error: Optional[Exception] = None,
        results_error: Optional[Exception] = None,
        cancel_error: Optional[Exception] = None,
        execution_id: str = "qid-123",
    ):
        self.region = region
        self._statuses = list(statuses)
        self.rows = rows if rows is not None else [["status", "count"], ["BLOCK", "5"]]
        self.next_token = next_token
        self.start_error = start_error
        self.status_error = status_error
        self.results_error = results_error
        self.cancel_error = cancel_error
        self.execution_id = execution_id

        self.started: List[Dict[str, str]] = []
        self.status_calls = 0
        self.results_calls: List[int] = []
        self.cancel_calls: List[str] = []

    async def start_query(self, sql: str, catalog: str, output_location: str, workgroup: str) -> str:
        if self.start_error:
            raise self.start_error
        self.started.append({
            "sql": sql,
            "catalog": catalog,
            "output_location": output_location,
            "workgroup": workgroup,
        })
        return self.execution_id

    async def get_status(self, execution_id: str) -> EngineStatus:
        self.status_calls += 1
        if self.status_error:
            raise self.status_error
        raw = self._statuses.pop(0) if len(self._statuses) > 1 else self._statuses[0]
        if isinstance(raw, EngineStatus):
            return raw
        return EngineStatus(state=raw)

    async def get_results(self, execution_id: str, max_rows: int) -> ResultPage:
        self.results_calls.append(max_rows)
        if self.results_error:
            raise self.results_error
        return ResultPage(
            rows=[list(r) for r in self.rows[:max_rows]],
            has_more=self.next_token is not None,
            next_token=self.next_token,
        )

    async def cancel(self, execution_id: str) -> None:
        self.cancel_calls.append(execution_id)
        if self.cancel_error:
            raise self.cancel_error


class RecordingNotifier:
    """Stands in for SlackNotifier"""

    def __init__(self, error: Optional[Exception] = None):
        self.messages: List[Dict[str, str]] = []
        self.error = error

    async def post_message(self, channel: str, text: str) -> bool:
        self.messages.append({"channel": channel, "text": text})
        if self.error:
            raise self.error
        return True


class ScriptedTextGenerator:
    """TextGenerator returning canned responses in order"""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> Any:
        self.prompts.append(prompt)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def single_client_registry(client: FakeEngineClient) -> EngineClientRegistry:
    """Registry whose factory hands back the given client for any region"""
    def _factory(region: RegionTag) -> FakeEngineClient:
        client.region = region
        return client
    return EngineClientRegistry(factory=_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def profiles() -> Dict[RegionTag, RegionProfile]:
    return {
        RegionTag.AP_NORTHEAST_1: RegionProfile(
            region=RegionTag.AP_NORTHEAST_1,
            catalog="amazon_security_lake_glue_db_ap_northeast_1",
            output_location="s3://results-bucket/",
            workgroup="primary",
        ),
        RegionTag.US_EAST_1: RegionProfile(
            region=RegionTag.US_EAST_1,
            catalog="amazon_security_lake_glue_db_us_east_1",
            output_location="s3://results-bucket-use1/",
            workgroup="primary",
        ),
    }
