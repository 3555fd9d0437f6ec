"""
Query Executor
Submits a query to the regional Athena engine, polls it to completion under a
hard deadline, cancels it on timeout and fetches one bounded result page.

Failures never raise out of execute(): they are returned on the outcome as a
QueryExecutionError subclass together with the region that was used. No
retries happen at this layer.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from wafbot.core.exceptions import (
    ExecutionCancelledError,
    ExecutionFailedError,
    QueryExecutionError,
    QueryTimeoutError,
    RejectedInputError,
    ResultFetchError,
    StatusError,
    SubmissionError,
)
from wafbot.core.prometheus_metrics import (
    query_cancellations_total,
    query_duration_seconds,
    query_total,
)
from wafbot.models.query_models import (
    ExecutionState,
    QueryExecution,
    QueryRequest,
    RegionProfile,
    RegionTag,
    ResultTable,
)
from wafbot.services.athena_client import AnalyticalEngineClient, EngineClientRegistry
from wafbot.services.query_rewriter import rewrite
from wafbot.services.region_router import select_region

logger = logging.getLogger(__name__)

# Substring deny-list on the upper-cased text. Not a parser: "updated_at"
# is rejected too, and anything not listed gets through.
DENIED_KEYWORDS = ("DROP", "DELETE", "INSERT", "UPDATE")

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_TIMEOUT_SECONDS = 45.0
DEFAULT_MAX_RESULTS = 20


def check_query_safety(sql: str) -> None:
    """Raise RejectedInputError when the SQL contains a deny-listed keyword"""
    upper = sql.upper()
    for keyword in DENIED_KEYWORDS:
        if keyword in upper:
            raise RejectedInputError(
                "Invalid SQL command detected",
                details={"keyword": keyword},
            )


@dataclass
class ExecutionOutcome:
    """Everything the caller needs to report one execution"""
    sql: str
    region: RegionTag
    state: Optional[ExecutionState] = None
    execution_id: Optional[str] = None
    table: Optional[ResultTable] = None
    error: Optional[QueryExecutionError] = None
    console_url: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.state == ExecutionState.SUCCEEDED

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None


class QueryExecutor:
    """
    Runs one query per execute() call.

    A background task polls status every poll_interval seconds and the
    caller waits on it against the deadline. On deadline the caller fires
    the cancellation event, issues a backend cancel and returns TIMED_OUT
    without waiting for the poller, which stops on its next check.
    """

    def __init__(
        self,
        clients: EngineClientRegistry,
        profiles: Dict[RegionTag, RegionProfile],
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_results: int = DEFAULT_MAX_RESULTS,
        rewriter: Callable[[str], str] = rewrite,
        router: Callable[[str], RegionTag] = select_region,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.clients = clients
        self.profiles = profiles
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.max_results = max_results
        self._rewrite = rewriter
        self._select_region = router
        self._clock = clock

    async def execute(self, sql: str) -> ExecutionOutcome:
        started = self._clock()
        try:
            check_query_safety(sql)
        except RejectedInputError as e:
            region = self._select_region(sql)
            e.region = region.value
            logger.warning(f"Rejected query before submission: {e.message} ({e.details.get('keyword')})")
            return self._finish(ExecutionOutcome(sql=sql, region=region, error=e), started)

        rewritten = self._rewrite(sql)
        region = self._select_region(rewritten)
        request = self._build_request(rewritten, region)
        client = self.clients.get(region)
        logger.info(f"Executing query (region: {region.value}, catalog: {request.catalog})")

        outcome = ExecutionOutcome(sql=rewritten, region=region)
        try:
            execution = await self._submit(client, request)
        except SubmissionError as e:
            outcome.error = e
            return self._finish(outcome, started)

        outcome.execution_id = execution.id
        outcome.console_url = self.profiles[region].console_url(execution.id)

        try:
            await self._wait_for_completion(client, execution, request)
        except QueryExecutionError as e:
            outcome.state = ExecutionState.TIMED_OUT if isinstance(e, QueryTimeoutError) else execution.state
            outcome.error = e
            return self._finish(outcome, started)

        outcome.state = execution.state
        try:
            outcome.table = await self._fetch_results(client, execution, region)
        except ResultFetchError as e:
            outcome.error = e
        return self._finish(outcome, started)

    def _build_request(self, sql: str, region: RegionTag) -> QueryRequest:
        profile = self.profiles[region]
        return QueryRequest(
            raw_sql=sql,
            region=region,
            catalog=profile.catalog,
            output_location=profile.output_location,
            workgroup=profile.workgroup,
            deadline=self._clock() + self.timeout,
        )

    async def _submit(self, client: AnalyticalEngineClient, request: QueryRequest) -> QueryExecution:
        try:
            execution_id = await client.start_query(
                request.raw_sql,
                catalog=request.catalog,
                output_location=request.output_location,
                workgroup=request.workgroup,
            )
        except Exception as e:
            logger.error(f"Athena start error: {e}")
            raise SubmissionError(f"Athena start error: {e}", region=request.region.value) from e

        logger.info(f"Started Athena query with ID: {execution_id}")
        return QueryExecution(id=execution_id)

    async def _wait_for_completion(
        self,
        client: AnalyticalEngineClient,
        execution: QueryExecution,
        request: QueryRequest,
    ) -> None:
        """Race the poller against the request deadline; raise on any non-success"""
        region = request.region
        remaining = max(0.0, request.deadline - self._clock())
        cancel_event = asyncio.Event()
        poller = asyncio.create_task(self._poll(client, execution, region, cancel_event))
        try:
            done, _ = await asyncio.wait({poller}, timeout=remaining)
        except asyncio.CancelledError:
            cancel_event.set()
            raise

        if poller not in done:
            cancel_event.set()
            logger.warning(f"Query timed out after {self.timeout:.0f}s. Cancelling query...")
            await self._cancel(client, execution, region)
            raise QueryTimeoutError(
                f"Query timed out ({self.timeout:.0f} seconds elapsed). Execution aborted.",
                region=region.value,
                execution_id=execution.id,
            )

        # StatusError raised inside the poller surfaces here
        poller.result()

        state = execution.state
        if state == ExecutionState.SUCCEEDED:
            return
        if state == ExecutionState.FAILED:
            reason = execution.state_reason or "Unknown error"
            raise ExecutionFailedError(
                f"Athena query failed: {reason}",
                region=region.value,
                execution_id=execution.id,
            )
        if state == ExecutionState.CANCELLED:
            raise ExecutionCancelledError(
                "Athena query was cancelled",
                region=region.value,
                execution_id=execution.id,
            )
        raise QueryExecutionError(
            f"Athena query did not complete successfully. Final state: {state.value}",
            region=region.value,
            execution_id=execution.id,
        )

    async def _poll(
        self,
        client: AnalyticalEngineClient,
        execution: QueryExecution,
        region: RegionTag,
        cancel_event: asyncio.Event,
    ) -> None:
        """Sole writer of execution.state. Checks cancel_event on every tick."""
        attempts = 0
        while not cancel_event.is_set():
            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
            if cancel_event.is_set():
                break

            attempts += 1
            try:
                status = await client.get_status(execution.id)
            except Exception as e:
                logger.error(f"Failed to get query status: {e}")
                raise StatusError(
                    f"Failed to get query status: {e}",
                    region=region.value,
                    execution_id=execution.id,
                ) from e

            if cancel_event.is_set():
                break

            state = ExecutionState.from_engine(status.state)
            execution.transition(state, status.reason)
            logger.info(f"Query execution state: {status.state} (attempt {attempts})")

            if state.is_terminal:
                if state == ExecutionState.FAILED:
                    logger.error(f"Athena query failed: {status.reason}\nQuery: {execution.id}")
                else:
                    logger.info(f"Query finished as {state.value} after {attempts} attempts")
                return

        logger.info(f"Polling stopped by deadline after {attempts} attempts")

    async def _cancel(self, client: AnalyticalEngineClient, execution: QueryExecution, region: RegionTag) -> None:
        try:
            await client.cancel(execution.id)
            query_cancellations_total.labels(region=region.value, result="ok").inc()
        except Exception as e:
            # The timeout outcome stands either way
            logger.error(f"Failed to cancel query {execution.id}: {e}")
            query_cancellations_total.labels(region=region.value, result="error").inc()

    async def _fetch_results(
        self,
        client: AnalyticalEngineClient,
        execution: QueryExecution,
        region: RegionTag,
    ) -> ResultTable:
        try:
            page = await client.get_results(execution.id, self.max_results)
        except Exception as e:
            logger.error(f"Failed to get query results: {e}")
            raise ResultFetchError(
                f"Failed to get query results: {e}",
                region=region.value,
                execution_id=execution.id,
            ) from e

        if page.has_more:
            token = (page.next_token or "")[:10]
            logger.info(
                f"Additional data available, but using only first {self.max_results} rows "
                f"(NextToken: {token}...)"
            )
        return ResultTable.from_rows(page.rows[: self.max_results], has_more=page.has_more)

    def _finish(self, outcome: ExecutionOutcome, started: float) -> ExecutionOutcome:
        outcome.elapsed_seconds = self._clock() - started
        state_label = outcome.state.value if outcome.state else "REJECTED_OR_UNSUBMITTED"
        query_total.labels(state=state_label, region=outcome.region.value).inc()
        query_duration_seconds.labels(region=outcome.region.value).observe(outcome.elapsed_seconds)
        if outcome.error:
            logger.warning(f"Query outcome: {state_label} ({outcome.region.value}): {outcome.error.message}")
        else:
            logger.info(f"Query outcome: {state_label} ({outcome.region.value}) in {outcome.elapsed_seconds:.2f}s")
        return outcome
