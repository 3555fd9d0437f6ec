"""
Analytical Engine Client
Async capability interface over Athena, one client per region
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

import boto3

from wafbot.models.query_models import EngineStatus, RegionTag, ResultPage

logger = logging.getLogger(__name__)


class AnalyticalEngineClient(Protocol):
    """What the executor needs from a query engine"""

    region: RegionTag

    async def start_query(self, sql: str, catalog: str, output_location: str, workgroup: str) -> str:
        ...

    async def get_status(self, execution_id: str) -> EngineStatus:
        ...

    async def get_results(self, execution_id: str, max_rows: int) -> ResultPage:
        ...

    async def cancel(self, execution_id: str) -> None:
        ...


def _row_values(row: Dict[str, Any]) -> List[Optional[str]]:
    """Athena row -> list of cell values, None where VarCharValue is absent"""
    return [cell.get("VarCharValue") for cell in row.get("Data", [])]


class AthenaEngineClient:
    """
    boto3 Athena client bound to one region.

    boto3 is blocking, so each call runs in a worker thread.
    """

    def __init__(self, region: RegionTag, client: Any = None):
        self.region = region
        self._client = client or boto3.client("athena", region_name=region.value)
        logger.info(f"Creating Athena client (region: {region.value})")

    async def start_query(self, sql: str, catalog: str, output_location: str, workgroup: str) -> str:
        params: Dict[str, Any] = {
            "QueryString": sql,
            "QueryExecutionContext": {"Database": catalog},
            "WorkGroup": workgroup,
        }
        if output_location:
            params["ResultConfiguration"] = {"OutputLocation": output_location}
        response = await asyncio.to_thread(self._client.start_query_execution, **params)
        return response["QueryExecutionId"]

    async def get_status(self, execution_id: str) -> EngineStatus:
        response = await asyncio.to_thread(
            self._client.get_query_execution, QueryExecutionId=execution_id
        )
        status = response["QueryExecution"]["Status"]
        return EngineStatus(
            state=status.get("State", ""),
            reason=status.get("StateChangeReason"),
        )

    async def get_results(self, execution_id: str, max_rows: int) -> ResultPage:
        response = await asyncio.to_thread(
            self._client.get_query_results,
            QueryExecutionId=execution_id,
            MaxResults=max_rows,
        )
        rows = [_row_values(row) for row in response.get("ResultSet", {}).get("Rows", [])]
        next_token = response.get("NextToken")
        return ResultPage(rows=rows, has_more=next_token is not None, next_token=next_token)

    async def cancel(self, execution_id: str) -> None:
        await asyncio.to_thread(self._client.stop_query_execution, QueryExecutionId=execution_id)


class EngineClientRegistry:
    """Lazily created, cached engine clients keyed by region"""

    def __init__(self, factory: Callable[[RegionTag], AnalyticalEngineClient] = AthenaEngineClient):
        self._factory = factory
        self._clients: Dict[RegionTag, AnalyticalEngineClient] = {}

    def get(self, region: RegionTag) -> AnalyticalEngineClient:
        client = self._clients.get(region)
        if client is None:
            client = self._factory(region)
            self._clients[region] = client
        return client
