"""
Query Execution Data Models

Value objects shared by the rewriter, router, executor and formatter.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence


class RegionTag(str, Enum):
    """Backend deployment a query is executed against"""
    AP_NORTHEAST_1 = "ap-northeast-1"
    US_EAST_1 = "us-east-1"

    @classmethod
    def default(cls) -> "RegionTag":
        return cls.AP_NORTHEAST_1


@dataclass(frozen=True)
class RegionProfile:
    """Per-region execution settings (catalog, result storage, console)"""
    region: RegionTag
    catalog: str
    output_location: str
    workgroup: str

    def console_url(self, execution_id: str) -> str:
        region = self.region.value
        return (
            f"https://{region}.console.aws.amazon.com/athena/home"
            f"?region={region}#/query-editor/history/{execution_id}"
        )


class ExecutionState(str, Enum):
    """Query execution lifecycle states"""
    SUBMITTED = "SUBMITTED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES

    @classmethod
    def from_engine(cls, raw_state: Optional[str]) -> "ExecutionState":
        """Map an engine status string onto the lifecycle.

        QUEUED and unknown values count as SUBMITTED so polling continues.
        """
        value = (raw_state or "").upper()
        if value in ("SUCCEEDED", "FAILED", "CANCELLED", "RUNNING"):
            return cls(value)
        return cls.SUBMITTED


_TERMINAL_STATES = frozenset({
    ExecutionState.SUCCEEDED,
    ExecutionState.FAILED,
    ExecutionState.CANCELLED,
    ExecutionState.TIMED_OUT,
})


@dataclass(frozen=True)
class QueryRequest:
    """A query ready for submission, bound to one region"""
    raw_sql: str
    region: RegionTag
    catalog: str
    output_location: str
    workgroup: str
    # Executor clock reading at which the query is cancelled
    deadline: float


@dataclass
class QueryExecution:
    """
    Handle for one submitted query.

    Only the polling loop that owns the execution calls transition();
    terminal states are final.
    """
    id: str
    state: ExecutionState = ExecutionState.SUBMITTED
    state_reason: Optional[str] = None

    def transition(self, new_state: ExecutionState, reason: Optional[str] = None) -> bool:
        if self.state.is_terminal:
            return False
        self.state = new_state
        self.state_reason = reason
        return True


@dataclass(frozen=True)
class ResultTable:
    """
    Bounded result page.

    rows[0] holds the header labels when the engine returns them as data,
    which Athena always does for SELECT statements.
    """
    columns: List[Optional[str]]
    rows: List[List[Optional[str]]]
    has_more: bool = False

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Optional[str]]], has_more: bool = False) -> "ResultTable":
        materialized = [list(row) for row in rows]
        columns = list(materialized[0]) if materialized else []
        return cls(columns=columns, rows=materialized, has_more=has_more)

    @property
    def data_row_count(self) -> int:
        return max(len(self.rows) - 1, 0)


@dataclass(frozen=True)
class ResultPage:
    """One page as returned by the engine client"""
    rows: List[List[Optional[str]]]
    has_more: bool = False
    next_token: Optional[str] = None


@dataclass(frozen=True)
class EngineStatus:
    """Status snapshot as returned by the engine client"""
    state: str
    reason: Optional[str] = None
