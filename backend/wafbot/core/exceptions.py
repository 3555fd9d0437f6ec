"""
Custom Exception Hierarchy
Standardized error handling with error codes and consistent messaging
Implements RFC 7807 Problem Details for HTTP APIs
"""

import uuid
from typing import Any, Dict, Optional


class BaseAppException(Exception):
    """Base exception class for application errors (RFC 7807 compliant)"""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        self.correlation_id = correlation_id or str(uuid.uuid4())

    def to_rfc7807(self) -> Dict[str, Any]:
        """
        Convert exception to RFC 7807 Problem Details format
        https://datatracker.ietf.org/doc/html/rfc7807
        """
        problem = {
            "type": f"https://waf-query-bot.local/errors/{self.error_code.lower().replace('_', '-')}",
            "title": self.error_code.replace("_", " ").title(),
            "status": self.status_code,
            "detail": self.message,
            "instance": f"/errors/{self.correlation_id}",
        }
        if self.details:
            problem.update(self.details)
        problem["correlationId"] = self.correlation_id
        return problem


class ConfigurationException(BaseAppException):
    """Exception for configuration errors"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            status_code=500,
            details=details,
            correlation_id=correlation_id
        )


class GenerationError(BaseAppException):
    """SQL generation failed or returned unusable output; fatal to the invocation"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code="GENERATION_ERROR",
            status_code=502,
            details=details,
            correlation_id=correlation_id
        )


class NotificationError(BaseAppException):
    """Chat notification could not be delivered"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code="NOTIFICATION_ERROR",
            status_code=502,
            details=details,
            correlation_id=correlation_id
        )


# ==================== Query execution ====================

class QueryExecutionError(BaseAppException):
    """
    Non-fatal query failure.

    Carries the region the query was routed to and the execution id when
    one was issued, so callers can report both to the user.
    """

    error_code_value = "QUERY_EXECUTION_ERROR"
    status_code_value = 502

    def __init__(
        self,
        message: str,
        region: Optional[str] = None,
        execution_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ):
        merged = dict(details or {})
        if region:
            merged.setdefault("region", region)
        if execution_id:
            merged.setdefault("execution_id", execution_id)
        super().__init__(
            message=message,
            error_code=self.error_code_value,
            status_code=self.status_code_value,
            details=merged,
            correlation_id=correlation_id
        )
        self.region = region
        self.execution_id = execution_id


class RejectedInputError(QueryExecutionError):
    """Input refused before any submission (deny-listed SQL, empty question)"""
    error_code_value = "REJECTED_INPUT"
    status_code_value = 400


class SubmissionError(QueryExecutionError):
    """Engine refused or failed the submission call"""
    error_code_value = "SUBMISSION_ERROR"


class StatusError(QueryExecutionError):
    """Engine status call failed while polling"""
    error_code_value = "STATUS_ERROR"


class ResultFetchError(QueryExecutionError):
    """Engine result call failed after success"""
    error_code_value = "RESULT_FETCH_ERROR"


class ExecutionFailedError(QueryExecutionError):
    """Engine reported FAILED"""
    error_code_value = "EXECUTION_FAILED"


class ExecutionCancelledError(QueryExecutionError):
    """Engine reported CANCELLED"""
    error_code_value = "EXECUTION_CANCELLED"


class QueryTimeoutError(QueryExecutionError):
    """Deadline elapsed before a terminal state was observed"""
    error_code_value = "QUERY_TIMEOUT"
    status_code_value = 504
