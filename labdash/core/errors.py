"""
Error taxonomy for the reporting backend.

Every failure the aggregation layer can surface is one of these classes. The
HTTP layer (labdash.main) is the only place that turns them into status codes;
services raise and propagate, they never translate.

    DashboardError
    ├── InvalidWindow            -> 400, nothing executed
    ├── DataSourceUnavailable    -> 500, pool missing or checkout failed
    └── QueryExecutionError      -> 500, detail redacted outside development

An empty result is not an error: operations return empty collections.
"""

from typing import Optional


class DashboardError(Exception):
    """Base class for errors translated to structured JSON responses."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: str, *, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def public_message(self, include_detail: bool) -> str:
        if include_detail and self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class InvalidWindow(DashboardError):
    """Missing or malformed date range, category or required filter."""

    status_code = 400
    error = "Invalid request parameters"


class DataSourceUnavailable(DashboardError):
    """The connection pool is not initialized or no connection could be acquired."""

    status_code = 500
    error = "Data source unavailable"


class QueryExecutionError(DashboardError):
    """A query failed after a connection was acquired (bad bind, timeout, ...)."""

    status_code = 500
    error = "Database error"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[str] = None,
        query_name: Optional[str] = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.query_name = query_name
