"""Error taxonomy for probing data sources and importing widget lists."""

from typing import Optional


class FinboardError(Exception):
    """Base class for dashboard core errors."""


class NetworkError(FinboardError):
    """Transport or connection failure while reaching a data source."""


class HTTPError(FinboardError):
    """Data source answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: Optional[str] = None):
        self.status_code = status_code
        self.reason = reason or ""
        super().__init__(f"HTTP {status_code}: {self.reason}")


class ParseError(FinboardError):
    """Response body or import text is not valid JSON."""


class ValidationError(FinboardError):
    """Input rejected at the boundary (import shape, widget form values)."""
