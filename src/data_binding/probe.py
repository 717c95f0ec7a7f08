"""
API Probe

Performs a single GET against a user supplied URL, classifies the outcome and,
on success, discovers the displayable fields of the payload.

The probe never raises: every failure is reported through ProbeResult so one
broken data source cannot take down the rest of a dashboard.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from config.models import ProbeConfig
from data_binding.errors import HTTPError, NetworkError, ParseError
from data_binding.introspection import discover
from utils.logging import get_logger, mask_secret

logger = get_logger(__name__)


class ApiKeyPlacement(Enum):
    """Where a widget's API key goes in the outgoing request."""
    NONE = "none"      # kept in configuration, not sent
    HEADER = "header"
    QUERY = "query"


@dataclass(frozen=True)
class APIPreset:
    name: str
    url: str
    requires_key: bool
    description: str


API_PRESETS: List[APIPreset] = [
    APIPreset(
        name="Alpha Vantage - Stock Data",
        url="https://www.alphavantage.co/query?function=GLOBAL_QUOTE&symbol=IBM&apikey=YOUR_KEY",
        requires_key=True,
        description="Real-time stock quotes",
    ),
    APIPreset(
        name="Finnhub - Stock Info",
        url="https://finnhub.io/api/v1/quote?symbol=AAPL&token=YOUR_KEY",
        requires_key=True,
        description="Stock market data",
    ),
    APIPreset(
        name="JSONPlaceholder - Posts",
        url="https://jsonplaceholder.typicode.com/posts/1",
        requires_key=False,
        description="Free test data (no key needed)",
    ),
    APIPreset(
        name="JSONPlaceholder - Users",
        url="https://jsonplaceholder.typicode.com/users",
        requires_key=False,
        description="Free user data (no key needed)",
    ),
    APIPreset(
        name="Coinbase - Exchange Rates",
        url="https://api.coinbase.com/v2/exchange-rates?currency=BTC",
        requires_key=False,
        description="Cryptocurrency exchange rates",
    ),
]


@dataclass
class ProbeResult:
    """
    Outcome of one probe.

    ``error_type`` names the failure class (NetworkError, HTTPError,
    ParseError) so callers can branch without parsing the message.
    """
    success: bool
    data: Any = None
    fields: List[str] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def failure(cls, exc: Exception, status_code: Optional[int] = None) -> 'ProbeResult':
        return cls(
            success=False,
            error=str(exc) or exc.__class__.__name__,
            error_type=exc.__class__.__name__,
            status_code=status_code,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data
            result["fields"] = self.fields
        else:
            result["error"] = self.error
            result["error_type"] = self.error_type
        if self.status_code is not None:
            result["status_code"] = self.status_code
        return result


def sample_for_discovery(data: Any) -> Any:
    """The value fields are discovered from: first element of an array payload."""
    if isinstance(data, list):
        return data[0] if data else None
    return data


class APIProbe:
    """Single-attempt connectivity and schema discovery against a JSON API."""

    def __init__(self, config: Optional[ProbeConfig] = None,
                 session: Optional[requests.Session] = None):
        self.config = config or ProbeConfig()
        self.placement = ApiKeyPlacement(self.config.api_key_placement)
        self.session = session or requests.Session()

    def _get_headers(self, api_key: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if api_key and self.placement is ApiKeyPlacement.HEADER:
            headers[self.config.api_key_header] = api_key
        return headers

    def _get_params(self, api_key: Optional[str]) -> Dict[str, str]:
        if api_key and self.placement is ApiKeyPlacement.QUERY:
            return {self.config.api_key_param: api_key}
        return {}

    def fetch(self, url: str, api_key: Optional[str] = None) -> Any:
        """GET ``url`` and return the decoded JSON body.

        Raises:
            NetworkError: the request could not be completed
            HTTPError: non-2xx status
            ParseError: body is not JSON
        """
        if api_key:
            logger.debug(f"Fetching {url} with key {mask_secret(api_key)} ({self.placement.value})")
        try:
            response = self.session.get(
                url,
                headers=self._get_headers(api_key),
                params=self._get_params(api_key),
                timeout=self.config.timeout_sec,
            )
        except requests.exceptions.RequestException as e:
            raise NetworkError(str(e)) from e

        if not response.ok:
            raise HTTPError(response.status_code, response.reason)

        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Response is not valid JSON: {e}") from e

    def test(self, url: str, api_key: Optional[str] = None) -> ProbeResult:
        """Probe ``url`` once; never raises.

        Args:
            url: Data source URL
            api_key: Optional key, sent according to the configured placement

        Returns:
            ProbeResult with ``data`` and discovered ``fields`` on success
        """
        if not url:
            return ProbeResult(success=False, error="Please enter an API URL",
                               error_type="ValidationError")
        try:
            data = self.fetch(url, api_key)
        except HTTPError as e:
            logger.warning(f"Probe {url} failed: {e}")
            return ProbeResult.failure(e, status_code=e.status_code)
        except (NetworkError, ParseError) as e:
            logger.warning(f"Probe {url} failed: {e}")
            return ProbeResult.failure(e)
        except Exception as e:
            logger.error(f"Unexpected probe error for {url}: {e}")
            return ProbeResult.failure(e)

        try:
            fields = discover(sample_for_discovery(data))
        except RecursionError:
            logger.warning(f"Probe {url} returned a payload nested too deeply to inspect")
            return ProbeResult.failure(ParseError("Response is nested too deeply to inspect"))
        logger.debug(f"Probe {url} succeeded: {len(fields)} fields found")
        return ProbeResult(success=True, data=data, fields=fields)

