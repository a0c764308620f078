"""
Google Sheets tabular store (Sheets API v4 over httpx).

Features:
- Connection pooling with httpx
- Exponential backoff retry (3 attempts) on connection errors
- Circuit breaker (opens after 5 consecutive failures, retries after 60s)
- Request correlation IDs for tracing
- Missing tabs reported as TableNotFoundError
"""
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from salestrack.config import StoreConfig, config
from salestrack.exceptions import (
    StoreAPIError,
    StoreConnectionError,
    StoreDataError,
    TableNotFoundError,
)
from salestrack.observability import Timer, get_correlation_id, get_logger
from salestrack.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenError,
    RetryConfig,
    retry_with_backoff,
)
from salestrack.stores.base import Row, parse_range

logger = get_logger(__name__)

# Resilience configuration
RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay=1.0,
    max_delay=30.0,
    exponential_base=2.0
)

CIRCUIT_BREAKER_CONFIG = CircuitBreakerConfig(
    failure_threshold=5,
    recovery_timeout=60.0,
    half_open_requests=1
)

# Sheets answers 400 with this message for a range on a tab that does not exist
_MISSING_TAB_MARKER = "unable to parse range"


def _a1(table: str, range_spec: str) -> str:
    escaped = table.replace("'", "''")
    return f"'{escaped}'!{range_spec}"


class SheetsStore:
    """
    Async Google Sheets reader for one spreadsheet.

    Usage:
        async with SheetsStore() as store:
            names = await store.list_tables()
            rows = await store.read_rows("01-06-2025-Morning", "A2:P")
    """

    def __init__(
        self,
        spreadsheet_id: str = None,
        access_token: str = None,
        base_url: str = None,
        timeout: float = None,
        store_config: Optional[StoreConfig] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        """
        Initialize the Sheets client.

        Args:
            spreadsheet_id: Spreadsheet to read (defaults to GOOGLE_SPREADSHEET_ID)
            access_token: OAuth bearer token (defaults to GOOGLE_SHEETS_TOKEN)
            base_url: API base URL (defaults to SHEETS_BASE_URL)
            timeout: Request timeout in seconds
        """
        store_config = store_config or config.store
        self.spreadsheet_id = spreadsheet_id or store_config.spreadsheet_id
        self.access_token = access_token or store_config.access_token
        self.base_url = (base_url or store_config.base_url).rstrip("/")
        self.timeout = timeout or store_config.request_timeout
        self.circuit_breaker = circuit_breaker or CircuitBreaker(config=CIRCUIT_BREAKER_CONFIG)
        self.retry_config = retry_config or RETRY_CONFIG
        self._client: Optional[httpx.AsyncClient] = None

        if not self.spreadsheet_id:
            raise ValueError("GOOGLE_SPREADSHEET_ID is required")

    @property
    def headers(self) -> Dict[str, str]:
        """Request headers with auth."""
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def connect(self) -> None:
        """Create HTTP client with connection pooling."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.headers,
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=10,
                    max_connections=20,
                )
            )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SheetsStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        GET a Sheets endpoint with retry and circuit breaker.

        Raises:
            StoreConnectionError: Network/timeout errors
            StoreAPIError: API returned error response
            TableNotFoundError: Range refers to a tab that does not exist
            CircuitOpenError: Circuit breaker is open
        """
        if not await self.circuit_breaker.can_execute():
            raise CircuitOpenError(f"Circuit breaker is open, request to {path} rejected")

        try:
            result = await retry_with_backoff(
                self._do_request,
                path, params,
                config=self.retry_config,
                retryable_exceptions=(StoreConnectionError,),
            )
        except TableNotFoundError:
            await self.circuit_breaker.record_success()
            raise
        except (StoreAPIError, StoreConnectionError):
            await self.circuit_breaker.record_failure()
            raise

        await self.circuit_breaker.record_success()
        return result

    async def _do_request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a single HTTP request (called by retry wrapper)."""
        if not self._client:
            await self.connect()

        url = f"{self.base_url}/spreadsheets/{self.spreadsheet_id}{path}"

        request_headers = {}
        correlation_id = get_correlation_id()
        if correlation_id:
            request_headers["X-Request-ID"] = correlation_id

        try:
            with Timer("sheets_request", logger):
                response = await self._client.get(
                    url,
                    params=params,
                    headers=request_headers if request_headers else None,
                )
        except httpx.TimeoutException as e:
            logger.error(
                f"Request timeout: GET {path}",
                extra={"path": path, "timeout": self.timeout}
            )
            raise StoreConnectionError(
                f"Request timeout after {self.timeout}s",
                retry_after=5
            ) from e
        except httpx.RequestError as e:
            logger.error(
                f"Request failed: GET {path} - {e}",
                extra={"path": path, "error": str(e)}
            )
            raise StoreConnectionError(str(e)) from e

        if response.status_code >= 400:
            error_text = response.text[:500]
            if response.status_code == 400 and _MISSING_TAB_MARKER in error_text.lower():
                raise TableNotFoundError(path, details=error_text)

            logger.error(
                f"API error {response.status_code}: {error_text}",
                extra={"path": path, "status_code": response.status_code}
            )
            if response.status_code == 429 or response.status_code >= 500:
                raise StoreConnectionError(
                    f"API returned {response.status_code}",
                    details=error_text,
                    retry_after=5,
                )
            raise StoreAPIError(
                f"API returned {response.status_code}",
                status_code=response.status_code,
                details=error_text
            )

        try:
            return response.json()
        except ValueError as e:
            raise StoreDataError(
                "Response is not JSON",
                details=response.text[:200],
                expected="application/json",
                got=response.headers.get("Content-Type"),
            ) from e

    async def list_tables(self) -> List[str]:
        """Titles of every tab in the spreadsheet."""
        data = await self._request("", params={"fields": "sheets.properties.title"})
        sheets = data.get("sheets", [])
        if not isinstance(sheets, list):
            raise StoreDataError("Unexpected sheets payload", expected="list", got=type(sheets).__name__)
        return [
            sheet["properties"]["title"]
            for sheet in sheets
            if isinstance(sheet, dict) and sheet.get("properties", {}).get("title")
        ]

    async def read_rows(self, table: str, range_spec: str) -> List[Row]:
        """
        Read one range of one tab. Trailing empty cells are omitted by the API,
        so rows may be shorter than the range.
        """
        parse_range(range_spec)
        path = f"/values/{quote(_a1(table, range_spec), safe='')}"
        try:
            data = await self._request(path, params={"valueRenderOption": "FORMATTED_VALUE"})
        except TableNotFoundError as e:
            raise TableNotFoundError(table, details=e.details) from e

        values = data.get("values", [])
        if not isinstance(values, list):
            raise StoreDataError("Unexpected values payload", expected="list", got=type(values).__name__)
        return [
            ["" if cell is None else str(cell) for cell in row]
            for row in values
            if isinstance(row, list)
        ]
