"""
Custom exception hierarchy for tabular store and analytics operations.

Exception Hierarchy:
    StoreError (base)
    ├── StoreConnectionError  - Network/timeout issues (recoverable)
    ├── StoreAPIError         - Store returned error response
    ├── StoreDataError        - Invalid response structure
    └── TableNotFoundError    - Requested table does not exist (treated as empty)

    ValidationError           - Input validation failed
    ConfigurationError        - Required configuration missing or invalid
"""


class StoreError(Exception):
    """Base exception for all tabular store errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class StoreConnectionError(StoreError):
    """
    Network-related errors (timeout, connection refused, etc.).

    These are typically recoverable with retry.
    """

    def __init__(self, message: str, details: str = None, retry_after: int = None):
        super().__init__(message, details)
        self.retry_after = retry_after


class StoreAPIError(StoreError):
    """
    Store returned an error response.

    Check status_code and error_code for specifics.
    """

    def __init__(
        self,
        message: str,
        details: str = None,
        status_code: int = None,
        error_code: str = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.error_code = error_code


class StoreDataError(StoreError):
    """
    Store response has unexpected structure.

    The store answered, but not in a shape we can read rows from.
    """

    def __init__(self, message: str, details: str = None, expected: str = None, got: str = None):
        super().__init__(message, details)
        self.expected = expected
        self.got = got


class TableNotFoundError(StoreError):
    """
    Requested table does not exist in the store.

    Callers treat this as empty input: nothing has been written yet.
    """

    def __init__(self, table: str, details: str = None):
        super().__init__(f"Table not found: {table}", details)
        self.table = table


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating caller input before any scan starts.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass
