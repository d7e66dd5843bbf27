"""
Custom exception hierarchy for DSZ Sync.

Exceptions are categorized as:
- RetryableError: Transient errors (network, rate limit, expired auth) that
  may succeed when the operation is attempted again later
- NonRetryableError: Permanent errors that should fail immediately

The supplier client retries retryable conditions internally; by the time
one of these reaches a caller the retry budget is already spent. Celery
tasks can still use:
- autoretry_for=(RetryableError,)
- dont_autoretry_for=(NonRetryableError,)
"""
from typing import Any, Optional


class DszSyncException(Exception):
    """Base exception for DSZ Sync."""

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


# ============================================
# RETRYABLE ERRORS
# ============================================
class RetryableError(DszSyncException):
    """
    Base class for transient errors.

    Use this for errors where a later attempt might succeed:
    - Network timeouts
    - Rate limits (with backoff)
    - Token expiry mid-request
    """
    pass


class TransportError(RetryableError):
    """Network-level failure talking to the supplier API (after retries)."""
    pass


class RateLimited(RetryableError):
    """HTTP 429 persisted after the retry budget was exhausted."""

    def __init__(self, message: str = "API rate limit exceeded. Please try again later."):
        super().__init__(message)


class Unauthorized(RetryableError):
    """HTTP 401 persisted after re-authentication attempts."""

    def __init__(self, message: str = "Authentication failed. Please check your credentials."):
        super().__init__(message)


class StoreError(RetryableError):
    """
    Transient persistence error.

    Examples: Supabase/PostgREST failure, Redis unavailable.
    """
    pass


# ============================================
# NON-RETRYABLE ERRORS
# ============================================
class NonRetryableError(DszSyncException):
    """
    Base class for errors that should NOT trigger retry.

    Use this for permanent errors where retrying won't help:
    - Missing or rejected credentials
    - Business rule violations (already exists, already submitted)
    - Missing data
    """
    pass


class MissingCredentials(NonRetryableError):
    """No API email/password available."""

    def __init__(self, message: str = "API email and password are required."):
        super().__init__(message)


class AuthenticationFailed(NonRetryableError):
    """The supplier rejected the credentials."""
    pass


class InvalidResponse(NonRetryableError):
    """Supplier response could not be interpreted."""
    pass


class ApiError(NonRetryableError):
    """
    Error status (>= 400) from the supplier API.

    Carries the HTTP status code and the parsed response body.
    """

    def __init__(self, status_code: int, message: str, body: Optional[Any] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ValidationError(NonRetryableError):
    """Invalid input data - retrying won't help."""
    pass


class ProductNotFound(NonRetryableError):
    """Product not found locally or in the supplier catalog."""
    pass


class OrderNotFound(NonRetryableError):
    """Local order does not exist."""
    pass


class AlreadyExists(NonRetryableError):
    """Entity already exists (local product for SKU, or SKU already mapped)."""
    pass


class AlreadySubmitted(NonRetryableError):
    """Order already carries a supplier serial number."""
    pass


class NoMappedItems(NonRetryableError):
    """None of the order's line items resolve to a supplier SKU."""

    def __init__(self, message: str = "No Dropshipzone-mapped products in this order."):
        super().__init__(message)


class SaveFailed(NonRetryableError):
    """Local catalog refused to persist a record."""
    pass


class MediaError(NonRetryableError):
    """Image download or upload failed."""
    pass


class NotInitialized(NonRetryableError):
    """A required collaborator was not wired in."""
    pass
