"""
Retry policy — bounded retry budget and backoff schedule for supplier calls.

The client drives an explicit loop; this object only answers "may I retry
again?" and "how long do I wait first?".
Version: 1.0.0
"""
from typing import Tuple

TRANSPORT = "transport"
RATE_LIMIT = "rate_limit"
UNAUTHORIZED = "unauthorized"


class RetryPolicy:
    def __init__(
        self,
        max_retries: int = 3,
        transport_backoff: float = 1.0,
        rate_limit_backoff: float = 5.0,
        unauthorized_backoff: float = 0.0,
        retry_statuses: Tuple[int, ...] = (401, 429),
    ) -> None:
        self.max_retries = max_retries
        self.transport_backoff = transport_backoff
        self.rate_limit_backoff = rate_limit_backoff
        self.unauthorized_backoff = unauthorized_backoff
        self.retry_statuses = tuple(retry_statuses)

    def allows_retry(self, retries_done: int) -> bool:
        """True while fewer than max_retries retries have been spent."""
        return retries_done < self.max_retries

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in self.retry_statuses

    def backoff_for(self, reason: str) -> float:
        if reason == TRANSPORT:
            return self.transport_backoff
        if reason == RATE_LIMIT:
            return self.rate_limit_backoff
        if reason == UNAUTHORIZED:
            return self.unauthorized_backoff
        raise ValueError(f"Unknown retry reason: {reason}")

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_retries={self.max_retries}, "
            f"transport_backoff={self.transport_backoff}, "
            f"rate_limit_backoff={self.rate_limit_backoff})"
        )


DEFAULT_RETRY_POLICY = RetryPolicy()
