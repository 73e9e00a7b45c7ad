"""Retry configuration model."""

from typing import FrozenSet

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
DEFAULT_RETRYABLE_TRANSPORT_CODES = frozenset(
    {
        "timeout",
        "dns-failure",
        "network-unreachable",
        "connection-aborted",
        "generic-network-error",
    }
)


class RetryConfig(BaseModel):
    """Configuration for retry logic.

    Attributes:
        max_retries: Maximum number of retries after the first attempt
        initial_delay: Initial delay in seconds
        max_delay: Upper bound for any single delay in seconds
        backoff_factor: Exponential backoff multiplier
        jitter: Upper bound of the random jitter factor (0.0-1.0)
        retryable_statuses: HTTP statuses that are retried
        retryable_transport_codes: Transport failure codes that are retried
    """

    max_retries: int = Field(3, ge=0, le=10)
    initial_delay: float = Field(1.0, ge=0.0)  # Allow 0 for tests
    max_delay: float = Field(5.0, ge=0.0)
    backoff_factor: float = Field(2.0, ge=1.0, le=10.0)
    jitter: float = Field(0.1, ge=0.0, le=1.0)
    retryable_statuses: FrozenSet[int] = DEFAULT_RETRYABLE_STATUSES
    retryable_transport_codes: FrozenSet[str] = DEFAULT_RETRYABLE_TRANSPORT_CODES

    model_config = ConfigDict(frozen=True)
