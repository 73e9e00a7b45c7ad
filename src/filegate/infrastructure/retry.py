"""Retry policy used by the request dispatcher.

Decides whether a failed attempt is worth retrying and how long to wait
before the next attempt. The delay computation is exposed to tenacity as a
wait strategy so the dispatcher's loop is a plain ``AsyncRetrying`` loop.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Optional

import httpx
from tenacity import RetryCallState
from tenacity.wait import wait_base

from filegate.domain.config.retry import RetryConfig

logger = logging.getLogger(__name__)

# Substrings the resolver puts in connect errors when a host name cannot be resolved
_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


def transport_code(exception: BaseException) -> Optional[str]:
    """Map an httpx transport exception to a transport failure code.

    Returns:
        One of ``timeout``, ``dns-failure``, ``network-unreachable``,
        ``connection-aborted``, ``generic-network-error`` or None when the
        exception is not a transport failure.
    """
    if isinstance(exception, httpx.TimeoutException):
        return "timeout"
    if isinstance(exception, httpx.ConnectError):
        message = str(exception).lower()
        if any(marker in message for marker in _DNS_FAILURE_MARKERS):
            return "dns-failure"
        return "network-unreachable"
    if isinstance(exception, (httpx.ReadError, httpx.WriteError, httpx.CloseError, httpx.RemoteProtocolError)):
        return "connection-aborted"
    if isinstance(exception, httpx.NetworkError):
        return "generic-network-error"
    return None


def response_status(exception: BaseException) -> Optional[int]:
    """Get the HTTP status of a failed attempt, if a response was received"""
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code
    return None


def request_was_sent(exception: BaseException) -> bool:
    """Check if the request left the client but no response came back"""
    if not isinstance(exception, httpx.TransportError):
        return False
    # These never reach the network: our bug or our configuration
    if isinstance(exception, (httpx.LocalProtocolError, httpx.UnsupportedProtocol, httpx.ProxyError)):
        return False
    try:
        return exception.request is not None
    except RuntimeError:
        # httpx raises when the exception was created without a request
        return False


class RetryPolicy:
    """Retry decisions and backoff delays for one retry configuration"""

    def __init__(self, config: Optional[RetryConfig] = None, uniform: Callable[[float, float], float] = random.uniform):
        self.config = config or RetryConfig()
        self._uniform = uniform

    @property
    def max_retries(self) -> int:
        return self.config.max_retries

    def is_retryable(self, exception: BaseException) -> bool:
        """Check if a failed attempt should be retried"""
        code = transport_code(exception)
        if code is not None and code in self.config.retryable_transport_codes:
            return True
        status = response_status(exception)
        if status is not None:
            return status in self.config.retryable_statuses
        return request_was_sent(exception)

    def compute_delay(self, attempt_number: int) -> float:
        """Backoff delay in seconds before the given attempt.

        ``min(max_delay, initial_delay * backoff_factor ** n * (1 + jitter))``
        with jitter drawn uniformly from ``[0, config.jitter]``.
        """
        cfg = self.config
        base = cfg.initial_delay * (cfg.backoff_factor ** attempt_number)
        jitter = self._uniform(0.0, cfg.jitter) if cfg.jitter > 0 else 0.0
        return min(cfg.max_delay, base * (1 + jitter))

    def wait(self, offset: int = 0) -> "wait_backoff":
        """Tenacity wait strategy backed by this policy"""
        return wait_backoff(self, offset)


class wait_backoff(wait_base):
    """Wait ``compute_delay(k)`` before the attempt numbered k.

    ``offset`` is the number of the attempt the loop started from.
    """

    def __init__(self, policy: RetryPolicy, offset: int = 0):
        self.policy = policy
        self.offset = offset

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.policy.compute_delay(self.offset + retry_state.attempt_number)
