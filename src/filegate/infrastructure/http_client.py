"""Request dispatcher: the single path every backend request goes through.

Resolves the logical backend, attaches the session, retries transient
failures with backoff and hands expired sessions to the SessionRefresher.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from filegate.domain.config.backends import BackendsConfig
from filegate.domain.config.retry import RetryConfig
from filegate.domain.errors import AuthExpiredError
from filegate.domain.models.request import BackendTarget, RequestAttempt
from filegate.domain.models.session import Session
from filegate.infrastructure.auth import AuthService, SessionEvents
from filegate.infrastructure.errors import ErrorClassifier
from filegate.infrastructure.retry import RetryPolicy
from filegate.infrastructure.session import SessionRefresher

logger = logging.getLogger(__name__)

AUTH_TOKEN_HEADER = "x-auth-token"
SESSION_ID_HEADER = "x-session-id"

DEFAULT_HEADERS = {"Content-Type": "application/json"}

Sleep = Callable[[float], Awaitable[Any]]


class RequestDispatcher:
    """Issues requests against the logical backends.

    One dispatcher is created by the application root and passed to the
    services that need it. It owns its ``httpx.AsyncClient`` unless one is
    supplied.
    """

    def __init__(
        self,
        backends: Optional[BackendsConfig] = None,
        auth_service: Optional[AuthService] = None,
        *,
        retry_config: Optional[RetryConfig] = None,
        session_events: Optional[SessionEvents] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize dispatcher

        Args:
            backends: Backend addresses and timeout (defaults if None)
            auth_service: Source of the current session
            retry_config: Retry configuration (defaults if None)
            session_events: Receives the "session invalidated" signal
            client: HTTP client to use instead of a dispatcher-owned one
            sleep: Coroutine used to wait between retries
        """
        self.backends = backends or BackendsConfig()
        self.auth_service = auth_service
        self.retry_policy = RetryPolicy(retry_config)
        self.classifier = ErrorClassifier()
        self.session_events = session_events or SessionEvents()
        self.session_refresher = SessionRefresher(self, auth_service, self.session_events)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=self.backends.timeout,
            headers=DEFAULT_HEADERS,
            follow_redirects=True,
        )
        self._sleep = sleep
        self._in_flight: Dict[str, int] = {}

    async def __aenter__(self) -> "RequestDispatcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def current_session(self) -> Optional[Session]:
        """Get the current session from the auth service"""
        if self.auth_service is None:
            return None
        return self.auth_service.get_current_user()

    def resolve_base_url(self, target: Optional[str]) -> str:
        """Map a logical target tag to its base address.

        Unknown or missing tags select the primary backend.
        """
        if target == BackendTarget.CHAT_SERVER:
            return self.backends.chat_server_url
        return self.backends.api_gateway_url

    def build_url(self, attempt: RequestAttempt) -> str:
        if attempt.url.startswith(("http://", "https://")):
            return attempt.url
        base = self.resolve_base_url(attempt.target).rstrip("/")
        return f"{base}/{attempt.url.lstrip('/')}"

    def prepare(self, attempt: RequestAttempt) -> RequestAttempt:
        """Apply body and session rules to an attempt before it is sent"""
        prepared = attempt
        # Mutating requests always carry a parseable body
        if not attempt.is_read and attempt.body is None:
            prepared = prepared.with_body({})

        session = self.current_session()
        if session is not None and session.is_usable:
            headers = dict(prepared.headers)
            headers[AUTH_TOKEN_HEADER] = session.token
            if session.session_id:
                headers[SESSION_ID_HEADER] = session.session_id
            prepared = prepared.with_headers(headers)
        return prepared

    async def send_once(self, attempt: RequestAttempt) -> httpx.Response:
        """Send a single attempt without retry or session recovery

        Redirects are followed, also on a supplied client.

        Raises:
            httpx.HTTPStatusError: If the backend answers with an error status
            httpx.RequestError: If no response was received
        """
        prepared = self.prepare(attempt)
        url = self.build_url(prepared)
        body_kwargs: Dict[str, Any] = {}
        if isinstance(prepared.body, (bytes, str)):
            body_kwargs["content"] = prepared.body
        elif prepared.body is not None:
            body_kwargs["json"] = prepared.body

        logger.debug(f"HTTP {prepared.method} {url} (attempt {prepared.attempt_number})")
        response = await self._client.request(
            prepared.method,
            url,
            headers=prepared.headers,
            params=prepared.params,
            follow_redirects=True,
            **body_kwargs,
        )
        response.raise_for_status()
        return response

    async def dispatch(self, attempt: RequestAttempt) -> httpx.Response:
        """Run one logical request to a terminal state

        Returns:
            Successful response

        Raises:
            NetworkUnreachableError: If no response was received
            HttpError: If the backend answered with an error status
            AuthExpiredError: If the session expired and could not be refreshed
        """
        self._register(attempt.key)
        try:
            return await self._run(attempt)
        finally:
            self._release(attempt.key)

    async def _run(self, attempt: RequestAttempt) -> httpx.Response:
        policy = self.retry_policy
        current = attempt

        def _log_retry(retry_state: RetryCallState) -> None:
            if retry_state.outcome is None or retry_state.next_action is None:
                return
            delay = retry_state.next_action.sleep
            logger.warning(
                f"Retrying request ({current.attempt_number + 1}/{policy.max_retries}) "
                f"after {round(delay * 1000)}ms: {current.url} "
                f"({retry_state.outcome.exception()})"
            )

        try:
            async for retry_attempt in AsyncRetrying(
                stop=stop_after_attempt(max(1, policy.max_retries - attempt.attempt_number + 1)),
                wait=policy.wait(offset=attempt.attempt_number),
                retry=retry_if_exception(policy.is_retryable),
                sleep=self._sleep,
                before_sleep=_log_retry,
                reraise=True,
            ):
                with retry_attempt:
                    if retry_attempt.retry_state.attempt_number > 1:
                        current = current.next()
                    return await self.send_once(current)
        except httpx.HTTPError as exc:
            if policy.is_retryable(exc):
                logger.error(f"Max retry attempts reached: {current.url}")

            error = self.classifier.classify(
                exc,
                current,
                replay=lambda: self.dispatch(attempt.first()),
            )
            if isinstance(error, AuthExpiredError):
                return await self.session_refresher.recover(error, current)
            raise error from exc

        raise RuntimeError("Retry loop exited without an outcome")  # pragma: no cover

    async def request(
        self,
        method: str,
        url: str,
        *,
        target: Optional[str] = None,
        json: Any = None,
        content: Optional[bytes] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Dispatch a logical request

        Args:
            method: HTTP method
            url: Path relative to the target's base address
            target: Logical backend tag (``apiGateway`` or ``chatServer``)
            json: JSON body
            content: Raw body, used instead of ``json``
            params: Query parameters
            headers: Extra headers

        Returns:
            Successful response
        """
        attempt = RequestAttempt(
            method=method,
            url=url,
            target=target,
            headers=dict(headers or {}),
            body=content if content is not None else json,
            params=params,
        )
        return await self.dispatch(attempt)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    def in_flight(self, method: str, url: str) -> int:
        """Number of unfinished logical requests for ``METHOD:url``"""
        return self._in_flight.get(f"{method.upper()}:{url}", 0)

    def _register(self, key: str) -> None:
        self._in_flight[key] = self._in_flight.get(key, 0) + 1

    def _release(self, key: str) -> None:
        remaining = self._in_flight.get(key, 0) - 1
        if remaining > 0:
            self._in_flight[key] = remaining
        else:
            self._in_flight.pop(key, None)
