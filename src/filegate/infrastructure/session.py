"""Recovery of requests rejected because the session expired"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import httpx

from filegate.domain.errors import AuthExpiredError
from filegate.domain.models.request import RequestAttempt
from filegate.infrastructure.auth import AuthService, SessionEvents

if TYPE_CHECKING:
    from filegate.infrastructure.http_client import RequestDispatcher

logger = logging.getLogger(__name__)


class SessionRefresher:
    """Refreshes an expired session once and replays the rejected request.

    Runs at most once per failed request and never re-enters the retry loop:
    the replay is a single send. When the refresh fails the session is
    dropped, subscribers of ``SessionEvents`` are told, and the original
    ``AuthExpiredError`` is raised.
    """

    def __init__(
        self,
        dispatcher: "RequestDispatcher",
        auth_service: Optional[AuthService],
        events: SessionEvents,
    ):
        self.dispatcher = dispatcher
        self.auth_service = auth_service
        self.events = events

    async def recover(self, error: AuthExpiredError, attempt: RequestAttempt) -> httpx.Response:
        """Refresh the session and replay ``attempt`` exactly once

        Args:
            error: The 401 error raised for the attempt
            attempt: The rejected attempt

        Returns:
            Response of the replayed request

        Raises:
            AuthExpiredError: If the session could not be refreshed
            FileGateError: If the replayed request fails
        """
        if not await self._refresh():
            self._invalidate()
            raise error

        logger.info(f"Session refreshed, replaying {attempt.method} {attempt.url}")
        try:
            return await self.dispatcher.send_once(attempt)
        except httpx.HTTPError as exc:
            raise self.dispatcher.classifier.classify(
                exc,
                attempt,
                replay=lambda: self.dispatcher.dispatch(attempt.first()),
            ) from exc

    async def _refresh(self) -> bool:
        if self.auth_service is None:
            return False

        try:
            refreshed = await self.auth_service.refresh_token()
        except Exception as e:
            logger.error(f"Token refresh failed: {e}")
            return False

        if not refreshed:
            logger.warning("Token refresh was rejected")
            return False

        session = self.auth_service.get_current_user()
        if session is None or not session.is_usable:
            logger.warning("Token refresh returned no usable session")
            return False
        return True

    def _invalidate(self) -> None:
        if self.auth_service is not None:
            self.auth_service.logout()
        self.events.emit_session_invalidated(SessionEvents.SESSION_EXPIRED)
