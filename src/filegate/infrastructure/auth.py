"""Authentication collaborators consumed by the access layer"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from filegate.domain.models.session import Session

logger = logging.getLogger(__name__)

SessionInvalidatedCallback = Callable[[str], None]


class AuthService(ABC):
    """Abstract source of the current session.

    Credential storage and the refresh exchange itself live behind this
    interface; the access layer only reads sessions and asks for refreshes.
    """

    @abstractmethod
    def get_current_user(self) -> Optional[Session]:
        """Get the current session, or None when nobody is signed in"""
        pass

    @abstractmethod
    async def refresh_token(self) -> bool:
        """Refresh the current session

        Returns:
            True if a refreshed session is now available
        """
        pass

    @abstractmethod
    def logout(self) -> None:
        """Drop the current session"""
        pass


class StaticAuthService(AuthService):
    """Session taken from configuration; it cannot be refreshed"""

    def __init__(self, token: Optional[str] = None, session_id: Optional[str] = None):
        self._session = Session(token=token, session_id=session_id) if token else None

    def get_current_user(self) -> Optional[Session]:
        return self._session

    async def refresh_token(self) -> bool:
        logger.debug("Static session cannot be refreshed")
        return False

    def logout(self) -> None:
        self._session = None


class SessionEvents:
    """Publishes the "session invalidated" signal to the hosting application.

    The host subscribes and performs re-authentication (navigation, prompt,
    exit); the access layer never does that itself.
    """

    SESSION_EXPIRED = "session_expired"

    def __init__(self):
        self._subscribers: List[SessionInvalidatedCallback] = []

    def subscribe(self, callback: SessionInvalidatedCallback) -> SessionInvalidatedCallback:
        """Register a callback; returns it so this can be used as a decorator"""
        self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: SessionInvalidatedCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def emit_session_invalidated(self, reason: str = SESSION_EXPIRED) -> None:
        """Notify every subscriber that the session is no longer valid"""
        logger.warning(f"Session invalidated: {reason}")
        for callback in list(self._subscribers):
            try:
                callback(reason)
            except Exception as e:
                logger.error(f"Session invalidated subscriber failed: {e}")
