"""Normalized error taxonomy.

Every terminal failure surfaced by the access layer is one of these
exceptions. Errors produced for a concrete request carry a ``replay()``
coroutine that re-issues that request.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

if TYPE_CHECKING:
    import httpx

    from filegate.domain.models.request import RequestAttempt

Replay = Callable[[], Awaitable["httpx.Response"]]


class ErrorKind(str, Enum):
    """Kind of a normalized error"""

    VALIDATION = "validation"
    MISSING_CREDENTIALS = "missing_credentials"
    NETWORK_UNREACHABLE = "network_unreachable"
    HTTP_ERROR = "http_error"
    AUTH_EXPIRED = "auth_expired"


class FileGateError(Exception):
    """Base class of all normalized errors"""

    kind: ErrorKind = ErrorKind.HTTP_ERROR

    def __init__(
        self,
        message: str,
        *,
        status: int = 0,
        code: Optional[str] = None,
        data: Any = None,
        attempt: Optional["RequestAttempt"] = None,
        replay: Optional[Replay] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.data = data
        self.attempt = attempt
        self._replay = replay

    @property
    def cause(self) -> Optional[BaseException]:
        """Underlying transport exception"""
        return self.__cause__

    @property
    def can_replay(self) -> bool:
        return self._replay is not None

    async def replay(self) -> "httpx.Response":
        """Re-issue the request that produced this error"""
        if self._replay is None:
            raise RuntimeError(f"{type(self).__name__} cannot be replayed")
        return await self._replay()


class MissingCredentialsError(FileGateError):
    """Raised when an operation needs a session and none is available"""

    kind = ErrorKind.MISSING_CREDENTIALS

    def __init__(self, message: str = "No authentication credentials available."):
        super().__init__(message)


class NetworkUnreachableError(FileGateError):
    """No response was received for the request"""

    kind = ErrorKind.NETWORK_UNREACHABLE


class HttpError(FileGateError):
    """A response was received with an error status"""

    kind = ErrorKind.HTTP_ERROR


class AuthExpiredError(HttpError):
    """The backend answered 401"""

    kind = ErrorKind.AUTH_EXPIRED
