"""Classification of failed attempts into normalized errors"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from filegate.domain.errors import (
    AuthExpiredError,
    FileGateError,
    HttpError,
    NetworkUnreachableError,
    Replay,
)
from filegate.domain.models.request import RequestAttempt
from filegate.infrastructure.retry import transport_code

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = (
    "Unable to communicate with the server. "
    "Please check your network connection and try again shortly."
)
DEFAULT_NETWORK_CODE = "network-error"

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred."
UNAVAILABLE_MESSAGE = "The server is temporarily unavailable. Please try again later."

# status -> (fallback message, prefer the server-provided message)
STATUS_MESSAGES: Dict[int, tuple[str, bool]] = {
    400: ("Invalid request.", True),
    401: ("Authentication is required or has expired.", False),
    403: ("You do not have permission to access this resource.", True),
    404: ("The requested resource was not found.", True),
    408: ("The request timed out.", False),
    429: ("Too many requests. Please try again later.", False),
    500: ("A server error occurred. Please try again later.", False),
    502: (UNAVAILABLE_MESSAGE, False),
    503: (UNAVAILABLE_MESSAGE, False),
    504: (UNAVAILABLE_MESSAGE, False),
}


def _response_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _payload_field(payload: Any, name: str) -> Optional[str]:
    if isinstance(payload, dict) and payload.get(name):
        return str(payload[name])
    return None


def status_message(status: int, payload: Any = None) -> str:
    """Pick the user-facing message for an error status"""
    server_message = _payload_field(payload, "message")
    if status not in STATUS_MESSAGES:
        return server_message or UNEXPECTED_ERROR_MESSAGE
    fallback, prefer_server = STATUS_MESSAGES[status]
    if prefer_server and server_message:
        return server_message
    return fallback


class ErrorClassifier:
    """Maps the terminal outcome of a request onto the error taxonomy"""

    def classify(
        self,
        exception: BaseException,
        attempt: Optional[RequestAttempt] = None,
        replay: Optional[Replay] = None,
    ) -> FileGateError:
        """Produce exactly one normalized error for a failed attempt.

        Args:
            exception: Exception raised by the transport or by ``raise_for_status``
            attempt: Attempt that failed
            replay: Coroutine factory re-issuing the original request

        Returns:
            The normalized error; the original exception is set as its cause
        """
        if isinstance(exception, FileGateError):
            return exception

        if isinstance(exception, httpx.HTTPStatusError):
            error = self._classify_response(exception.response, attempt, replay)
        else:
            code = transport_code(exception)
            message = NETWORK_ERROR_MESSAGE
            if code:
                message = f"{message} (Error: {code})"
            error = NetworkUnreachableError(
                message,
                status=0,
                code=code or DEFAULT_NETWORK_CODE,
                attempt=attempt,
                replay=replay,
            )

        error.__cause__ = exception
        logger.debug(f"Classified {type(exception).__name__} as {error.kind.value} (status {error.status})")
        return error

    def _classify_response(
        self,
        response: httpx.Response,
        attempt: Optional[RequestAttempt],
        replay: Optional[Replay],
    ) -> HttpError:
        status = response.status_code
        payload = _response_payload(response)
        error_class = AuthExpiredError if status == 401 else HttpError
        return error_class(
            status_message(status, payload),
            status=status,
            code=_payload_field(payload, "code"),
            data=payload,
            attempt=attempt,
            replay=replay,
        )
