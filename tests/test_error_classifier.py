"""Tests for the error classifier"""

from __future__ import annotations

import httpx
import pytest

from filegate.domain.errors import (
    AuthExpiredError,
    ErrorKind,
    HttpError,
    NetworkUnreachableError,
)
from filegate.domain.models.request import RequestAttempt
from filegate.infrastructure.errors import (
    NETWORK_ERROR_MESSAGE,
    UNAVAILABLE_MESSAGE,
    ErrorClassifier,
    status_message,
)

REQUEST = httpx.Request("POST", "https://api.test/upload/init")


def _status_error(status: int, payload=None) -> httpx.HTTPStatusError:
    response = httpx.Response(status, json=payload, request=REQUEST)
    return httpx.HTTPStatusError(f"status {status}", request=REQUEST, response=response)


class TestClassifyNoResponse:
    """Tests for failures without a response"""

    def test_network_error_with_code(self):
        exc = httpx.ConnectError("Connection refused", request=REQUEST)
        error = ErrorClassifier().classify(exc)

        assert isinstance(error, NetworkUnreachableError)
        assert error.kind == ErrorKind.NETWORK_UNREACHABLE
        assert error.status == 0
        assert error.code == "network-unreachable"
        assert error.message == f"{NETWORK_ERROR_MESSAGE} (Error: network-unreachable)"
        assert error.cause is exc

    def test_network_error_without_code(self):
        exc = httpx.UnsupportedProtocol("Request URL has an unsupported protocol", request=REQUEST)
        error = ErrorClassifier().classify(exc)

        assert isinstance(error, NetworkUnreachableError)
        assert error.message == NETWORK_ERROR_MESSAGE
        assert error.code == "network-error"


class TestClassifyResponse:
    """Tests for failures with a response"""

    def test_401_is_auth_expired(self):
        error = ErrorClassifier().classify(_status_error(401, {"message": "token expired"}))

        assert isinstance(error, AuthExpiredError)
        assert isinstance(error, HttpError)
        assert error.kind == ErrorKind.AUTH_EXPIRED
        assert error.status == 401
        assert error.message == "Authentication is required or has expired."

    def test_400_prefers_server_message(self):
        error = ErrorClassifier().classify(_status_error(400, {"message": "size is required", "code": "E_SIZE"}))

        assert type(error) is HttpError
        assert error.kind == ErrorKind.HTTP_ERROR
        assert error.message == "size is required"
        assert error.code == "E_SIZE"
        assert error.data == {"message": "size is required", "code": "E_SIZE"}

    def test_400_without_server_message(self):
        assert ErrorClassifier().classify(_status_error(400)).message == "Invalid request."

    def test_unknown_status_uses_server_message(self):
        error = ErrorClassifier().classify(_status_error(418, {"message": "teapot"}))
        assert error.message == "teapot"
        assert error.status == 418

    def test_unknown_status_fallback(self):
        assert ErrorClassifier().classify(_status_error(418)).message == "An unexpected error occurred."

    @pytest.mark.parametrize("status", [502, 503, 504])
    def test_unavailable_statuses(self, status):
        assert status_message(status, {"message": "ignored"}) == UNAVAILABLE_MESSAGE

    def test_fixed_messages_ignore_server_message(self):
        assert status_message(429, {"message": "slow down"}) == "Too many requests. Please try again later."
        assert status_message(500, {"message": "stack trace"}) == "A server error occurred. Please try again later."
        assert status_message(408) == "The request timed out."

    def test_403_and_404(self):
        assert status_message(403) == "You do not have permission to access this resource."
        assert status_message(404, {"message": "File not found"}) == "File not found"

    def test_non_json_body(self):
        response = httpx.Response(500, text="<html>oops</html>", request=REQUEST)
        exc = httpx.HTTPStatusError("status 500", request=REQUEST, response=response)
        error = ErrorClassifier().classify(exc)
        assert error.data is None
        assert error.code is None


class TestReplay:
    """Tests for the replay capability"""

    async def test_replay_calls_replayer(self):
        calls = []
        response = httpx.Response(200, request=REQUEST)

        async def _replay():
            calls.append(1)
            return response

        attempt = RequestAttempt("POST", "/upload/init")
        error = ErrorClassifier().classify(_status_error(500), attempt, replay=_replay)

        assert error.attempt is attempt
        assert error.can_replay
        assert await error.replay() is response
        assert calls == [1]

    async def test_replay_without_replayer(self):
        error = ErrorClassifier().classify(_status_error(500))
        assert not error.can_replay
        with pytest.raises(RuntimeError, match="cannot be replayed"):
            await error.replay()
