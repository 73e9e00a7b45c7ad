"""Shared pytest fixtures for filegate tests.

Provides a fake auth service, a recording notifier, a recording sleep and a
factory building dispatchers on top of an ``httpx.MockTransport``.
"""

from __future__ import annotations

from typing import Callable, List, Optional

import httpx
import pytest

from filegate.domain.config.backends import BackendsConfig
from filegate.domain.config.retry import RetryConfig
from filegate.domain.models.session import Session
from filegate.infrastructure.auth import AuthService, SessionEvents
from filegate.infrastructure.http_client import RequestDispatcher
from filegate.infrastructure.notifier import Notifier

API_URL = "https://api.test"
CHAT_URL = "https://chat.test"


class FakeAuthService(AuthService):
    """Auth service whose refresh swaps in ``refreshed_session``"""

    def __init__(
        self,
        session: Optional[Session] = None,
        refreshed_session: Optional[Session] = None,
        refresh_result: bool = True,
        refresh_error: Optional[Exception] = None,
    ):
        self.session = session
        self.refreshed_session = refreshed_session
        self.refresh_result = refresh_result
        self.refresh_error = refresh_error
        self.refresh_calls = 0
        self.logout_calls = 0

    def get_current_user(self) -> Optional[Session]:
        return self.session

    async def refresh_token(self) -> bool:
        self.refresh_calls += 1
        if self.refresh_error is not None:
            raise self.refresh_error
        if self.refresh_result:
            self.session = self.refreshed_session
        return self.refresh_result

    def logout(self) -> None:
        self.logout_calls += 1
        self.session = None


class RecordingNotifier(Notifier):
    def __init__(self):
        self.messages: List[str] = []

    def error(self, message: str) -> None:
        self.messages.append(message)


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def auth_service() -> FakeAuthService:
    return FakeAuthService(
        session=Session(token="token-1", session_id="sid-1"),
        refreshed_session=Session(token="token-2", session_id="sid-1"),
    )


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def backends() -> BackendsConfig:
    return BackendsConfig(api_gateway_url=API_URL, chat_server_url=CHAT_URL)


@pytest.fixture
async def make_dispatcher(auth_service, sleeps, backends):
    """Factory: ``make_dispatcher(handler, **overrides) -> RequestDispatcher``"""
    clients: List[httpx.AsyncClient] = []

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        *,
        retry_config: Optional[RetryConfig] = None,
        auth=auth_service,
        events: Optional[SessionEvents] = None,
        dispatcher_class=RequestDispatcher,
    ) -> RequestDispatcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return dispatcher_class(
            backends,
            auth,
            retry_config=retry_config or RetryConfig(jitter=0),
            session_events=events,
            client=client,
            sleep=sleeps,
        )

    yield _make

    for client in clients:
        await client.aclose()
