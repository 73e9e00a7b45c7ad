"""RequestAttempt model - one attempt of a logical request"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional


class BackendTarget(str, Enum):
    """Logical backend a request is sent to"""

    API_GATEWAY = "apiGateway"
    CHAT_SERVER = "chatServer"


@dataclass(frozen=True)
class RequestAttempt:
    """A single attempt of a logical request.

    Attempts are immutable: a retry derives attempt N+1 from attempt N with
    ``next()`` instead of mutating a shared request object.
    """

    method: str
    url: str  # Path relative to the target's base address
    target: Optional[str] = None  # BackendTarget value; None selects the primary backend
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    params: Optional[Dict[str, Any]] = None
    attempt_number: int = 0

    def __post_init__(self):
        """Normalize the method"""
        object.__setattr__(self, "method", self.method.upper())
        if self.attempt_number < 0:
            raise ValueError("attempt_number must be >= 0")

    @property
    def key(self) -> str:
        """Key identifying concurrent identical requests"""
        return f"{self.method}:{self.url}"

    @property
    def is_read(self) -> bool:
        return self.method == "GET"

    def next(self) -> "RequestAttempt":
        """Derive the following attempt"""
        return replace(self, attempt_number=self.attempt_number + 1)

    def first(self) -> "RequestAttempt":
        """Derive attempt zero of the same logical request"""
        return replace(self, attempt_number=0)

    def with_headers(self, headers: Dict[str, str]) -> "RequestAttempt":
        return replace(self, headers=dict(headers))

    def with_body(self, body: Any) -> "RequestAttempt":
        return replace(self, body=body)
