"""Session model - the authenticated user's credentials"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Session:
    """Session token plus the optional secondary session binding"""

    token: str
    session_id: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        """Check if the session carries a token"""
        return bool(self.token)
