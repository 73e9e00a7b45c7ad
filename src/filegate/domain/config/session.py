"""Session configuration model."""

from typing import Optional

from pydantic import BaseModel


class SessionConfig(BaseModel):
    """Credentials used when no interactive login is available.

    Attributes:
        token: Session token (None = from FILEGATE_TOKEN env)
        session_id: Secondary session binding (None = from FILEGATE_SESSION_ID env)
    """

    token: Optional[str] = None
    session_id: Optional[str] = None
