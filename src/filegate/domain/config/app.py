"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from filegate.domain.config.backends import BackendsConfig
from filegate.domain.config.retry import RetryConfig
from filegate.domain.config.session import SessionConfig
from filegate.domain.config.upload import UploadConfig


class AppConfig(BaseModel):
    """Main application configuration.

    This is the root configuration model that aggregates all configuration sections.
    Validation is performed at load time to fail fast on configuration errors.

    Attributes:
        backends: Logical backend addresses and timeout
        retry: Retry logic configuration
        upload: Upload limits configuration
        session: Static session credentials
    """

    backends: BackendsConfig = Field(default_factory=BackendsConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on attribute assignment
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "backends": {
                    "api_gateway_url": "https://api.example.com",
                    "chat_server_url": "https://chat.example.com",
                    "timeout": 30.0,
                },
                "retry": {
                    "max_retries": 3,
                    "initial_delay": 1.0,
                    "max_delay": 5.0,
                    "backoff_factor": 2.0,
                    "jitter": 0.1,
                },
                "upload": {
                    "upload_limit": 52428800,
                    "chunk_size": 65536,
                },
                "session": {
                    "token": None,
                    "session_id": None,
                },
            }
        },
    )
