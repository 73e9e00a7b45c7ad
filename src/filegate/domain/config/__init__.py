"""Configuration models with Pydantic validation."""

from filegate.domain.config.app import AppConfig
from filegate.domain.config.backends import BackendsConfig
from filegate.domain.config.retry import RetryConfig
from filegate.domain.config.session import SessionConfig
from filegate.domain.config.upload import UploadConfig

__all__ = [
    "AppConfig",
    "BackendsConfig",
    "RetryConfig",
    "SessionConfig",
    "UploadConfig",
]
