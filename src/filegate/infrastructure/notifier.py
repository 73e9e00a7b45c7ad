"""User-facing notification collaborator"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Abstract channel for messages shown to the user"""

    @abstractmethod
    def error(self, message: str) -> None:
        """Show an error message"""
        pass


class LoggingNotifier(Notifier):
    """Notifier that writes messages to the log"""

    def error(self, message: str) -> None:
        logger.error(message)
