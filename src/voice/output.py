from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Speaker(ABC):
    @abstractmethod
    def speak(self, text: str) -> None:
        """Play `text` back to the user as audio."""
        raise NotImplementedError


class Notifier(ABC):
    @abstractmethod
    def notify(self, title: str, message: str) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Headless notifier; surfaces messages in the log."""

    def notify(self, title: str, message: str) -> None:
        logger.info(f"[{title}] {message}")
