"""User notifications ("toasts") as a pluggable collaborator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

logger = logging.getLogger("gridcalc.notify")


class Level(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: Level
    title: str
    message: str


@runtime_checkable
class Notifier(Protocol):
    """Anything that can tell the user about an outcome."""

    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes notifications to the ``gridcalc.notify`` logger."""

    _LOG_LEVELS = {
        Level.INFO: logging.INFO,
        Level.SUCCESS: logging.INFO,
        Level.ERROR: logging.WARNING,
    }

    def notify(self, notification: Notification) -> None:
        logger.log(
            self._LOG_LEVELS[notification.level],
            "%s: %s",
            notification.title,
            notification.message,
        )


class RecordingNotifier:
    """Keeps every notification in memory; handy for tests and headless use."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def messages(self, level: Level | None = None) -> list[str]:
        return [
            n.message for n in self.notifications
            if level is None or n.level is level
        ]

    def clear(self) -> None:
        self.notifications.clear()


def info(message: str) -> Notification:
    return Notification(Level.INFO, "Info", message)


def success(message: str) -> Notification:
    return Notification(Level.SUCCESS, "Success", message)


def error(message: str) -> Notification:
    return Notification(Level.ERROR, "Error", message)
