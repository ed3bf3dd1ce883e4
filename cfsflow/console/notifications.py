"""
Operator notifications.

Console action handlers never re-raise; they push a Notification and
let the caller render it (toast, message bar, CLI output).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SUCCESS = 'success'
INFO = 'info'
WARNING = 'warning'
ERROR = 'error'

_LOG_LEVELS = {
    SUCCESS: logging.INFO,
    INFO: logging.INFO,
    WARNING: logging.WARNING,
    ERROR: logging.WARNING,
}


@dataclass(frozen=True)
class Notification:
    level: str
    message: str
    code: str = ''


class Notifier:
    """Collects notifications in order; every notification is also logged."""

    def __init__(self):
        self.items: list[Notification] = []

    def push(self, level: str, message: str, code: str = '') -> Notification:
        notification = Notification(level=level, message=message, code=code)
        self.items.append(notification)
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "console.notify", extra={
            "level": level,
            "code": code,
            "notification": message,
        })
        return notification

    def success(self, message: str) -> Notification:
        return self.push(SUCCESS, message)

    def info(self, message: str) -> Notification:
        return self.push(INFO, message)

    def warning(self, message: str, code: str = '') -> Notification:
        return self.push(WARNING, message, code)

    def error(self, message: str, code: str = '') -> Notification:
        return self.push(ERROR, message, code)

    @property
    def last(self) -> Notification | None:
        return self.items[-1] if self.items else None

    def errors(self) -> list[Notification]:
        return [n for n in self.items if n.level == ERROR]

    def clear(self) -> None:
        self.items.clear()
