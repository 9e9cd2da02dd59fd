from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
import time
from typing import Callable, Protocol

logger = logging.getLogger("permitpack.archive")

DEFAULT_TTL_SECONDS = 5.0


@dataclass(frozen=True)
class Notification:
    title: str
    artifact_name: str
    entry_count: int
    location: str
    ttl_seconds: float = DEFAULT_TTL_SECONDS

    @property
    def message(self) -> str:
        return f"{self.artifact_name}: {self.entry_count} files packaged"


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class NotificationCenter:
    """Holds short-lived notifications; expired ones are dropped whenever the center is touched."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._items: list[tuple[float, Notification]] = []
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        self._items = [(posted_at, item) for posted_at, item in self._items if now - posted_at < item.ttl_seconds]

    def notify(self, notification: Notification) -> None:
        logger.info(
            "notification_posted",
            extra={
                "event": "notification_posted",
                "title": notification.title,
                "artifact_name": notification.artifact_name,
                "entry_count": notification.entry_count,
            },
        )
        now = self._clock()
        with self._lock:
            self._prune(now)
            self._items.append((now, notification))

    def active(self) -> list[Notification]:
        now = self._clock()
        with self._lock:
            self._prune(now)
            return [item for _, item in self._items]

    def pending_count(self) -> int:
        """Number of stored notifications, expired or not."""
        with self._lock:
            return len(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
