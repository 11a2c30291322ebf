"""
Toast notifications raised by panels.

Each console keeps a ToastLog; the HTTP surface drains it into every
response so the browser can show the messages.
"""

import logging
import threading
from dataclasses import asdict, dataclass

logger = logging.getLogger(__name__)

DEFAULT = "default"
DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Toast:
    title: str
    description: str
    variant: str = DEFAULT

    @property
    def is_error(self) -> bool:
        return self.variant == DESTRUCTIVE

    def to_dict(self) -> dict:
        return asdict(self)


class ToastLog:
    """Ordered, thread-safe collection of pending toasts."""

    def __init__(self) -> None:
        self._items: list[Toast] = []
        self._lock = threading.Lock()

    def push(self, title: str, description: str, variant: str = DEFAULT) -> Toast:
        toast = Toast(title=title, description=description, variant=variant)
        with self._lock:
            self._items.append(toast)
        if toast.is_error:
            logger.warning("Toast [%s] %s", title, description)
        else:
            logger.info("Toast [%s] %s", title, description)
        return toast

    def success(self, description: str, title: str = "Success") -> Toast:
        return self.push(title, description)

    def error(self, description: str, title: str = "Error") -> Toast:
        return self.push(title, description, DESTRUCTIVE)

    @property
    def items(self) -> list[Toast]:
        with self._lock:
            return list(self._items)

    @property
    def last(self) -> Toast | None:
        with self._lock:
            return self._items[-1] if self._items else None

    def drain(self) -> list[Toast]:
        """Return and forget every pending toast."""
        with self._lock:
            items, self._items = self._items, []
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
