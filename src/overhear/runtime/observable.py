"""Change notification for UI consumers.

Components own their authoritative state; observers subscribe to snapshots rather than
reading shared mutable fields.
"""

from collections.abc import Callable
from typing import Generic, TypeVar

from overhear.logs import get_logger

T = TypeVar("T")

logger = get_logger("obs")


class Observable(Generic[T]):
  """Synchronous publish/subscribe for one snapshot type."""

  def __init__(self, name: str) -> None:
    self.name = name
    self._subscribers: list[Callable[[T], None]] = []
    self.latest: T | None = None

  def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
    """Register a callback; returns a function that unsubscribes it."""
    self._subscribers.append(callback)

    def unsubscribe() -> None:
      if callback in self._subscribers:
        self._subscribers.remove(callback)

    return unsubscribe

  def publish(self, value: T) -> None:
    self.latest = value
    for callback in list(self._subscribers):
      try:
        callback(value)
      except Exception:
        # Observers are isolated from each other and from the publishing owner
        logger.exception("Subscriber failed", observable=self.name)
