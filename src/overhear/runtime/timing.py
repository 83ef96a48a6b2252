"""Debounce and throttle timers on the owning event loop."""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from overhear.logs import get_logger

logger = get_logger("live")

TimerCallback = Callable[[], None] | Callable[[], Awaitable[None]]


class _Timer:
  def __init__(self, delay: float, callback: TimerCallback, name: str) -> None:
    self.delay = delay
    self.callback = callback
    self.name = name
    self._handle: asyncio.TimerHandle | None = None
    self._tasks: set[asyncio.Task[Any]] = set()

  @property
  def pending(self) -> bool:
    return self._handle is not None

  def cancel(self) -> None:
    """Cancel the scheduled run and any callback still in flight."""
    if self._handle is not None:
      self._handle.cancel()
      self._handle = None
    for task in list(self._tasks):
      task.cancel()

  def _schedule(self) -> None:
    loop = asyncio.get_running_loop()
    self._handle = loop.call_later(self.delay, self._fire)

  def _fire(self) -> None:
    self._handle = None
    try:
      result = self.callback()
    except Exception:
      logger.exception("Timer callback failed", timer=self.name)
      return

    if inspect.isawaitable(result):
      task = asyncio.ensure_future(result)
      self._tasks.add(task)
      task.add_done_callback(self._task_done)

  def _task_done(self, task: asyncio.Task[Any]) -> None:
    self._tasks.discard(task)
    if not task.cancelled() and task.exception() is not None:
      logger.error("Timer callback failed", timer=self.name, exc_info=task.exception())


class Debouncer(_Timer):
  """Runs the callback once the triggers have stopped for ``delay`` seconds.

  Every trigger pushes the deadline back, so the last trigger of a burst always fires.
  """

  def __init__(self, delay: float, callback: TimerCallback, name: str = "debounce") -> None:
    super().__init__(delay, callback, name)

  def trigger(self) -> None:
    if self._handle is not None:
      self._handle.cancel()
    self._schedule()


class Throttle(_Timer):
  """Runs the callback at most once per ``interval``; triggers inside an interval coalesce."""

  def __init__(self, interval: float, callback: TimerCallback, name: str = "throttle") -> None:
    super().__init__(interval, callback, name)

  def trigger(self) -> None:
    if self._handle is None:
      self._schedule()
