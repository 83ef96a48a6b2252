"""Ordered Q&A session with cursor navigation and duplicate-question suppression."""

import copy
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from overhear.logs import get_logger
from overhear.qa.models import QAItem, QASnapshot, QuestionSource
from overhear.questions.classifier import normalized_key
from overhear.runtime.observable import Observable
from overhear.transcript.models import utc_now

logger = get_logger("qa")


class QASession:
  """Append-only list of Q&A items plus a navigation cursor.

  The cursor always satisfies ``-1 <= current_index < len(items)`` and points at the newest item
  right after ``add_question``. The session stores whatever answer text it is given; streaming
  and chunk accumulation belong to the caller.

  :param duplicate_window: Seconds within which a repeated question counts as a duplicate.
  :param clock: Source of creation times.
  """

  def __init__(
    self, duplicate_window: float = 30.0, clock: Callable[[], datetime] = utc_now
  ) -> None:
    self.duplicate_window = timedelta(seconds=duplicate_window)
    self.clock = clock
    self.items: list[QAItem] = []
    self.current_index: int = -1
    self.snapshots: Observable[QASnapshot] = Observable("qa")

  @property
  def current_item(self) -> QAItem | None:
    if 0 <= self.current_index < len(self.items):
      return self.items[self.current_index]
    return None

  @property
  def can_go_previous(self) -> bool:
    return self.current_index > 0

  @property
  def can_go_next(self) -> bool:
    return self.current_index < len(self.items) - 1

  def add_question(
    self, question: str, source: QuestionSource, screen_context: str | None = None
  ) -> QAItem:
    item = QAItem(
      question=question, source=source, created_at=self.clock(), screen_context=screen_context
    )
    self.items.append(item)
    self.current_index = len(self.items) - 1
    logger.info("Question added", question=question, source=source, index=self.current_index)
    self._publish()
    return item

  def get(self, item_id: uuid.UUID) -> QAItem | None:
    for item in self.items:
      if item.id == item_id:
        return item
    return None

  def update_answer(self, item_id: uuid.UUID, answer: str) -> bool:
    """Replace the stored answer of an item.

    :returns: False if no item with that id exists (e.g. the session was cleared).
    """
    item = self.get(item_id)
    if item is None:
      return False
    item.answer = answer
    self._publish()
    return True

  def is_duplicate_recent(self, question: str, now: datetime | None = None) -> bool:
    """Whether the same normalized question was added within the recency window."""
    now = now or self.clock()
    key = normalized_key(question)
    return any(
      abs(now - item.created_at) < self.duplicate_window and normalized_key(item.question) == key
      for item in self.items
    )

  def go_first(self) -> None:
    if self.items:
      self._move_to(0)

  def go_previous(self) -> None:
    if self.can_go_previous:
      self._move_to(self.current_index - 1)

  def go_next(self) -> None:
    if self.can_go_next:
      self._move_to(self.current_index + 1)

  def go_last(self) -> None:
    if self.items:
      self._move_to(len(self.items) - 1)

  def clear(self) -> None:
    self.items = []
    self.current_index = -1
    self._publish()

  def snapshot(self) -> QASnapshot:
    # Items are copied so observers never see later in-place answer updates
    return QASnapshot(
      items=tuple(copy.copy(item) for item in self.items), current_index=self.current_index
    )

  def _move_to(self, index: int) -> None:
    if index == self.current_index:
      return
    self.current_index = index
    self._publish()

  def _publish(self) -> None:
    assert -1 <= self.current_index < len(self.items)
    self.snapshots.publish(self.snapshot())
