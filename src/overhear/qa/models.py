"""Q&A data types."""

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import Field
from pydantic.dataclasses import dataclass

from overhear.transcript.models import utc_now


class QuestionSource(StrEnum):
  """Where a submitted question came from."""

  AUDIO = "audio"
  SCREEN = "screen"
  MANUAL = "manual"


@dataclass(kw_only=True)
class QAItem:
  """One question and its (possibly still streaming) answer."""

  id: uuid.UUID = Field(default_factory=uuid.uuid4)
  """Identity used to route answer updates."""

  question: str
  """Question in its display form, original casing and punctuation retained."""

  answer: str | None = None
  """Answer so far; grows as chunks stream in, then holds the final text or an error."""

  source: QuestionSource
  """Which stream the question was detected in, or manual."""

  created_at: datetime = Field(default_factory=utc_now)
  """When the item was added to the session."""

  screen_context: str | None = None
  """Screen text offered to the answer producer as context."""


@dataclass(frozen=True)
class QASnapshot:
  """Read-only view of the session published to UI consumers."""

  items: tuple[QAItem, ...]
  current_index: int
