"""
Transcript data types shared by the ledger, the live session and the UI channel.
"""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator
from pydantic.dataclasses import dataclass


def utc_now() -> datetime:
  return datetime.now(UTC)


class Speaker(StrEnum):
  """Logical speaker of a transcript source, used only for display grouping."""

  YOU = "you"
  OTHERS = "others"

  @property
  def display_label(self) -> str:
    return "You" if self is Speaker.YOU else "Others"


@dataclass(frozen=True, kw_only=True)
class TranscriptChunk:
  """A finalized, sentence-terminated utterance. Immutable once created."""

  text: str = Field(min_length=1)
  """Sentence text including its terminal punctuation."""

  timestamp: datetime
  """When the sentence was completed."""

  speaker: Speaker
  """Who said it."""

  def log_line(self) -> str:
    """Render the chunk as one session-log line (without the trailing newline)."""
    return f"[{self.timestamp.isoformat()}] [{self.speaker.display_label}] {self.text}"


class ProducerEvent(BaseModel):
  """Text emitted by one independent producer (recognizer, OCR, ...)."""

  text: str
  """Either the producer's whole current hypothesis or a true delta."""

  source: str = Field(min_length=1)
  """Opaque source id, e.g. "mic", "system-audio" or "screen"."""

  timestamp: datetime = Field(default_factory=utc_now)
  """When the producer emitted the text."""

  cumulative: bool | None = None
  """Overrides the source's configured cumulative mode when set."""

  @field_validator("timestamp")
  @classmethod
  def ensure_timezone(cls, value: datetime) -> datetime:
    if value.tzinfo is None:
      return value.replace(tzinfo=UTC)
    return value
