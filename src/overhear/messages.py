"""
Message types for the JSON-line channel between overhear and a UI process.

Outbound messages carry snapshots of the transcript, the Q&A session and the session status.
Inbound lines are either producer events (``{"text": ..., "source": ...}``) or control
commands (``{"command": "next"}``).
"""

import json
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, TypeAdapter
from pydantic.dataclasses import dataclass

from overhear.qa.models import QAItem, QASnapshot
from overhear.runtime.live import SessionStatus
from overhear.transcript.display import locate_question
from overhear.transcript.ledger import TranscriptSnapshot
from overhear.transcript.models import ProducerEvent, TranscriptChunk


class MessageType(StrEnum):
  """Message type discriminator enum for type-safe message handling."""

  TRANSCRIPT_UPDATE = "transcript_update"
  QA_UPDATE = "qa_update"
  SESSION_STATE = "session_state"


@dataclass(kw_only=True)
class TranscriptUpdateMessage:
  """Current transcript view.

  ``question_span`` is the ``[start, end)`` range of the latest question inside
  ``display_text``, when it is visible there, so the UI can highlight it.
  """

  type: Literal["transcript_update"] = "transcript_update"
  display_text: str = Field(description="Bounded, word-wrapped tail of the transcript")
  pending_text: str = Field(description="Text not yet completed into a sentence")
  latest_question: str | None = Field(default=None, description="Question to highlight")
  question_span: tuple[int, int] | None = Field(
    default=None, description="Position of the latest question in display_text"
  )
  chunks: list[TranscriptChunk] = Field(
    default_factory=list, description="Finalized chunks inside the display window"
  )


@dataclass(kw_only=True)
class QAUpdateMessage:
  """Current Q&A list and navigation cursor."""

  type: Literal["qa_update"] = "qa_update"
  items: list[QAItem] = Field(description="All questions of the session, oldest first")
  current_index: int = Field(description="Cursor position, -1 when there are no items")
  can_go_previous: bool
  can_go_next: bool


@dataclass(kw_only=True)
class SessionStateMessage:
  """Session lifecycle and mode changes."""

  type: Literal["session_state"] = "session_state"
  running: bool
  automatic_mode: bool
  log_path: str | None = None


type Message = TranscriptUpdateMessage | QAUpdateMessage | SessionStateMessage


class _MessageCodec(BaseModel):
  """Private wrapper type for deserializing the discriminated union of message types."""

  message: Message = Field(discriminator="type")


def serialize_message(message: Message) -> str:
  """Serialize a UI message to a single-line JSON string."""
  adapter = TypeAdapter(type(message))
  return adapter.dump_json(message).decode("utf-8")


def deserialize_message(json_str: str) -> Message:
  wrapped_json = f'{{"message": {json_str}}}'
  return _MessageCodec.model_validate_json(wrapped_json).message


def transcript_update(snapshot: TranscriptSnapshot) -> TranscriptUpdateMessage:
  span = None
  if snapshot.latest_question:
    span = locate_question(snapshot.display_text, snapshot.latest_question)
  return TranscriptUpdateMessage(
    display_text=snapshot.display_text,
    pending_text=snapshot.pending_text,
    latest_question=snapshot.latest_question,
    question_span=span,
    chunks=list(snapshot.chunks),
  )


def qa_update(snapshot: QASnapshot) -> QAUpdateMessage:
  index = snapshot.current_index
  return QAUpdateMessage(
    items=list(snapshot.items),
    current_index=index,
    can_go_previous=index > 0,
    can_go_next=index < len(snapshot.items) - 1,
  )


def session_state(status: SessionStatus) -> SessionStateMessage:
  return SessionStateMessage(
    running=status.running, automatic_mode=status.automatic_mode, log_path=status.log_path
  )


class ControlAction(StrEnum):
  """Commands a UI or operator can send on the inbound channel."""

  ASK = "ask"
  FIRST = "first"
  PREVIOUS = "previous"
  NEXT = "next"
  LAST = "last"
  AUTO = "auto"
  MANUAL = "manual"


class ControlCommand(BaseModel):
  command: ControlAction


def parse_input_line(line: str) -> ProducerEvent | ControlCommand | None:
  """Parse one inbound JSON line.

  :returns: None for blank lines.
  :raises ValueError: If the line is not a JSON object or fails validation.
  """
  line = line.strip()
  if not line:
    return None

  data = json.loads(line)
  if not isinstance(data, dict):
    raise ValueError("Input line must be a JSON object")
  if "command" in data:
    return ControlCommand.model_validate(data)
  return ProducerEvent.model_validate(data)
