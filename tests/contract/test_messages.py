"""Contract tests for the JSON-line UI protocol."""

import io
import json
from datetime import UTC, datetime

import pytest

from overhear.config import LedgerConfig
from overhear.messages import (
  ControlAction,
  ControlCommand,
  QAUpdateMessage,
  SessionStateMessage,
  TranscriptUpdateMessage,
  deserialize_message,
  parse_input_line,
  qa_update,
  serialize_message,
  transcript_update,
)
from overhear.qa.models import QuestionSource
from overhear.qa.session import QASession
from overhear.transcript.ledger import TranscriptLedger
from overhear.transcript.models import ProducerEvent, Speaker
from overhear.ui_channel import JsonLineChannel

T0 = datetime(2026, 3, 14, 9, 30, tzinfo=UTC)


class TestOutboundMessages:
  """Test outbound snapshot messages."""

  def test_transcript_update_locates_latest_question(self):
    ledger = TranscriptLedger(LedgerConfig())
    ledger.append("Hello there. How are you? I am fine.", Speaker.OTHERS, T0)
    ledger.update_latest_question("How are you?")

    message = transcript_update(ledger.snapshot())
    start, end = message.question_span
    assert message.display_text[start:end] == "How are you?"
    assert len(message.chunks) == 3

  def test_transcript_update_serializes_to_one_line(self):
    ledger = TranscriptLedger(LedgerConfig())
    ledger.append("Hello there.", Speaker.YOU, T0)

    line = serialize_message(transcript_update(ledger.snapshot()))
    data = json.loads(line)

    assert "\n" not in line
    assert data["type"] == "transcript_update"
    assert data["display_text"] == "[You] Hello there."
    assert data["question_span"] is None
    assert data["chunks"][0]["speaker"] == "you"

  def test_qa_update(self):
    session = QASession()
    session.add_question("Q1?", QuestionSource.AUDIO)
    item = session.add_question("Q2?", QuestionSource.SCREEN, screen_context="slide")
    session.update_answer(item.id, "A2")
    session.go_previous()

    message = qa_update(session.snapshot())
    assert message.current_index == 0
    assert message.can_go_next is True
    assert message.can_go_previous is False

    data = json.loads(serialize_message(message))
    assert data["type"] == "qa_update"
    assert data["items"][1]["answer"] == "A2"
    assert data["items"][1]["source"] == "screen"

  def test_deserialize_by_discriminator(self):
    line = serialize_message(SessionStateMessage(running=True, automatic_mode=False))
    message = deserialize_message(line)
    assert isinstance(message, SessionStateMessage)
    assert message.automatic_mode is False

    empty = serialize_message(
      QAUpdateMessage(items=[], current_index=-1, can_go_previous=False, can_go_next=False)
    )
    assert isinstance(deserialize_message(empty), QAUpdateMessage)


class TestInboundLines:
  """Test parsing of inbound JSON lines."""

  def test_producer_event(self):
    event = parse_input_line('{"text": "hello", "source": "mic"}')
    assert isinstance(event, ProducerEvent)
    assert event.cumulative is None
    assert event.timestamp.tzinfo is not None

  def test_naive_timestamp_is_utc(self):
    event = parse_input_line(
      '{"text": "hello", "source": "mic", "timestamp": "2026-03-14T09:30:00"}'
    )
    assert event.timestamp == T0

  def test_control_command(self):
    assert parse_input_line('{"command": "next"}') == ControlCommand(command=ControlAction.NEXT)

  def test_blank_line(self):
    assert parse_input_line("   \n") is None

  def test_invalid_lines(self):
    with pytest.raises(ValueError):
      parse_input_line("not json")
    with pytest.raises(ValueError):
      parse_input_line("[1, 2]")
    with pytest.raises(ValueError):
      parse_input_line('{"command": "explode"}')
    with pytest.raises(ValueError):
      parse_input_line('{"text": "no source"}')


class TestJsonLineChannel:
  """Test the JSON-line output channel."""

  def test_one_message_per_line(self):
    stream = io.StringIO()
    channel = JsonLineChannel(stream)
    channel.send_message(SessionStateMessage(running=True, automatic_mode=True))
    channel.send_message(SessionStateMessage(running=False, automatic_mode=True))

    lines = stream.getvalue().splitlines()
    assert [json.loads(line)["running"] for line in lines] == [True, False]

  def test_closed_channel_rejects_messages(self):
    channel = JsonLineChannel(io.StringIO())
    channel.close()
    with pytest.raises(RuntimeError, match="closed"):
      channel.send_message(SessionStateMessage(running=True, automatic_mode=True))

  def test_attached_channel_mirrors_ledger(self):
    from overhear.config import OverhearConfig
    from overhear.runtime.live import LiveSession

    stream = io.StringIO()
    live = LiveSession(OverhearConfig())
    detach = JsonLineChannel(stream).attach(live)

    live.ledger.append("Hello.", Speaker.OTHERS, T0)
    live.ledger.refresh_display()
    detach()
    live.ledger.append("Unseen.", Speaker.OTHERS, T0)
    live.ledger.refresh_display()

    (line,) = stream.getvalue().splitlines()
    assert isinstance(deserialize_message(line), TranscriptUpdateMessage)

  def test_broken_pipe_detaches_from_session(self):
    from overhear.config import OverhearConfig
    from overhear.runtime.live import LiveSession

    class BrokenStream(io.StringIO):
      writes = 0

      def write(self, text):
        self.writes += 1
        raise BrokenPipeError()

    stream = BrokenStream()
    live = LiveSession(OverhearConfig())
    JsonLineChannel(stream).attach(live)

    live.ledger.append("Hello.", Speaker.OTHERS, T0)
    live.ledger.refresh_display()
    live.ledger.append("Still talking.", Speaker.OTHERS, T0)
    live.ledger.refresh_display()
    live.set_automatic_mode(False)

    assert stream.writes == 1
