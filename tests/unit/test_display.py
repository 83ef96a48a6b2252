"""Unit tests for transcript display rendering."""

from datetime import UTC, datetime

from overhear.transcript.display import locate_question, render_tail, render_transcript, wrap
from overhear.transcript.models import Speaker, TranscriptChunk

NOW = datetime(2026, 3, 14, tzinfo=UTC)


def chunk(text: str, speaker: Speaker) -> TranscriptChunk:
  return TranscriptChunk(text=text, timestamp=NOW, speaker=speaker)


class TestWrap:
  """Test wrap function."""

  def test_wraps_on_word_boundaries(self):
    assert wrap("one two three four", 9) == ["one two", "three", "four"]

  def test_long_word_gets_its_own_line(self):
    assert wrap("a supercalifragilistic b", 5) == ["a", "supercalifragilistic", "b"]

  def test_collapses_whitespace(self):
    assert wrap("  a \n b  ", 10) == ["a b"]


class TestRenderTail:
  """Test render_tail function."""

  def test_keeps_last_lines_within_length(self):
    lines = render_tail("one two three four five six seven", max_lines=2, max_line_length=10)
    lines = lines.split("\n")
    assert len(lines) == 2
    assert all(len(line) <= 10 for line in lines)
    assert "five" in " ".join(lines)
    assert "seven" in " ".join(lines)

  def test_blank_text_renders_empty(self):
    assert render_tail("   ") == ""

  def test_punctuation_is_preserved(self):
    assert render_tail("Hello there. How are you? I am fine.") == (
      "Hello there. How are you? I am fine."
    )


class TestRenderTranscript:
  """Test render_transcript function."""

  def test_labels_each_speaker_run(self):
    chunks = [
      chunk("Hi.", Speaker.YOU),
      chunk("Hello.", Speaker.OTHERS),
      chunk("How are you?", Speaker.OTHERS),
      chunk("Good.", Speaker.YOU),
    ]
    assert render_transcript(chunks) == (
      "[You] Hi. [Others] Hello. How are you? [You] Good."
    )

  def test_pending_text_is_unlabelled(self):
    assert render_transcript([chunk("Hi.", Speaker.YOU)], " and then ") == "[You] Hi. and then"

  def test_nothing_to_render(self):
    assert render_transcript([], "") == ""


class TestLocateQuestion:
  """Test locate_question function."""

  def test_case_insensitive_match(self):
    text = "Hello. how are you? Fine."
    start, end = locate_question(text, "How are you?")
    assert text[start:end] == "how are you?"

  def test_matches_across_wrapped_lines(self):
    display = render_tail(
      "How does async functionality work in JavaScript?", max_lines=6, max_line_length=30
    )
    assert "\n" in display
    span = locate_question(display, "How does async functionality work in JavaScript?")
    assert span == (0, len(display))

  def test_missing_question(self):
    assert locate_question("Hello.", "Why?") is None
    assert locate_question("Hello.", "  ") is None
