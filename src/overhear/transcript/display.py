"""Rendering of the bounded transcript tail shown to the user."""

from collections.abc import Sequence

from overhear.transcript.models import TranscriptChunk


def wrap(text: str, max_line_length: int) -> list[str]:
  """Greedy word wrap; a single word longer than the limit gets a line of its own."""
  lines: list[str] = []
  current = ""

  for word in text.split():
    if not current:
      current = word
    elif len(current) + 1 + len(word) <= max_line_length:
      current = f"{current} {word}"
    else:
      lines.append(current)
      current = word

  if current:
    lines.append(current)

  return lines


def render_tail(text: str, max_lines: int = 6, max_line_length: int = 60) -> str:
  """Wrap text and keep only the last max_lines lines."""
  if not text.strip():
    return ""
  return "\n".join(wrap(text, max_line_length)[-max_lines:])


def render_transcript(chunks: Sequence[TranscriptChunk], pending: str = "") -> str:
  """Join chunks into prose, labelling each run of consecutive sentences by its speaker.

  Pending text is appended unlabelled since its speaker is not known until it completes.
  """
  parts: list[str] = []
  previous_speaker = None

  for chunk in chunks:
    if chunk.speaker is not previous_speaker:
      parts.append(f"[{chunk.speaker.display_label}]")
      previous_speaker = chunk.speaker
    parts.append(chunk.text)

  if pending.strip():
    parts.append(pending.strip())

  return " ".join(parts)


def locate_question(text: str, question: str) -> tuple[int, int] | None:
  """Find the span of question in text for highlighting, ignoring case.

  Line breaks in the wrapped display are matched as spaces. Whitespace is replaced rather than
  removed so offsets map back onto the original text unchanged.
  """
  needle = question.strip().lower()
  if not needle or not text:
    return None

  haystack = text.lower()
  index = haystack.find(needle)
  if index < 0:
    flattened = haystack.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    index = flattened.find(needle)
  if index < 0:
    return None

  return index, index + len(needle)
