"""Incremental delta extraction for producers that re-emit their whole hypothesis.

Live recognizers report the entire current hypothesis on every update, growing and
occasionally correcting it. The extractor keeps one cursor per producer and reports only the
newly appended suffix.
"""


def find_common_prefix(str1: str, str2: str) -> str:
  """Find the common prefix between two strings."""
  if not str1 or not str2:
    return ""

  min_length = min(len(str1), len(str2))

  for i in range(min_length):
    if str1[i] != str2[i]:
      return str1[:i]

  return str1[:min_length]


class DeltaExtractor:
  """Single-producer cursor turning cumulative hypotheses into deltas.

  One instance must exist per independent producer; the cursor is not shareable.
  """

  def __init__(self) -> None:
    self.last_text: str = ""

  def consume(self, text: str) -> str:
    """Return the text appended since the previous hypothesis.

    A hypothesis shorter than the previous one means the recognizer restarted or corrected
    downward, so the whole new hypothesis is reported rather than diffed.
    """
    trimmed = text.strip()
    if not trimmed:
      self.last_text = ""
      return ""

    if not self.last_text or len(text) < len(self.last_text):
      self.last_text = text
      return trimmed

    prefix = find_common_prefix(text, self.last_text)
    self.last_text = text
    return text[len(prefix) :].strip()

  def reset(self) -> None:
    self.last_text = ""
