"""Question classification for finalized sentences and still-streaming partial text.

Terminal punctuation added by the recognizer is the strong signal. When the text has no
punctuation at all (a live partial hypothesis), a cue-word scan over the tail recovers
interrogatives early so the UI can highlight them before the sentence is finished.
"""

import re
from collections.abc import Iterable, Sequence

from overhear.config import DEFAULT_QUESTION_VERBS, DEFAULT_QUESTION_WORDS, DetectionConfig
from overhear.transcript.segmenter import has_terminal_punctuation, split_sentences

_WHITESPACE = re.compile(r"\s+")


def normalized_key(text: str) -> str:
  """Lowercased, whitespace-collapsed form of text used for identity comparisons."""
  return _WHITESPACE.sub(" ", text).strip().lower()


def dedupe(questions: Iterable[str]) -> list[str]:
  """Drop repeats by normalized key, preserving first-seen order."""
  seen: set[str] = set()
  result: list[str] = []
  for question in questions:
    key = normalized_key(question)
    if key not in seen:
      seen.add(key)
      result.append(question)
  return result


class QuestionClassifier:
  """Detects questions by trailing `?` or a leading interrogative cue."""

  def __init__(
    self,
    question_words: Sequence[str] = DEFAULT_QUESTION_WORDS,
    question_verbs: Sequence[str] = DEFAULT_QUESTION_VERBS,
    fallback_tail_chars: int = 400,
    fallback_min_length: int = 6,
  ) -> None:
    self.question_words = tuple(question_words)
    self.question_verbs = tuple(question_verbs)
    self.fallback_tail_chars = fallback_tail_chars
    self.fallback_min_length = fallback_min_length

    word_group = "|".join(re.escape(word) for word in self.question_words + self.question_verbs)
    self._leading_cue = re.compile(rf"^(?:{word_group})\b")
    self._fallback = re.compile(rf"\b(?:{word_group})\b[^.?!\n]*", re.IGNORECASE)

  @classmethod
  def from_config(cls, config: DetectionConfig) -> "QuestionClassifier":
    return cls(
      question_words=config.question_words,
      question_verbs=config.question_verbs,
      fallback_tail_chars=config.fallback_tail_chars,
      fallback_min_length=config.fallback_min_length,
    )

  def is_question(self, sentence: str) -> bool:
    trimmed = sentence.strip()
    if trimmed.endswith("?"):
      return True
    return self._leading_cue.match(trimmed.lower()) is not None

  def detect(self, text: str) -> list[str]:
    """Return the questions in text, in textual order, deduplicated."""
    if not text.strip():
      return []

    questions = [sentence for sentence in split_sentences(text) if self.is_question(sentence)]

    # The fallback must never fire once real punctuation exists, or the same utterance
    # would be detected twice in two different forms.
    if not questions and not has_terminal_punctuation(text):
      questions = self._detect_without_punctuation(text)

    return dedupe(questions)

  def first_question(self, text: str) -> str | None:
    questions = self.detect(text)
    return questions[0] if questions else None

  def _detect_without_punctuation(self, text: str) -> list[str]:
    tail = text.strip()[-self.fallback_tail_chars :]
    candidates = (match.group(0).strip() for match in self._fallback.finditer(tail))
    return [candidate for candidate in candidates if len(candidate) >= self.fallback_min_length]
