"""Sentence-boundary segmentation over terminal punctuation."""

import re
from typing import NamedTuple

TERMINAL_PUNCTUATION = ".!?"

_SENTENCE_END = re.compile(r"[.!?]+")


class Segmentation(NamedTuple):
  sentences: list[str]
  """Complete sentences, trimmed, each ending in terminal punctuation."""

  remainder: str
  """Trailing text not yet terminated, trimmed."""


def extract_sentences(text: str) -> Segmentation:
  """Split text into complete sentences and an unterminated remainder.

  This is a pure function: the caller keeps the remainder and re-offers it, concatenated with
  new input, on the next call.
  """
  sentences: list[str] = []
  start = 0

  for match in _SENTENCE_END.finditer(text):
    sentence = text[start : match.end()].strip()
    if sentence:
      sentences.append(sentence)
    start = match.end()

  return Segmentation(sentences, text[start:].strip())


def split_sentences(text: str) -> list[str]:
  """Return complete sentences followed by the remainder, if any, as a final candidate."""
  sentences, remainder = extract_sentences(text)
  if remainder:
    sentences.append(remainder)
  return sentences


def has_terminal_punctuation(text: str) -> bool:
  return any(ch in TERMINAL_PUNCTUATION for ch in text)
