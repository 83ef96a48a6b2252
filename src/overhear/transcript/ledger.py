"""Transcript ledger: the authoritative record of finalized utterances for one session.

Accepts deltas tagged by speaker, completes them into sentences, suppresses near-duplicates
(including echoes of one speaker picked up on the other's channel), keeps bounded display and
detection windows, and appends every finalized sentence to a session log file.
"""

import secrets
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from enum import StrEnum
from pathlib import Path
from typing import TextIO

from pydantic.dataclasses import dataclass

from overhear.config import LedgerConfig
from overhear.format import Chars
from overhear.logs import get_logger
from overhear.questions.classifier import normalized_key
from overhear.runtime.observable import Observable
from overhear.transcript.display import render_tail, render_transcript
from overhear.transcript.models import Speaker, TranscriptChunk, utc_now
from overhear.transcript.segmenter import extract_sentences

logger = get_logger("ledger")


class LedgerState(StrEnum):
  IDLE = "idle"
  ACTIVE = "active"


@dataclass(frozen=True)
class TranscriptSnapshot:
  """Read-only view of the ledger published to UI consumers."""

  chunks: tuple[TranscriptChunk, ...]
  """Finalized chunks inside the display window, oldest first."""

  display_text: str
  """Bounded, word-wrapped tail of the transcript including pending text."""

  pending_text: str
  """Text not yet completed into a sentence."""

  latest_question: str | None
  """Most recent question to highlight, if any."""


class SessionLog:
  """Append-only UTF-8 log of finalized sentences, one line per chunk."""

  def __init__(self, path: Path, handle: TextIO) -> None:
    self.path = path
    self._handle: TextIO | None = handle

  @classmethod
  def create(cls, directory: Path, started_at: datetime) -> "SessionLog":
    """Create a new log file named by start time plus a random suffix.

    :raises OSError: If the directory or file cannot be created.
    """
    directory.mkdir(parents=True, exist_ok=True)
    name = f"transcript-{started_at:%Y%m%d-%H%M%S}-{secrets.token_hex(3)}.txt"
    path = directory / name
    return cls(path, open(path, "x", encoding="utf-8"))

  @property
  def is_open(self) -> bool:
    return self._handle is not None

  def write(self, chunk: TranscriptChunk) -> None:
    """Append one chunk and flush it. :raises OSError: On write failure."""
    assert self._handle is not None, "write on a closed session log"
    self._handle.write(chunk.log_line() + "\n")
    self._handle.flush()

  def close(self) -> None:
    if self._handle is None:
      return
    try:
      self._handle.flush()
    finally:
      self._handle.close()
      self._handle = None


class TranscriptLedger:
  """Stateful transcript buffer. Not safe for concurrent mutation; see LiveSession.

  :param config: Window, cap and deduplication settings.
  :param clock: Source of "now" for file naming and window horizons.
  """

  def __init__(self, config: LedgerConfig, clock: Callable[[], datetime] = utc_now) -> None:
    self.config = config
    self.clock = clock

    self.chunks: list[TranscriptChunk] = []
    """Finalized chunks in time order."""

    self.pending_text: str = ""
    """Not-yet-terminated text; never longer than config.pending_cap."""

    self.latest_question: str | None = None
    self.state = LedgerState.IDLE
    self.session_log: SessionLog | None = None

    self.snapshots: Observable[TranscriptSnapshot] = Observable("transcript")
    self._last_snapshot: TranscriptSnapshot | None = None

  # Session lifecycle

  def start_session(self, directory: Path) -> Path | None:
    """Activate the ledger and open a session log in directory.

    Failing to create the log is not fatal: the session runs in memory only.

    :returns: Path of the session log, or None if it could not be created.
    """
    if self.state is LedgerState.ACTIVE:
      self.stop_session()

    self.state = LedgerState.ACTIVE
    try:
      self.session_log = SessionLog.create(Path(directory), self.clock())
    except OSError:
      logger.exception("Could not create session log, continuing in memory", directory=directory)
      self.session_log = None
      return None

    logger.info("Session log opened", path=str(self.session_log.path))
    return self.session_log.path

  def stop_session(self) -> None:
    """Flush and close the session log and return to idle."""
    log, self.session_log = self.session_log, None
    self.state = LedgerState.IDLE
    if log is None:
      return
    try:
      log.close()
      logger.info("Session log closed", path=str(log.path))
    except OSError:
      logger.exception("Failed to close session log", path=str(log.path))

  @contextmanager
  def session(self, directory: Path) -> Iterator[Path | None]:
    """Scope a session so the log is released on exit, including on error."""
    path = self.start_session(directory)
    try:
      yield path
    finally:
      self.stop_session()

  # Mutation

  def append(self, delta: str, speaker: Speaker, timestamp: datetime) -> list[TranscriptChunk]:
    """Add a delta, completing any sentences it terminates.

    :returns: The chunks created by this call, after duplicate suppression.
    """
    text = delta.strip()
    if not text:
      return []

    if self.pending_text and not (self.pending_text[-1].isspace() or text[0].isspace()):
      self.pending_text += " "
    self.pending_text += text

    if len(self.pending_text) > self.config.pending_cap:
      logger.warning(
        "Pending text over cap, dropping oldest characters",
        length=str(Chars(len(self.pending_text))),
        cap=self.config.pending_cap,
      )
      self.pending_text = self.pending_text[-self.config.pending_cap :]

    sentences, self.pending_text = extract_sentences(self.pending_text)

    created: list[TranscriptChunk] = []
    for sentence in sentences:
      if self._is_duplicate(sentence, speaker, timestamp):
        logger.debug("Suppressed duplicate sentence", text=sentence, speaker=speaker)
        continue

      chunk = TranscriptChunk(text=sentence, timestamp=timestamp, speaker=speaker)
      self.chunks.append(chunk)
      created.append(chunk)
      self._persist(chunk)

    self._prune(timestamp)
    return created

  def update_latest_question(self, question: str | None) -> None:
    if question == self.latest_question:
      return
    self.latest_question = question
    self.refresh_display()

  def clear(self) -> None:
    self.chunks.clear()
    self.pending_text = ""
    self.latest_question = None
    self.refresh_display()

  # Views

  def snapshot(self) -> TranscriptSnapshot:
    display_text = render_tail(
      render_transcript(self.chunks, self.pending_text),
      max_lines=self.config.display_max_lines,
      max_line_length=self.config.display_line_length,
    )
    return TranscriptSnapshot(
      chunks=tuple(self.chunks),
      display_text=display_text,
      pending_text=self.pending_text,
      latest_question=self.latest_question,
    )

  def refresh_display(self) -> TranscriptSnapshot | None:
    """Publish a new snapshot if it differs from the last one published.

    :returns: The published snapshot, or None when nothing changed.
    """
    snapshot = self.snapshot()
    if snapshot == self._last_snapshot:
      return None
    self._last_snapshot = snapshot
    self.snapshots.publish(snapshot)
    return snapshot

  def recent_text_for_detection(self, now: datetime | None = None) -> str:
    """Join recent chunks and the pending text into classifier input.

    This is the only place incomplete text leaves the ledger.
    """
    now = now or self.clock()
    horizon = now - timedelta(seconds=self.config.detection_window)
    parts = [chunk.text for chunk in self.chunks if chunk.timestamp >= horizon]
    if self.pending_text:
      parts.append(self.pending_text)
    return " ".join(parts)

  # Internals

  def _is_duplicate(self, sentence: str, speaker: Speaker, timestamp: datetime) -> bool:
    lookback = self.config.duplicate_lookback
    if lookback == 0:
      return False

    key = normalized_key(sentence)
    window = timedelta(seconds=self.config.duplicate_window)
    for chunk in self.chunks[-lookback:]:
      if not self.config.dedupe_across_speakers and chunk.speaker is not speaker:
        continue
      if abs(timestamp - chunk.timestamp) <= window and normalized_key(chunk.text) == key:
        return True
    return False

  def _persist(self, chunk: TranscriptChunk) -> None:
    if self.session_log is None:
      return
    try:
      self.session_log.write(chunk)
    except OSError:
      logger.exception("Session log write failed, continuing in memory")
      log, self.session_log = self.session_log, None
      try:
        log.close()
      except OSError:
        logger.debug("Session log close after write failure also failed")

  def _prune(self, now: datetime) -> None:
    horizon = now - timedelta(seconds=self.config.display_window)
    expired = 0
    while expired < len(self.chunks) and self.chunks[expired].timestamp < horizon:
      expired += 1
    if expired:
      del self.chunks[:expired]
      logger.debug("Pruned expired chunks", count=expired)
