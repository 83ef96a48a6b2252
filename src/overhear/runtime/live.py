"""
LiveSession: the single owner of all mutable pipeline state.

Producers on any thread hand events to the session's queue. One consumer task on the owner
loop applies them to the ledger, and loop timers run display refresh and question detection.
Answers are streamed in background tasks whose updates are dropped once the session they
belong to has ended.
"""

import asyncio
import concurrent.futures
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic.dataclasses import dataclass

from overhear.config import OverhearConfig, SourceKind
from overhear.format import Pretty
from overhear.logs import get_logger
from overhear.qa.models import QAItem, QuestionSource
from overhear.qa.producers import AnswerProducer
from overhear.qa.session import QASession
from overhear.questions.pipeline import QuestionPipeline
from overhear.runtime.observable import Observable
from overhear.runtime.timing import Debouncer, Throttle
from overhear.transcript.delta import DeltaExtractor
from overhear.transcript.ledger import TranscriptLedger
from overhear.transcript.models import ProducerEvent, utc_now

logger = get_logger("live")


@dataclass(frozen=True)
class SessionStatus:
  """Session-level state published to UI consumers."""

  running: bool
  automatic_mode: bool
  log_path: str | None = None


class LiveSession:
  """Couples the transcript ledger, question pipelines and Q&A session on one event loop.

  :param config: Full configuration.
  :param answer_producer: Answers submitted questions; without one, questions are recorded
      unanswered.
  :param ledger: Ledger to own; built from config when omitted.
  :param clock: Source of "now" for detection windows and Q&A recency.
  """

  def __init__(
    self,
    config: OverhearConfig,
    answer_producer: AnswerProducer | None = None,
    ledger: TranscriptLedger | None = None,
    clock: Callable[[], datetime] = utc_now,
  ) -> None:
    self.config = config
    self.clock = clock
    self.answer_producer = answer_producer
    self.automatic_mode = config.automatic_mode

    self.ledger = ledger or TranscriptLedger(config.ledger, clock=clock)
    self.audio_pipeline = QuestionPipeline.from_config(config.detection, name="audio")
    self.screen_pipeline = QuestionPipeline.from_config(config.detection, name="screen")
    self.qa = QASession(config.qa.duplicate_window, clock=clock)

    self.extractors: dict[str, DeltaExtractor] = {}
    """Delta extractors for cumulative sources, keyed by source id."""

    self.latest_screen_text: str = ""
    self.status: Observable[SessionStatus] = Observable("status")

    self._running = False
    self._generation = 0
    self._stopped = asyncio.Event()
    self._log_path: Path | None = None
    self._loop: asyncio.AbstractEventLoop | None = None
    self._queue: asyncio.Queue[ProducerEvent] | None = None
    self._consumer: asyncio.Task[None] | None = None
    self._answer_tasks: set[asyncio.Task[Any]] = set()

    timing = config.timing
    self._refresh = Throttle(timing.refresh_throttle, self.ledger.refresh_display, "refresh")
    self._detection = Debouncer(timing.detection_debounce, self.run_detection, "detection")
    self._screen_detection = Debouncer(
      timing.screen_debounce, self.run_screen_detection, "screen-detection"
    )

  @property
  def running(self) -> bool:
    return self._running

  # Lifecycle

  async def start(self, directory: Path) -> Path | None:
    """Open a session log in directory and begin consuming producer events.

    :returns: Path of the session log, or None if the session runs in memory only.
    """
    if self._running:
      logger.warning("Session already running")
      return self._log_path

    self._loop = asyncio.get_running_loop()
    self._generation += 1
    self.audio_pipeline.reset()
    self.screen_pipeline.reset()
    self.extractors.clear()
    self._queue = asyncio.Queue(maxsize=self.config.timing.queue_size)
    self._stopped = asyncio.Event()

    self._log_path = self.ledger.start_session(directory)
    self._running = True
    self._consumer = asyncio.create_task(self._consume(), name="overhear-consumer")

    logger.info("Session started", generation=self._generation, log=str(self._log_path))
    self._publish_status()
    return self._log_path

  async def stop(self) -> None:
    """End the session.

    Input stops and timers are cancelled before the log is closed, and the log is closed
    before any state is cleared.
    """
    if not self._running:
      return

    self._running = False
    self._generation += 1
    self._stopped.set()
    for timer in (self._refresh, self._detection, self._screen_detection):
      timer.cancel()

    tasks = [task for task in [self._consumer, *self._answer_tasks] if task is not None]
    for task in tasks:
      task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    self._consumer = None
    self._queue = None

    self.ledger.stop_session()

    self.ledger.clear()
    self.audio_pipeline.reset()
    self.screen_pipeline.reset()
    self.extractors.clear()
    self.latest_screen_text = ""
    self.qa.clear()
    self._log_path = None

    logger.info("Session stopped")
    self._publish_status()

  @asynccontextmanager
  async def session(self, directory: Path) -> AsyncIterator[Path | None]:
    """Run a session for the duration of the block, stopping it on exit."""
    path = await self.start(directory)
    try:
      yield path
    finally:
      await self.stop()

  # Producer hand-off

  async def submit(self, event: ProducerEvent) -> bool:
    """Queue an event from a producer, waiting if the queue is full.

    :returns: False if the session is not running, or stops while waiting, and the event was
        dropped.
    """
    queue = self._queue
    if not self._running or queue is None:
      logger.debug("Dropping event, session not running", source=event.source)
      return False
    if not queue.full():
      queue.put_nowait(event)
      return True

    put = asyncio.ensure_future(queue.put(event))
    stopped = asyncio.ensure_future(self._stopped.wait())
    try:
      done, _ = await asyncio.wait((put, stopped), return_when=asyncio.FIRST_COMPLETED)
    finally:
      put.cancel()
      stopped.cancel()

    if put in done:
      return True
    logger.debug("Dropping event, session stopped while queue was full", source=event.source)
    return False

  def submit_threadsafe(self, event: ProducerEvent) -> concurrent.futures.Future[bool]:
    """Queue an event from a thread other than the owner loop's."""
    assert self._loop is not None, "submit_threadsafe before start"
    return asyncio.run_coroutine_threadsafe(self.submit(event), self._loop)

  async def drain(self) -> None:
    """Wait until every queued event has been applied."""
    if self._queue is not None:
      await self._queue.join()

  async def flush(self) -> None:
    """Apply queued events, run any pending refresh or detection now, and wait for answers."""
    await self.drain()
    if not self._running:
      return

    if self._refresh.pending:
      self._refresh.cancel()
      self.ledger.refresh_display()
    if self._detection.pending:
      self._detection.cancel()
      self.run_detection()
    if self._screen_detection.pending:
      self._screen_detection.cancel()
      self.run_screen_detection()

    if self._answer_tasks:
      await asyncio.gather(*list(self._answer_tasks), return_exceptions=True)

  async def _consume(self) -> None:
    assert self._queue is not None
    queue = self._queue
    while True:
      event = await queue.get()
      try:
        self._handle_event(event)
      except Exception:
        logger.exception("Failed to apply producer event", source=event.source)
      finally:
        queue.task_done()

  def _handle_event(self, event: ProducerEvent) -> None:
    source = self.config.sources.get(event.source)
    if source is None:
      logger.warning("Dropping event from unknown source", source=event.source)
      return

    if source.kind is SourceKind.SCREEN:
      text = event.text.strip()
      if text:
        self.latest_screen_text = text
        self._screen_detection.trigger()
      return

    cumulative = source.cumulative if event.cumulative is None else event.cumulative
    delta = event.text
    if cumulative:
      extractor = self.extractors.setdefault(event.source, DeltaExtractor())
      delta = extractor.consume(event.text)
    if not delta.strip():
      return

    self.ledger.append(delta, source.speaker, event.timestamp)
    self._refresh.trigger()
    self._detection.trigger()

  # Detection

  def run_detection(self) -> list[str]:
    """Detect questions in the recent transcript; auto-submit new ones in automatic mode."""
    if not self._running:
      return []

    result = self.audio_pipeline.process(self.ledger.recent_text_for_detection(self.clock()))
    self.ledger.update_latest_question(result.latest_question)
    if self.automatic_mode:
      for question in result.new_questions:
        self.ask(question, QuestionSource.AUDIO)
    return result.new_questions

  def run_screen_detection(self) -> list[str]:
    """Detect questions in the latest screen text; auto-submit new ones in automatic mode."""
    text = self.latest_screen_text
    if not self._running or not text:
      return []

    result = self.screen_pipeline.process(text)
    if self.automatic_mode:
      for question in result.new_questions:
        self.ask(question, QuestionSource.SCREEN, screen_context=text)
    return result.new_questions

  def trigger_manual_question(self) -> QAItem | None:
    """Ask the best available question right now, whatever the mode.

    Preference: a question on screen, a question in the audio, then the raw audio text, then
    the raw screen text.
    """
    screen_text = self.latest_screen_text
    audio_text = self.ledger.recent_text_for_detection(self.clock()).strip()
    classifier = self.audio_pipeline.classifier

    if screen_text and (question := classifier.first_question(screen_text)):
      return self.ask(question, QuestionSource.MANUAL, screen_context=screen_text)
    if audio_text and (question := classifier.first_question(audio_text)):
      return self.ask(question, QuestionSource.MANUAL)
    if audio_text:
      return self.ask(audio_text, QuestionSource.MANUAL)
    if screen_text:
      return self.ask(screen_text, QuestionSource.MANUAL, screen_context=screen_text)

    logger.info("No text available to ask about")
    return None

  def set_automatic_mode(self, enabled: bool) -> None:
    if enabled == self.automatic_mode:
      return
    self.automatic_mode = enabled
    logger.info("Automatic mode changed", enabled=enabled)
    self._publish_status()

  def reset_engine(self) -> None:
    """Forget per-engine state after the upstream recognizer has been replaced."""
    for extractor in self.extractors.values():
      extractor.reset()
    self.audio_pipeline.reset()
    logger.info("Engine state reset", sources=Pretty(sorted(self.extractors)))

  # Q&A

  def ask(
    self, question: str, source: QuestionSource, screen_context: str | None = None
  ) -> QAItem | None:
    """Add a question to the Q&A session and start answering it.

    :returns: The new item, or None if the question was blank, recently asked, or the session
        is not running.
    """
    question = question.strip()
    if not self._running or not question:
      return None
    if self.qa.is_duplicate_recent(question):
      logger.info("Skipping recently asked question", question=question)
      return None

    item = self.qa.add_question(question, source, screen_context=screen_context)
    if self.answer_producer is not None:
      task = asyncio.create_task(
        self._stream_answer(item.id, question, screen_context, self._generation)
      )
      self._answer_tasks.add(task)
      task.add_done_callback(self._answer_tasks.discard)
    return item

  def _is_live(self, item_id: uuid.UUID, generation: int) -> bool:
    return (
      self._running and generation == self._generation and self.qa.get(item_id) is not None
    )

  async def _stream_answer(
    self, item_id: uuid.UUID, question: str, context: str | None, generation: int
  ) -> None:
    assert self.answer_producer is not None
    buffer: list[str] = []

    def on_chunk(chunk: str) -> None:
      buffer.append(chunk)
      if self._is_live(item_id, generation):
        self.qa.update_answer(item_id, "".join(buffer))

    try:
      answer = await self.answer_producer.answer(question, context, on_chunk)
    except Exception as e:
      logger.warning("Answer failed", question=question, error=str(e))
      answer = f"Error: {e}"

    if self._is_live(item_id, generation):
      self.qa.update_answer(item_id, answer)
    else:
      logger.debug("Dropping answer for ended session", question=question)

  def _publish_status(self) -> None:
    self.status.publish(
      SessionStatus(
        running=self._running,
        automatic_mode=self.automatic_mode,
        log_path=str(self._log_path) if self._log_path else None,
      )
    )
