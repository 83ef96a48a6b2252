"""Rolling-window question detection with a bounded ledger of processed questions."""

from typing import NamedTuple

from overhear.config import DetectionConfig
from overhear.logs import get_logger
from overhear.questions.classifier import QuestionClassifier, normalized_key


class PipelineResult(NamedTuple):
  latest_question: str | None
  """The most recently spoken question in the window, new or not (for highlighting)."""

  new_questions: list[str]
  """Questions not seen in any previous call since the last reset (for auto-submission)."""


class QuestionPipeline:
  """Runs the classifier over a trailing detection window.

  The window overlaps from call to call, so the same question appears in many consecutive
  calls. Only its first appearance is reported as new.
  """

  def __init__(
    self,
    classifier: QuestionClassifier,
    processed_cap: int = 50,
    retained_tail: int = 10,
    name: str = "audio",
  ) -> None:
    assert 0 < retained_tail < processed_cap
    self.classifier = classifier
    self.processed_cap = processed_cap
    self.retained_tail = retained_tail
    self.processed: set[str] = set()
    self.logger = get_logger("pipe", pipeline=name)

  @classmethod
  def from_config(cls, config: DetectionConfig, name: str = "audio") -> "QuestionPipeline":
    return cls(
      QuestionClassifier.from_config(config),
      processed_cap=config.processed_cap,
      retained_tail=config.retained_tail,
      name=name,
    )

  def process(self, recent_text: str) -> PipelineResult:
    if not recent_text.strip():
      return PipelineResult(None, [])

    all_questions = self.classifier.detect(recent_text)
    keys = [normalized_key(question) for question in all_questions]

    new_questions = [
      question for question, key in zip(all_questions, keys) if key not in self.processed
    ]
    self.processed.update(keys)

    # Truncation, not LRU: the set is unordered, so the keys of this call stand in for the
    # most recent ones.
    if len(self.processed) > self.processed_cap:
      self.logger.debug(
        "Evicting processed questions", size=len(self.processed), retained=self.retained_tail
      )
      self.processed = set(keys[-self.retained_tail :])

    if new_questions:
      self.logger.info("New questions detected", count=len(new_questions))

    return PipelineResult(all_questions[-1] if all_questions else None, new_questions)

  def reset(self) -> None:
    self.processed.clear()
