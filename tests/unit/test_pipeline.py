"""Unit tests for rolling-window question detection."""

import pytest

from overhear.config import DetectionConfig
from overhear.questions.classifier import QuestionClassifier
from overhear.questions.pipeline import QuestionPipeline


@pytest.fixture
def pipeline():
  return QuestionPipeline(QuestionClassifier())


class TestQuestionPipeline:
  """Test QuestionPipeline.process."""

  def test_detects_question_with_punctuation(self, pipeline):
    result = pipeline.process("How does async work in JavaScript which is single threaded?")
    assert result.latest_question is not None
    assert result.latest_question.endswith("?")
    assert len(result.new_questions) == 1

  def test_statement_with_period(self, pipeline):
    result = pipeline.process("I think the answer is obvious.")
    assert result.latest_question is None
    assert result.new_questions == []

  def test_partial_question_by_keyword(self, pipeline):
    result = pipeline.process("What is JavaScript")
    assert result.latest_question is not None
    assert result.latest_question.lower().startswith("what")

  def test_multiple_sentences(self, pipeline):
    result = pipeline.process("First sentence. What is this? Another statement!")
    assert result.latest_question == "What is this?"
    assert result.new_questions == ["What is this?"]

  def test_multiple_questions(self, pipeline):
    result = pipeline.process("What is this? How does it work?")
    assert result.new_questions == ["What is this?", "How does it work?"]
    assert result.latest_question == "How does it work?"

  def test_empty_input(self, pipeline):
    result = pipeline.process("")
    assert result.latest_question is None
    assert result.new_questions == []

  def test_overlapping_windows_report_each_question_once(self, pipeline):
    first = pipeline.process("Hello. What is this?")
    second = pipeline.process("Hello. What is this? It is a test. How does it work?")
    third = pipeline.process("What is this? It is a test. How does it work? Fine.")

    assert first.new_questions == ["What is this?"]
    assert second.new_questions == ["How does it work?"]
    assert third.new_questions == []
    assert third.latest_question == "How does it work?"

  def test_repeat_with_different_casing_is_not_new(self, pipeline):
    pipeline.process("What is this?")
    assert pipeline.process("what   is THIS?").new_questions == []

  def test_line_broken_repeat_in_one_window_is_reported_once(self, pipeline):
    result = pipeline.process("What is\nthis? Ok. What is this?")
    assert result.new_questions == ["What is\nthis?"]

  def test_reset_forgets_processed_questions(self, pipeline):
    pipeline.process("What is this?")
    pipeline.reset()
    assert pipeline.process("What is this?").new_questions == ["What is this?"]

  def test_eviction_keeps_tail_of_current_call(self):
    pipeline = QuestionPipeline(QuestionClassifier(), processed_cap=4, retained_tail=2)
    pipeline.process("Is a? Is b? Is c?")
    pipeline.process("Is d? Is e?")

    assert pipeline.processed == {"is d?", "is e?"}
    assert pipeline.process("Is e? Is a?").new_questions == ["Is a?"]

  def test_from_config(self):
    pipeline = QuestionPipeline.from_config(
      DetectionConfig(processed_cap=20, retained_tail=5), name="screen"
    )
    assert pipeline.processed_cap == 20
    assert pipeline.retained_tail == 5
