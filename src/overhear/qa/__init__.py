"""Q&A session state and answer producers."""

from overhear.qa.models import QAItem, QASnapshot, QuestionSource
from overhear.qa.producers import (
  AnswerError,
  AnswerProducer,
  StreamingHTTPAnswerProducer,
  create_answer_producer,
)
from overhear.qa.session import QASession

__all__ = [
  "AnswerError",
  "AnswerProducer",
  "QAItem",
  "QASession",
  "QASnapshot",
  "QuestionSource",
  "StreamingHTTPAnswerProducer",
  "create_answer_producer",
]
