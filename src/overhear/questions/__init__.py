"""
Question detection: classification of sentences and rolling-window discovery.
"""

from overhear.questions.classifier import QuestionClassifier, dedupe, normalized_key
from overhear.questions.pipeline import PipelineResult, QuestionPipeline

__all__ = [
  "PipelineResult",
  "QuestionClassifier",
  "QuestionPipeline",
  "dedupe",
  "normalized_key",
]
