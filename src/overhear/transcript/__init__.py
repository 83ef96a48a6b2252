"""
Transcript handling: delta extraction, sentence segmentation and the ledger of finalized
utterances.

The ledger is imported from its own module (``overhear.transcript.ledger``) since it depends
on configuration, which in turn depends on the data types exported here.
"""

from overhear.transcript.delta import DeltaExtractor, find_common_prefix
from overhear.transcript.models import ProducerEvent, Speaker, TranscriptChunk
from overhear.transcript.segmenter import Segmentation, extract_sentences, split_sentences

__all__ = [
  "DeltaExtractor",
  "ProducerEvent",
  "Segmentation",
  "Speaker",
  "TranscriptChunk",
  "extract_sentences",
  "find_common_prefix",
  "split_sentences",
]
