"""
overhear: real-time transcript and question pipeline.

Turns overlapping partial transcriptions into stable timestamped utterances, detects questions
as they are spoken, and routes them to a streaming answer producer.
"""

__version__ = "0.1.0"
