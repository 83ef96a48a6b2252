"""JSON-line channel that mirrors live session state to a UI process.

One message per line on the output stream (stdout by default). Logs go to stderr, so the UI
can read the stream without filtering.
"""

import sys
from collections.abc import Callable
from typing import TextIO

from overhear.logs import get_logger
from overhear.messages import (
  Message,
  qa_update,
  serialize_message,
  session_state,
  transcript_update,
)
from overhear.runtime.live import LiveSession


class JsonLineChannel:
  """Writes UI messages as JSON lines.

  :param stream: Text stream to write to.
  :type stream: TextIO
  """

  def __init__(self, stream: TextIO | None = None) -> None:
    self._stream = stream if stream is not None else sys.stdout
    self._closed = False
    self._unsubscribers: list[Callable[[], None]] = []
    self.logger = get_logger("ui_channel")

  def send_message(self, message: Message) -> None:
    """Serialize and write one message, flushing immediately.

    :raises RuntimeError: If the channel is closed or the reader has gone away.
    """
    if self._closed:
      raise RuntimeError("UI channel is closed")

    try:
      self._stream.write(serialize_message(message) + "\n")
      self._stream.flush()
    except BrokenPipeError:
      self._closed = True
      self._detach_all()
      self.logger.exception("UI output pipe is broken, detaching from session")
      raise RuntimeError("UI output pipe is broken")

    self.logger.debug("Sent message to UI", message_type=message.type)

  def attach(self, live: LiveSession) -> Callable[[], None]:
    """Forward every snapshot the session publishes.

    :returns: A function that detaches the channel again.
    """
    unsubscribers = [
      live.ledger.snapshots.subscribe(lambda s: self.send_message(transcript_update(s))),
      live.qa.snapshots.subscribe(lambda s: self.send_message(qa_update(s))),
      live.status.subscribe(lambda s: self.send_message(session_state(s))),
    ]

    self._unsubscribers.extend(unsubscribers)

    def detach() -> None:
      for unsubscribe in unsubscribers:
        unsubscribe()
        if unsubscribe in self._unsubscribers:
          self._unsubscribers.remove(unsubscribe)

    return detach

  def close(self) -> None:
    self._closed = True

  def _detach_all(self) -> None:
    for unsubscribe in self._unsubscribers:
      unsubscribe()
    self._unsubscribers.clear()
