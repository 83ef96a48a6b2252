"""Main entry point for overhear.

Reads producer events and control commands as JSON lines on stdin, runs a live session over
them, and writes UI snapshots as JSON lines on stdout.
"""

import asyncio
import signal
import sys
import threading
from pathlib import Path
from typing import TextIO

from clypi import Command, arg

from overhear.config import OverhearConfig, load_config_from_file
from overhear.logs import get_logger, setup_logging_from_env
from overhear.messages import ControlAction, ControlCommand, parse_input_line
from overhear.qa.producers import create_answer_producer
from overhear.runtime.live import LiveSession
from overhear.ui_channel import JsonLineChannel


def parse_config_path(value: str | list[str]) -> Path:
  """Parse and validate the configuration file path.

  :raises ValueError: If the path does not point at an existing file.
  """
  assert isinstance(value, str), "Config path must be a string"

  if not value.strip():
    raise ValueError("--config cannot be empty")

  config_path = Path(value).expanduser().resolve()
  if not config_path.is_file():
    raise ValueError(f"--config is not a file: {config_path}")

  return config_path


def parse_session_dir(value: str | list[str]) -> Path:
  """Parse the directory that receives session transcript logs.

  The directory is created on session start if it does not exist yet.
  """
  assert isinstance(value, str), "Session directory must be a string"

  if not value.strip():
    raise ValueError("--session-dir cannot be empty")

  session_dir = Path(value).expanduser()
  if session_dir.exists() and not session_dir.is_dir():
    raise ValueError(f"--session-dir is not a directory: {session_dir}")

  return session_dir


def apply_control(live: LiveSession, command: ControlCommand) -> None:
  """Apply one control command on the owner loop."""
  match command.command:
    case ControlAction.ASK:
      live.trigger_manual_question()
    case ControlAction.FIRST:
      live.qa.go_first()
    case ControlAction.PREVIOUS:
      live.qa.go_previous()
    case ControlAction.NEXT:
      live.qa.go_next()
    case ControlAction.LAST:
      live.qa.go_last()
    case ControlAction.AUTO:
      live.set_automatic_mode(True)
    case ControlAction.MANUAL:
      live.set_automatic_mode(False)


class StdinReader:
  """Background thread feeding inbound JSON lines into a live session.

  Producer events cross to the owner loop through ``submit_threadsafe``; control commands are
  scheduled onto the loop. End of input sets ``finished``.
  """

  def __init__(
    self,
    live: LiveSession,
    loop: asyncio.AbstractEventLoop,
    finished: asyncio.Event,
    stream: TextIO | None = None,
  ) -> None:
    self.live = live
    self.loop = loop
    self.finished = finished
    self.stream = stream if stream is not None else sys.stdin
    self.logger = get_logger("cli")

  def start(self) -> None:
    thread = threading.Thread(target=self.read_lines, name="overhear-stdin")
    thread.daemon = True
    thread.start()

  def read_lines(self) -> None:
    try:
      for line in self.stream:
        try:
          message = parse_input_line(line)
        except ValueError:
          self.logger.exception("Ignoring malformed input line", line=line.strip()[:80])
          continue

        if message is None:
          continue
        if isinstance(message, ControlCommand):
          self.loop.call_soon_threadsafe(apply_control, self.live, message)
        else:
          # Blocks while the session queue is full
          self.live.submit_threadsafe(message).result()
    finally:
      self.logger.info("Input closed")
      self.loop.call_soon_threadsafe(self.finished.set)


class Overhear(Command):
  """Overhear - live transcript question detection and answering.

  Consumes transcript and screen text from producers, detects questions as they are asked,
  and answers them with the configured provider.
  """

  config: Path | None = arg(default=None, parser=parse_config_path)
  session_dir: Path = arg(default=Path("transcripts"), parser=parse_session_dir)
  manual: bool = arg(default=False)

  def __init__(self, **kwargs):
    super().__init__(**kwargs)
    self.logger = get_logger("cli")

  def load_config(self) -> OverhearConfig:
    if self.config is None:
      config = OverhearConfig()
      config.pretty_print()
    else:
      config = load_config_from_file(self.config)

    if self.manual:
      config.automatic_mode = False
    return config

  async def run(self) -> None:
    """Main entry point for the command."""
    config = self.load_config()
    live = LiveSession(config, answer_producer=create_answer_producer(config.answer))

    channel = JsonLineChannel()
    detach = channel.attach(live)

    loop = asyncio.get_running_loop()
    finished = asyncio.Event()
    interrupted = asyncio.Event()

    def interrupt() -> None:
      self.logger.info("Received shutdown signal")
      interrupted.set()
      finished.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
      loop.add_signal_handler(signum, interrupt)

    try:
      async with live.session(self.session_dir) as log_path:
        self.logger.info("Listening for input on stdin", log=str(log_path))
        StdinReader(live, loop, finished).start()
        await finished.wait()
        if not interrupted.is_set():
          await live.flush()
    finally:
      detach()
      channel.close()


def main() -> None:
  setup_logging_from_env()
  logger = get_logger("main")

  try:
    cli = Overhear.parse()
    cli.start()
  except KeyboardInterrupt:
    logger.info("Received interrupt signal, shutting down...")
    sys.exit(0)
  except Exception:
    logger.exception("Fatal error")
    sys.exit(1)


if __name__ == "__main__":
  main()
