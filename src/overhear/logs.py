"""Centralized logging configuration for overhear using structlog.

Log output goes to stderr. Stdout is reserved for the JSON-line UI channel, so a UI process
can read snapshots without having to filter log noise.
"""

import logging
import os
import sys
import time
from typing import Any

import structlog
from structlog.dev import RESET_ALL, Column, ConsoleRenderer, KeyValueColumnFormatter
from structlog.typing import EventDict, Processor, WrappedLogger

_PROGRAM_START_TIME = time.time()


def hex_to_ansi_fg(hex_color: int) -> str:
  """Convert hex color (e.g., 0xad8a89) to ANSI 24-bit foreground escape code."""
  r = (hex_color >> 16) & 0xFF
  g = (hex_color >> 8) & 0xFF
  b = hex_color & 0xFF
  return f"\x1b[38;2;{r};{g};{b}m"


class FloatPrecisionProcessor:
  """
  A structlog processor that rounds floats, both bare and nested inside lists or dicts.

  Timing values (debounce delays, window ages) are logged as raw floats throughout the
  pipeline; rounding keeps console lines short.
  """

  def __init__(self, digits: int = 3, not_fields: frozenset[str] = frozenset()):
    """
    :param digits: The number of digits to round to
    :param not_fields: Fields that are never rounded
    """
    self.digits = digits
    self.not_fields = not_fields

  def _round(self, value: Any):
    if isinstance(value, bool):
      return value
    if isinstance(value, float):
      return round(value, self.digits)
    if isinstance(value, list):
      return [self._round(item) for item in value]
    if isinstance(value, dict):
      return {k: self._round(v) for k, v in value.items()}
    return value

  def __call__(self, _: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
      if key in self.not_fields:
        continue
      event_dict[key] = self._round(value)
    return event_dict


def _relative_time_processor(
  _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
  """Add relative timestamp since program start, as +[hh:][mm:]ss.mmm."""
  elapsed = time.time() - _PROGRAM_START_TIME

  hours = int(elapsed // 3600)
  minutes = int((elapsed % 3600) // 60)
  seconds = elapsed % 60

  gray = "\x1b[2m"
  dark_gray = "\x1b[90m"
  reset = "\x1b[0m"
  separator = f"{gray}:{reset}"

  hours_str = f"{gray}{hours:02d}{reset}{separator}" if hours else ""
  minutes_str = f"{gray}{minutes:02d}{reset}{separator}" if minutes or hours else ""
  seconds_str = f"{gray}{seconds:06.3f}{reset}"

  event_dict["timestamp"] = f"{dark_gray}+{reset}{hours_str}{minutes_str}{seconds_str}"
  return event_dict


_LEVEL_COLORS = {
  "debug": ("dbug", 0x908CAA, 0x827E99),
  "info": ("info", 0x9CCFD8, 0x8CBAC2),
  "warning": ("warn", 0xF6C177, 0xDDAE6B),
  "error": ("eror", 0xEB6F92, 0xD46483),
  "exception": ("exc!", 0xEB6F92, 0xD46483),
  "critical": ("crit", 0xEB6F92, 0xD46483),
}


def _compact_level_processor(
  _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
  """Convert log levels to a colored 4-character tag inside darker brackets."""
  level = event_dict.get("level")
  if level in _LEVEL_COLORS:
    label, text_color, bracket_color = _LEVEL_COLORS[level]
    bracket = hex_to_ansi_fg(bracket_color)
    text = f"{hex_to_ansi_fg(text_color)}{label}{RESET_ALL}"
    event_dict["level"] = f"{bracket}[{RESET_ALL}{text}{bracket}]{RESET_ALL}"
  return event_dict


def _console_renderer() -> ConsoleRenderer:
  logger_name_formatter = KeyValueColumnFormatter(
    key_style=None,
    value_style=hex_to_ansi_fg(0x7D6B95),
    reset_style=RESET_ALL,
    value_repr=str,
    prefix="[",
    postfix="]",
  )

  return ConsoleRenderer(
    colors=True,
    columns=[
      Column(
        "",
        KeyValueColumnFormatter(
          key_style=hex_to_ansi_fg(0x6E6A86),
          value_style=hex_to_ansi_fg(0xF6C177),
          reset_style=RESET_ALL,
          value_repr=str,
        ),
      ),
      Column(
        "timestamp",
        KeyValueColumnFormatter(
          key_style=None, value_style="", reset_style=RESET_ALL, value_repr=str
        ),
      ),
      Column(
        "level",
        KeyValueColumnFormatter(
          key_style=None, value_style="", reset_style=RESET_ALL, value_repr=str
        ),
      ),
      Column("logger_name", logger_name_formatter),
      Column("logger", logger_name_formatter),
      Column(
        "event",
        KeyValueColumnFormatter(
          key_style=None,
          value_style="\x1b[1m",
          reset_style=RESET_ALL,
          value_repr=str,
          width=30,
        ),
      ),
    ],
  )


def setup_logging(
  level: str = "INFO", json_output: bool = False, correlation_id: str | None = None
) -> None:
  """Configure structured logging for the application."""

  shared_processors: list[Processor] = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.stdlib.ExtraAdder(),
    FloatPrecisionProcessor(digits=3),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
  ]

  if correlation_id:
    shared_processors.insert(0, structlog.contextvars.merge_contextvars)
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

  if json_output:
    shared_processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    log_renderer: Processor = structlog.processors.JSONRenderer()
  else:
    shared_processors.extend([_compact_level_processor, _relative_time_processor])
    log_renderer = _console_renderer()

  structlog.configure(
    processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
  )

  formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=shared_processors,
    processors=[
      structlog.stdlib.ProcessorFormatter.remove_processors_meta,
      log_renderer,
    ],
  )

  handler = logging.StreamHandler(sys.stderr)
  handler.setFormatter(formatter)
  root_logger = logging.getLogger()
  root_logger.handlers.clear()
  root_logger.addHandler(handler)
  root_logger.setLevel(level)

  # HTTP client libraries are chatty at INFO
  for liblog in [logging.getLogger(_liblog) for _liblog in ["httpx", "httpcore"]]:
    liblog.handlers.clear()
    liblog.setLevel(logging.WARNING)
    liblog.propagate = True


def get_logger(
  name: str | None = None, *args: Any, **initial_values: Any
) -> structlog.stdlib.BoundLogger:
  """Get a structured logger instance."""
  return structlog.get_logger(*([name] + list(args)), **initial_values)


def setup_logging_from_env() -> None:
  """Setup logging using environment variables."""
  log_level = os.getenv("LOG_LEVEL", "INFO").upper()
  json_output = os.getenv("JSON_LOGS", "false").lower() in ("true", "1", "yes", "on")
  correlation_id = os.getenv("CORRELATION_ID")

  setup_logging(level=log_level, json_output=json_output, correlation_id=correlation_id)
