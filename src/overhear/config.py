from enum import StrEnum

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator, validate_call
from pydantic.dataclasses import dataclass
from pydantic.types import FilePath

from overhear.logs import get_logger
from overhear.transcript.models import Speaker

logger = get_logger("cfg")

DEFAULT_QUESTION_WORDS = ["what", "who", "when", "where", "why", "how", "which", "whose", "whom"]
DEFAULT_QUESTION_VERBS = [
  "is",
  "are",
  "was",
  "were",
  "do",
  "does",
  "did",
  "can",
  "could",
  "will",
  "would",
  "should",
  "may",
  "might",
]

DEFAULT_SYSTEM_PROMPT = (
  "You are a helpful assistant. Answer questions concisely and accurately using Markdown "
  "formatting. Use code blocks with language specifiers for code, bullet points for lists, "
  "and keep responses brief."
)


@dataclass
class LedgerConfig:
  """Configuration for transcript ledger buffering, deduplication and windows."""

  pending_cap: int = Field(default=2000, gt=0)
  """Maximum length of not-yet-terminated text; oldest characters are dropped beyond it."""

  duplicate_lookback: int = Field(default=6, ge=0)
  """Number of most recent chunks compared against each new sentence."""

  duplicate_window: float = Field(default=5.0, ge=0.0)
  """Seconds within which a normalized-equal sentence is considered a duplicate."""

  dedupe_across_speakers: bool = True
  """Whether a sentence repeated by the other speaker (echo) is also suppressed."""

  display_window: float = Field(default=600.0, gt=0.0)
  """Chunks older than this many seconds are pruned from the ledger."""

  detection_window: float = Field(default=300.0, gt=0.0)
  """Chunks newer than this many seconds are offered for question detection."""

  display_max_lines: int = Field(default=6, gt=0)
  """Number of wrapped lines kept in the rendered display tail."""

  display_line_length: int = Field(default=60, gt=0)
  """Maximum characters per wrapped display line."""

  @model_validator(mode="after")
  def validate_window_relationships(self) -> "LedgerConfig":
    """Validate that detection_window does not exceed display_window."""
    if self.detection_window > self.display_window:
      raise ValueError(
        f"detection_window ({self.detection_window}s) must not exceed "
        f"display_window ({self.display_window}s)"
      )
    return self


class DetectionConfig(BaseModel):
  """Configuration for question classification and the processed-question ledger."""

  question_words: list[str] = Field(default_factory=lambda: list(DEFAULT_QUESTION_WORDS))
  """Interrogative words that mark a sentence as a question when leading it."""

  question_verbs: list[str] = Field(default_factory=lambda: list(DEFAULT_QUESTION_VERBS))
  """Auxiliary verbs that mark a sentence as a question when leading it."""

  fallback_tail_chars: int = Field(default=400, gt=0)
  """How far back the punctuation-less fallback scan looks, in characters."""

  fallback_min_length: int = Field(default=6, gt=0)
  """Minimum length of a fallback match to count as a question."""

  processed_cap: int = Field(default=50, gt=0)
  """Size of the processed-question set that triggers eviction."""

  retained_tail: int = Field(default=10, gt=0)
  """Number of most recent question keys retained after eviction."""

  @model_validator(mode="after")
  def validate_detection(self) -> "DetectionConfig":
    if not self.question_words or not self.question_verbs:
      raise ValueError("question_words and question_verbs must not be empty")
    if self.retained_tail >= self.processed_cap:
      raise ValueError(
        f"retained_tail ({self.retained_tail}) must be less than "
        f"processed_cap ({self.processed_cap})"
      )
    self.question_words = [word.strip().lower() for word in self.question_words]
    self.question_verbs = [verb.strip().lower() for verb in self.question_verbs]
    return self


@dataclass
class QAConfig:
  """Configuration for the Q&A session."""

  duplicate_window: float = Field(default=30.0, ge=0.0)
  """Seconds within which the same question is not submitted again."""


@dataclass
class TimingConfig:
  """Debounce and throttle intervals for the live session."""

  refresh_throttle: float = Field(default=0.25, ge=0.0)
  """Interval coalescing bursts of appends before republishing the transcript display."""

  detection_debounce: float = Field(default=1.0, ge=0.0)
  """Quiet period required before running question detection over the transcript."""

  screen_debounce: float = Field(default=2.0, ge=0.0)
  """Quiet period required before running question detection over screen text."""

  queue_size: int = Field(default=256, gt=0)
  """Capacity of the producer hand-off queue."""


class SourceKind(StrEnum):
  """How text from a producer is consumed."""

  TRANSCRIPT = "transcript"
  SCREEN = "screen"


class SourceConfig(BaseModel):
  """Configuration for one independent text producer."""

  kind: SourceKind = SourceKind.TRANSCRIPT
  """Transcript sources feed the ledger; screen sources are treated as whole snapshots."""

  speaker: Speaker = Speaker.OTHERS
  """Display speaker for transcript sources."""

  cumulative: bool = True
  """Whether the producer re-emits its whole hypothesis (requiring delta extraction)."""


def _default_sources() -> dict[str, SourceConfig]:
  return {
    "mic": SourceConfig(speaker=Speaker.YOU),
    "system-audio": SourceConfig(speaker=Speaker.OTHERS),
    "screen": SourceConfig(kind=SourceKind.SCREEN, cumulative=False),
  }


class ProviderName(StrEnum):
  OPENAI = "openai"
  CLAUDE = "claude"
  GEMINI = "gemini"
  PERPLEXITY = "perplexity"

  @property
  def default_api_key_env(self) -> str:
    return {
      ProviderName.OPENAI: "OPENAI_API_KEY",
      ProviderName.CLAUDE: "ANTHROPIC_API_KEY",
      ProviderName.GEMINI: "GEMINI_API_KEY",
      ProviderName.PERPLEXITY: "PERPLEXITY_API_KEY",
    }[self]


class AnswerConfig(BaseModel):
  """Configuration for the answer producer."""

  provider: ProviderName | None = None
  """Which provider answers questions. None records questions without answering them."""

  model: str | None = None
  """Model override; each provider has its own default."""

  api_key_env: str | None = None
  """Environment variable holding the API key; defaults per provider."""

  base_url: str | None = None
  """Endpoint override, e.g. for an OpenAI-compatible proxy."""

  system_prompt: str = DEFAULT_SYSTEM_PROMPT
  """System prompt; screen context is appended to it when present."""

  max_tokens: int = Field(default=1024, gt=0)
  temperature: float = Field(default=0.2, ge=0.0, le=2.0)
  timeout: float = Field(default=60.0, gt=0.0)
  """Seconds before an answer request is abandoned."""

  @property
  def resolved_api_key_env(self) -> str | None:
    if self.api_key_env:
      return self.api_key_env
    if self.provider is not None:
      return self.provider.default_api_key_env
    return None


class OverhearConfig(BaseModel):
  """Top-level overhear configuration."""

  ledger: LedgerConfig = Field(default_factory=LedgerConfig)
  """Transcript ledger configuration."""

  detection: DetectionConfig = Field(default_factory=DetectionConfig)
  """Question detection configuration."""

  qa: QAConfig = Field(default_factory=QAConfig)
  """Q&A session configuration."""

  timing: TimingConfig = Field(default_factory=TimingConfig)
  """Live session timing configuration."""

  sources: dict[str, SourceConfig] = Field(default_factory=_default_sources)
  """Text producers by source id."""

  answer: AnswerConfig = Field(default_factory=AnswerConfig)
  """Answer producer configuration."""

  automatic_mode: bool = True
  """Whether newly detected questions are submitted for answering without user action."""

  @model_validator(mode="after")
  def validate_sources(self) -> "OverhearConfig":
    if not self.sources:
      raise ValueError("At least one source must be configured")
    return self

  def pretty_print(self) -> None:
    """Log every configuration property at INFO level, defaults included."""
    logger.info("=" * 60)
    logger.info("OVERHEAR CONFIGURATION")
    logger.info("=" * 60)

    logger.info("LEDGER SETTINGS:")
    logger.info(f"  Pending Cap: {self.ledger.pending_cap} chars")
    logger.info(f"  Duplicate Lookback: {self.ledger.duplicate_lookback} chunks")
    logger.info(f"  Duplicate Window: {self.ledger.duplicate_window}s")
    logger.info(f"  Dedupe Across Speakers: {self.ledger.dedupe_across_speakers}")
    logger.info(f"  Display Window: {self.ledger.display_window}s")
    logger.info(f"  Detection Window: {self.ledger.detection_window}s")
    logger.info(
      f"  Display Tail: {self.ledger.display_max_lines} lines x "
      f"{self.ledger.display_line_length} chars"
    )

    logger.info("DETECTION SETTINGS:")
    logger.info(f"  Question Words: {', '.join(self.detection.question_words)}")
    logger.info(f"  Question Verbs: {', '.join(self.detection.question_verbs)}")
    logger.info(f"  Fallback Tail: {self.detection.fallback_tail_chars} chars")
    logger.info(f"  Fallback Min Length: {self.detection.fallback_min_length} chars")
    logger.info(
      f"  Processed Ledger: cap {self.detection.processed_cap}, "
      f"retain {self.detection.retained_tail}"
    )

    logger.info("TIMING SETTINGS:")
    logger.info(f"  Refresh Throttle: {self.timing.refresh_throttle}s")
    logger.info(f"  Detection Debounce: {self.timing.detection_debounce}s")
    logger.info(f"  Screen Debounce: {self.timing.screen_debounce}s")
    logger.info(f"  Queue Size: {self.timing.queue_size}")
    logger.info(f"  QA Duplicate Window: {self.qa.duplicate_window}s")

    logger.info(f"SOURCES ({len(self.sources)}):")
    for name, source in self.sources.items():
      logger.info(
        f"    {name}: {source.kind} speaker={source.speaker} cumulative={source.cumulative}"
      )

    logger.info("ANSWER SETTINGS:")
    logger.info(f"  Provider: {self.answer.provider or 'None (questions are not answered)'}")
    logger.info(f"  Model: {self.answer.model or 'provider default'}")
    logger.info(f"  API Key Env: {self.answer.resolved_api_key_env}")
    logger.info(f"  Timeout: {self.answer.timeout}s")
    logger.info(f"  Automatic Mode: {self.automatic_mode}")

    logger.info("=" * 60)


@validate_call
def load_config_from_file(config_path: FilePath) -> OverhearConfig:
  """Load and validate overhear configuration from a YAML file."""

  logger.info("Loading overhear configuration", path=str(config_path))

  try:
    with open(config_path, "r", encoding="utf-8") as file:
      config_data = yaml.safe_load(file)

  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML in configuration file: {e}") from e
  except OSError as e:
    raise ValueError(f"Error reading configuration file: {e}") from e

  if config_data is None:
    raise ValueError("Configuration file is empty")

  if not isinstance(config_data, dict):
    raise ValueError("Configuration file must contain a YAML dictionary")

  try:
    config = OverhearConfig.model_validate(config_data)
  except ValidationError as e:
    raise ValueError(f"Invalid configuration: {e}") from e

  config.pretty_print()

  return config
