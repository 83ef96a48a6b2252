"""
Streaming answer producers.

An answer producer turns a question (plus optional screen context) into answer text, streaming
partial chunks to a callback as they arrive. The HTTP implementation speaks server-sent events;
each provider differs only in its URL, headers, request body and line format, which are
captured by a ``ProviderAdapter``.
"""

import json
import os
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import httpx

from overhear.config import DEFAULT_SYSTEM_PROMPT, AnswerConfig, ProviderName
from overhear.format import Seconds
from overhear.logs import get_logger

logger = get_logger("ans")

ChunkCallback = Callable[[str], None]

DONE_SENTINEL = "[DONE]"


class AnswerError(Exception):
  """An answer could not be produced."""


class HTTPStatusError(AnswerError):
  """The provider answered with a non-success status."""

  def __init__(self, status_code: int, detail: str | None = None) -> None:
    self.status_code = status_code
    self.detail = detail
    message = f"HTTP error {status_code}"
    if detail:
      message += f": {detail}"
    if status_code == 401:
      message += ". Check your API key."
    super().__init__(message)


class AnswerProducer(Protocol):
  """Capability that answers a question, streaming chunks as they arrive."""

  async def answer(self, question: str, context: str | None, on_chunk: ChunkCallback) -> str:
    """
    :param question: Question text as displayed.
    :param context: Screen text offered as additional context, if any.
    :param on_chunk: Called with each non-empty chunk, in order.
    :returns: The concatenated answer text.
    :raises AnswerError: If the answer could not be produced.
    """
    ...


def build_system_prompt(base_prompt: str, context: str | None) -> str:
  if context:
    return f"{base_prompt} Here is the current screen context: {context}"
  return base_prompt


def _sse_payload(line: str) -> str | None:
  line = line.strip()
  if not line.startswith("data:"):
    return None
  return line.removeprefix("data:").strip()


def _load_json(payload: str) -> Any:
  try:
    return json.loads(payload)
  except json.JSONDecodeError:
    logger.debug("Ignoring malformed stream line", payload=payload)
    return None


class ProviderAdapter:
  """Request shape and stream format of one provider.

  ``parse_line`` returns the text carried by one stream line, ``DONE_SENTINEL`` at end of
  stream, or None for lines that carry nothing (comments, keep-alives, metadata events).
  """

  default_model: str
  default_url: str

  def __init__(
    self,
    api_key: str,
    model: str | None = None,
    base_url: str | None = None,
    max_tokens: int = 1024,
    temperature: float = 0.2,
  ) -> None:
    self.api_key = api_key
    self.model = model or self.default_model
    self.base_url = base_url or self.default_url
    self.max_tokens = max_tokens
    self.temperature = temperature

  @property
  def url(self) -> str:
    return self.base_url

  def headers(self) -> dict[str, str]:
    return {"Content-Type": "application/json"}

  def body(self, question: str, system_prompt: str) -> dict[str, Any]:
    raise NotImplementedError

  def parse_line(self, line: str) -> str | None:
    raise NotImplementedError


class OpenAIAdapter(ProviderAdapter):
  default_model = "gpt-4o"
  default_url = "https://api.openai.com/v1/chat/completions"

  def headers(self) -> dict[str, str]:
    return super().headers() | {"Authorization": f"Bearer {self.api_key}"}

  def body(self, question: str, system_prompt: str) -> dict[str, Any]:
    return {
      "model": self.model,
      "messages": [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": question},
      ],
      "max_tokens": self.max_tokens,
      "temperature": self.temperature,
      "stream": True,
    }

  def parse_line(self, line: str) -> str | None:
    payload = _sse_payload(line)
    if payload is None:
      return None
    if payload == DONE_SENTINEL:
      return DONE_SENTINEL

    data = _load_json(payload)
    if not isinstance(data, dict) or not data.get("choices"):
      return None
    choice = data["choices"][0]
    # Some compatible servers send whole messages instead of deltas
    for key in ("delta", "message"):
      part = choice.get(key)
      if isinstance(part, dict) and isinstance(part.get("content"), str):
        return part["content"]
    return None


class PerplexityAdapter(OpenAIAdapter):
  default_model = "sonar"
  default_url = "https://api.perplexity.ai/chat/completions"


class ClaudeAdapter(ProviderAdapter):
  default_model = "claude-sonnet-4-20250514"
  default_url = "https://api.anthropic.com/v1/messages"
  api_version = "2023-06-01"

  def headers(self) -> dict[str, str]:
    return super().headers() | {"x-api-key": self.api_key, "anthropic-version": self.api_version}

  def body(self, question: str, system_prompt: str) -> dict[str, Any]:
    return {
      "model": self.model,
      "max_tokens": self.max_tokens,
      "temperature": self.temperature,
      "system": system_prompt,
      "messages": [{"role": "user", "content": question}],
      "stream": True,
    }

  def parse_line(self, line: str) -> str | None:
    payload = _sse_payload(line)
    if not payload:
      return None

    data = _load_json(payload)
    if not isinstance(data, dict):
      return None
    if data.get("type") == "message_stop":
      return DONE_SENTINEL
    delta = data.get("delta")
    if isinstance(delta, dict) and isinstance(delta.get("text"), str):
      return delta["text"]
    return None


class GeminiAdapter(ProviderAdapter):
  default_model = "gemini-2.5-flash"
  default_url = "https://generativelanguage.googleapis.com/v1beta/models"

  @property
  def url(self) -> str:
    return f"{self.base_url}/{self.model}:streamGenerateContent?key={self.api_key}&alt=sse"

  def body(self, question: str, system_prompt: str) -> dict[str, Any]:
    return {
      "system_instruction": {"parts": [{"text": system_prompt}]},
      "contents": [{"role": "user", "parts": [{"text": question}]}],
      "generationConfig": {"maxOutputTokens": self.max_tokens, "temperature": self.temperature},
    }

  def parse_line(self, line: str) -> str | None:
    payload = _sse_payload(line)
    if not payload:
      return None

    data = _load_json(payload)
    if not isinstance(data, dict):
      return None
    try:
      text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
      return None
    return text if isinstance(text, str) else None


ADAPTERS: dict[ProviderName, type[ProviderAdapter]] = {
  ProviderName.OPENAI: OpenAIAdapter,
  ProviderName.CLAUDE: ClaudeAdapter,
  ProviderName.GEMINI: GeminiAdapter,
  ProviderName.PERPLEXITY: PerplexityAdapter,
}


class StreamingHTTPAnswerProducer:
  """Answers questions by streaming a provider's server-sent events over HTTP.

  :param adapter: Provider request and stream format.
  :param system_prompt: Base system prompt; screen context is appended per request.
  :param timeout: Seconds before a request is abandoned.
  :param transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
  """

  def __init__(
    self,
    adapter: ProviderAdapter,
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    timeout: float = 60.0,
    transport: httpx.AsyncBaseTransport | None = None,
  ) -> None:
    self.adapter = adapter
    self.system_prompt = system_prompt
    self.timeout = timeout
    self._transport = transport

  async def answer(self, question: str, context: str | None, on_chunk: ChunkCallback) -> str:
    body = self.adapter.body(question, build_system_prompt(self.system_prompt, context))
    logger.debug(
      "Requesting answer",
      provider=type(self.adapter).__name__,
      model=self.adapter.model,
      timeout=str(Seconds(self.timeout)),
    )

    collected: list[str] = []
    try:
      async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
        async with client.stream(
          "POST", self.adapter.url, headers=self.adapter.headers(), json=body
        ) as response:
          if not response.is_success:
            await response.aread()
            raise HTTPStatusError(response.status_code, _error_detail(response))

          async for line in response.aiter_lines():
            delta = self.adapter.parse_line(line)
            if delta is None:
              continue
            if delta == DONE_SENTINEL:
              break
            if delta:
              collected.append(delta)
              on_chunk(delta)
    except httpx.HTTPError as e:
      raise AnswerError(f"Request failed: {e}") from e

    answer = "".join(collected)
    logger.info("Answer complete", chars=len(answer))
    return answer


def _error_detail(response: httpx.Response) -> str | None:
  """Pull a human-readable message out of a provider error body, if there is one."""
  try:
    data = response.json()
  except ValueError:
    return response.text.strip() or None

  error = data.get("error") if isinstance(data, dict) else None
  if isinstance(error, dict) and isinstance(error.get("message"), str):
    return error["message"]
  if isinstance(error, str):
    return error
  return None


def create_answer_producer(
  config: AnswerConfig,
  environ: Mapping[str, str] = os.environ,
  transport: httpx.AsyncBaseTransport | None = None,
) -> StreamingHTTPAnswerProducer | None:
  """Build the configured producer.

  :returns: None when no provider is configured or its API key is not set; questions are then
      recorded without answers.
  """
  if config.provider is None:
    logger.info("No answer provider configured, questions will not be answered")
    return None

  key_env = config.resolved_api_key_env
  api_key = environ.get(key_env, "") if key_env else ""
  if not api_key:
    logger.warning("API key not set, questions will not be answered", env=key_env)
    return None

  adapter = ADAPTERS[config.provider](
    api_key,
    model=config.model,
    base_url=config.base_url,
    max_tokens=config.max_tokens,
    temperature=config.temperature,
  )
  return StreamingHTTPAnswerProducer(
    adapter, system_prompt=config.system_prompt, timeout=config.timeout, transport=transport
  )
