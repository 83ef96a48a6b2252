"""Unit tests for streaming answer producers."""

import asyncio
import json

import httpx
import pytest

from overhear.config import DEFAULT_SYSTEM_PROMPT, AnswerConfig
from overhear.qa.producers import (
  DONE_SENTINEL,
  AnswerError,
  ClaudeAdapter,
  GeminiAdapter,
  HTTPStatusError,
  OpenAIAdapter,
  PerplexityAdapter,
  StreamingHTTPAnswerProducer,
  build_system_prompt,
  create_answer_producer,
)


def sse(*payloads: str) -> bytes:
  return "".join(f"data: {payload}\n\n" for payload in payloads).encode("utf-8")


def openai_delta(text: str) -> str:
  return json.dumps({"choices": [{"delta": {"content": text}}]})


class TestSystemPrompt:
  """Test build_system_prompt function."""

  def test_without_context(self):
    assert build_system_prompt(DEFAULT_SYSTEM_PROMPT, None) == DEFAULT_SYSTEM_PROMPT
    assert build_system_prompt(DEFAULT_SYSTEM_PROMPT, "") == DEFAULT_SYSTEM_PROMPT

  def test_with_context(self):
    prompt = build_system_prompt("Be brief.", "Quarterly numbers")
    assert prompt == "Be brief. Here is the current screen context: Quarterly numbers"


class TestLineParsing:
  """Test provider stream-line parsing."""

  def test_openai_delta(self):
    adapter = OpenAIAdapter("key")
    assert adapter.parse_line(f"data: {openai_delta('Hello')}") == "Hello"
    assert adapter.parse_line("data: [DONE]") == DONE_SENTINEL

  def test_openai_message_format(self):
    adapter = OpenAIAdapter("key")
    line = "data: " + json.dumps({"choices": [{"message": {"content": "Whole"}}]})
    assert adapter.parse_line(line) == "Whole"

  def test_openai_ignores_other_lines(self):
    adapter = OpenAIAdapter("key")
    assert adapter.parse_line("") is None
    assert adapter.parse_line(": keep-alive") is None
    assert adapter.parse_line("data: not json") is None
    assert adapter.parse_line('data: {"choices": []}') is None

  def test_claude(self):
    adapter = ClaudeAdapter("key")
    delta = {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}}
    assert adapter.parse_line("data: " + json.dumps(delta)) == "Hi"
    assert adapter.parse_line('data: {"type": "ping"}') is None
    assert adapter.parse_line("event: message_stop") is None
    assert adapter.parse_line('data: {"type": "message_stop"}') == DONE_SENTINEL

  def test_gemini(self):
    adapter = GeminiAdapter("key")
    payload = {"candidates": [{"content": {"parts": [{"text": "Bonjour"}]}}]}
    assert adapter.parse_line("data: " + json.dumps(payload)) == "Bonjour"
    assert adapter.parse_line('data: {"candidates": []}') is None
    assert adapter.parse_line("data:") is None


class TestRequestShape:
  """Test provider request construction."""

  def test_openai(self):
    adapter = OpenAIAdapter("sk-test")
    assert adapter.headers()["Authorization"] == "Bearer sk-test"
    body = adapter.body("Why?", "Be brief.")
    assert body["model"] == "gpt-4o"
    assert body["stream"] is True
    assert body["messages"][0] == {"role": "system", "content": "Be brief."}
    assert body["messages"][1] == {"role": "user", "content": "Why?"}

  def test_perplexity(self):
    adapter = PerplexityAdapter("pplx")
    assert adapter.url == "https://api.perplexity.ai/chat/completions"
    assert adapter.body("Why?", "Be brief.")["model"] == "sonar"

  def test_claude(self):
    adapter = ClaudeAdapter("ant")
    headers = adapter.headers()
    assert headers["x-api-key"] == "ant"
    assert headers["anthropic-version"] == "2023-06-01"
    body = adapter.body("Why?", "Be brief.")
    assert body["system"] == "Be brief."
    assert body["messages"] == [{"role": "user", "content": "Why?"}]

  def test_gemini(self):
    adapter = GeminiAdapter("gkey")
    assert adapter.url == (
      "https://generativelanguage.googleapis.com/v1beta/models/"
      "gemini-2.5-flash:streamGenerateContent?key=gkey&alt=sse"
    )
    body = adapter.body("Why?", "Be brief.")
    assert body["system_instruction"] == {"parts": [{"text": "Be brief."}]}
    assert body["contents"] == [{"role": "user", "parts": [{"text": "Why?"}]}]

  def test_model_override(self):
    assert OpenAIAdapter("key", model="gpt-4o-mini").body("q", "s")["model"] == "gpt-4o-mini"


class TestStreamingProducer:
  """Test StreamingHTTPAnswerProducer against a mock transport."""

  def test_streams_chunks_and_returns_full_answer(self):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
      requests.append(request)
      body = sse(openai_delta("Hello"), openai_delta(""), openai_delta(" world"), "[DONE]")
      return httpx.Response(200, content=body)

    producer = StreamingHTTPAnswerProducer(
      OpenAIAdapter("sk-test"), system_prompt="Be brief.", transport=httpx.MockTransport(handler)
    )
    chunks = []
    answer = asyncio.run(producer.answer("Why?", "Slide 3", chunks.append))

    assert answer == "Hello world"
    assert chunks == ["Hello", " world"]

    (request,) = requests
    assert request.method == "POST"
    assert request.headers["Authorization"] == "Bearer sk-test"
    sent = json.loads(request.content)
    assert sent["messages"][0]["content"] == (
      "Be brief. Here is the current screen context: Slide 3"
    )

  def test_stops_at_done_sentinel(self):
    def handler(request: httpx.Request) -> httpx.Response:
      return httpx.Response(200, content=sse(openai_delta("A"), "[DONE]", openai_delta("B")))

    producer = StreamingHTTPAnswerProducer(
      OpenAIAdapter("key"), transport=httpx.MockTransport(handler)
    )
    assert asyncio.run(producer.answer("q", None, lambda _chunk: None)) == "A"

  def test_unauthorized_hints_at_api_key(self):
    def handler(request: httpx.Request) -> httpx.Response:
      return httpx.Response(401, json={"error": {"message": "Invalid API key"}})

    producer = StreamingHTTPAnswerProducer(
      ClaudeAdapter("bad"), transport=httpx.MockTransport(handler)
    )
    with pytest.raises(HTTPStatusError, match="Check your API key") as exc_info:
      asyncio.run(producer.answer("q", None, lambda _chunk: None))

    assert exc_info.value.status_code == 401
    assert "Invalid API key" in str(exc_info.value)

  def test_server_error(self):
    def handler(request: httpx.Request) -> httpx.Response:
      return httpx.Response(503, text="overloaded")

    producer = StreamingHTTPAnswerProducer(
      GeminiAdapter("key"), transport=httpx.MockTransport(handler)
    )
    with pytest.raises(AnswerError, match="HTTP error 503: overloaded"):
      asyncio.run(producer.answer("q", None, lambda _chunk: None))

  def test_network_failure_becomes_answer_error(self):
    def handler(request: httpx.Request) -> httpx.Response:
      raise httpx.ConnectError("connection refused", request=request)

    producer = StreamingHTTPAnswerProducer(
      OpenAIAdapter("key"), transport=httpx.MockTransport(handler)
    )
    with pytest.raises(AnswerError, match="Request failed"):
      asyncio.run(producer.answer("q", None, lambda _chunk: None))


class TestCreateAnswerProducer:
  """Test create_answer_producer factory."""

  def test_no_provider(self):
    assert create_answer_producer(AnswerConfig(), environ={}) is None

  def test_missing_api_key(self):
    config = AnswerConfig(provider="openai")
    assert create_answer_producer(config, environ={}) is None
    assert create_answer_producer(config, environ={"OPENAI_API_KEY": ""}) is None

  def test_builds_configured_adapter(self):
    config = AnswerConfig(provider="gemini", model="gemini-2.5-pro", timeout=5.0)
    producer = create_answer_producer(config, environ={"GEMINI_API_KEY": "gkey"})

    assert isinstance(producer.adapter, GeminiAdapter)
    assert producer.adapter.model == "gemini-2.5-pro"
    assert producer.timeout == 5.0
    assert "key=gkey" in producer.adapter.url

  def test_custom_key_variable(self):
    config = AnswerConfig(provider="claude", api_key_env="MY_KEY")
    producer = create_answer_producer(config, environ={"MY_KEY": "secret"})
    assert producer.adapter.api_key == "secret"
