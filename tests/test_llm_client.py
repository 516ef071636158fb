from __future__ import annotations

import json
import sys
import time
import types
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List

import httpx
import pytest

from chainsheet import llm_client as module
from chainsheet.errors import GenerationError
from chainsheet.settings import ProviderType, Settings


class _QueueingResponses:
    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self._queue: List[Any] = []

    def push(self, payload: Any) -> None:
        self._queue.append(payload)

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if not self._queue:
            raise AssertionError("No payload queued for OpenAI response")
        payload = self._queue.pop(0)
        if isinstance(payload, Exception):
            raise payload
        return payload


class _StubOpenAIClient:
    def __init__(self, responses: _QueueingResponses) -> None:
        self.responses = responses


class _StubAdapter:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls: List[tuple] = []

    def generate(self, system_prompt: str, user_prompt: str, settings: Settings) -> str:
        self.calls.append((system_prompt, user_prompt))
        return self.reply


def local_settings(**overrides: Any) -> Settings:
    base = {"provider": ProviderType.LOCAL, "local_base_url": "http://llm.test:11434", "local_model_name": "llama3"}
    base.update(overrides)
    return Settings(**base)


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_local_adapter_posts_chat_payload() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": "bonjour"}}]})

    adapter = module.LocalHttpAdapter(client=mock_client(handler))
    assert adapter.generate("Translate to French.", "hello", local_settings()) == "bonjour"

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "http://llm.test:11434/v1/chat/completions"
    body = json.loads(request.content)
    assert body == {
        "model": "llama3",
        "messages": [
            {"role": "system", "content": "Translate to French."},
            {"role": "user", "content": "hello"},
        ],
        "stream": False,
    }


def test_local_adapter_strips_trailing_slash() -> None:
    seen: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    adapter = module.LocalHttpAdapter(client=mock_client(handler))
    adapter.generate("s", "u", local_settings(local_base_url="http://llm.test/"))
    assert seen == ["http://llm.test/v1/chat/completions"]


def test_local_adapter_non_success_includes_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="model 'llama3' not found")

    adapter = module.LocalHttpAdapter(client=mock_client(handler))
    with pytest.raises(GenerationError) as info:
        adapter.generate("s", "u", local_settings())
    assert str(info.value) == "Local LLM error: 404 - model 'llama3' not found"


def test_local_adapter_missing_content_defaults_to_empty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    adapter = module.LocalHttpAdapter(client=mock_client(handler))
    assert adapter.generate("s", "u", local_settings()) == ""


def test_local_adapter_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    adapter = module.LocalHttpAdapter(client=mock_client(handler))
    with pytest.raises(GenerationError, match="connection refused"):
        adapter.generate("s", "u", local_settings())


def test_local_adapter_rejects_non_json_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy</html>")

    adapter = module.LocalHttpAdapter(client=mock_client(handler))
    with pytest.raises(GenerationError):
        adapter.generate("s", "u", local_settings())


def test_hosted_adapter_delegation() -> None:
    responses = _QueueingResponses()
    responses.push(type("Resp", (), {"output_text": "Short summary"})())
    adapter = module.HostedAdapter(client=_StubOpenAIClient(responses))

    settings = Settings(hosted_model_name="gpt-test")
    assert adapter.generate("Summarize.", "Long text...", settings) == "Short summary"
    assert responses.calls == [{"model": "gpt-test", "instructions": "Summarize.", "input": "Long text..."}]


def test_hosted_adapter_empty_response_is_error() -> None:
    responses = _QueueingResponses()
    responses.push(type("Resp", (), {"output_text": ""})())
    adapter = module.HostedAdapter(client=_StubOpenAIClient(responses))

    with pytest.raises(GenerationError, match="Empty response"):
        adapter.generate("s", "u", Settings())


def test_hosted_adapter_wraps_sdk_errors() -> None:
    responses = _QueueingResponses()
    responses.push(RuntimeError("rate limited"))
    adapter = module.HostedAdapter(client=_StubOpenAIClient(responses))

    with pytest.raises(GenerationError, match="rate limited"):
        adapter.generate("s", "u", Settings())


def test_extract_text_from_chat_shape() -> None:
    payload = {"choices": [{"message": {"content": [{"text": "a"}, {"text": "b"}]}}]}
    assert module._extract_openai_text(payload) == "ab"
    assert module._extract_openai_text(None) == ""


def test_generation_client_routes_by_provider() -> None:
    hosted = _StubAdapter("from hosted")
    local = _StubAdapter("from local")
    client = module.GenerationClient(hosted=hosted, local=local)

    assert client.generate("s", "u", Settings(provider=ProviderType.HOSTED)) == "from hosted"
    assert client.generate("s", "u", Settings(provider=ProviderType.LOCAL)) == "from local"
    assert hosted.calls == [("s", "u")]
    assert local.calls == [("s", "u")]


def test_hosted_adapter_builds_one_client_per_key_across_threads(monkeypatch) -> None:
    built: List[Dict[str, Any]] = []

    def fake_openai(**kwargs: Any) -> object:
        time.sleep(0.01)
        built.append(kwargs)
        return object()

    monkeypatch.setitem(sys.modules, "openai", types.SimpleNamespace(OpenAI=fake_openai))
    adapter = module.HostedAdapter()
    settings = Settings(hosted_api_key="sk-test")

    with ThreadPoolExecutor(max_workers=8) as pool:
        clients = list(pool.map(lambda _i: adapter._client_for(settings), range(16)))

    assert built == [{"api_key": "sk-test"}]
    assert all(c is clients[0] for c in clients)
