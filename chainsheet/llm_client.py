"""Generation adapters for the hosted and local providers."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Protocol

import httpx

from chainsheet.errors import GenerationError
from chainsheet.settings import ProviderType, Settings

logger = logging.getLogger(__name__)


class Adapter(Protocol):
    """Protocol implemented by provider adapters."""

    def generate(self, system_prompt: str, user_prompt: str, settings: Settings) -> str:  # pragma: no cover - protocol
        ...


def _extract_openai_text(response: Any) -> str:
    """Best-effort extraction of text from various OpenAI response shapes."""

    if response is None:
        return ""

    if hasattr(response, "output_text"):
        text = getattr(response, "output_text")
        if isinstance(text, str):
            return text

    if isinstance(response, dict):
        if isinstance(response.get("output_text"), str):
            return response["output_text"]
        choices = response.get("choices") or []
        if choices:
            first = choices[0]
            if isinstance(first, dict):
                message = first.get("message")
                if isinstance(message, dict):
                    content = message.get("content")
                    if isinstance(content, str):
                        return content
                    if isinstance(content, list):
                        parts = [item.get("text") for item in content if isinstance(item, dict) and item.get("text")]
                        if parts:
                            return "".join(str(part) for part in parts)
                if isinstance(first.get("text"), str):
                    return str(first["text"])

    return ""


def _build_messages(system_prompt: str, user_prompt: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


class HostedAdapter:
    """Sends the prompt pair to the OpenAI Responses API.

    A client is built lazily per API key so settings changes take effect on
    the next call. Tests pass ``client`` directly.
    """

    def __init__(self, client: Any | None = None) -> None:
        self._client = client
        self._clients: Dict[str | None, Any] = {}
        self._lock = threading.Lock()

    def _client_for(self, settings: Settings) -> Any:
        if self._client is not None:
            return self._client
        key = settings.hosted_api_key
        # Called from pool threads; one client per key.
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                import openai

                kwargs: Dict[str, Any] = {}
                if key:
                    kwargs["api_key"] = key
                if settings.request_timeout is not None:
                    kwargs["timeout"] = settings.request_timeout
                client = openai.OpenAI(**kwargs)
                self._clients[key] = client
            return client

    def generate(self, system_prompt: str, user_prompt: str, settings: Settings) -> str:
        model = settings.hosted_model_name or "gpt-4o-mini"
        logger.debug("Hosted generation with model %s", model)
        try:
            client = self._client_for(settings)
            resp = client.responses.create(model=model, instructions=system_prompt, input=user_prompt)
        except Exception as exc:
            raise GenerationError(str(exc) or "Failed to generate with hosted model") from exc
        text = _extract_openai_text(resp)
        if not text:
            raise GenerationError("Empty response from hosted model")
        return text


class LocalHttpAdapter:
    """Adapter for OpenAI-compatible local servers (Ollama, llama.cpp server, LM Studio)."""

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._client = client

    def _post(self, url: str, payload: Dict[str, Any], settings: Settings) -> httpx.Response:
        if self._client is not None:
            return self._client.post(url, json=payload)
        with httpx.Client(timeout=httpx.Timeout(settings.request_timeout)) as client:
            return client.post(url, json=payload)

    def generate(self, system_prompt: str, user_prompt: str, settings: Settings) -> str:
        url = f"{settings.local_base_url.rstrip('/')}/v1/chat/completions"
        payload = {
            "model": settings.local_model_name,
            "messages": _build_messages(system_prompt, user_prompt),
            "stream": False,
        }
        logger.debug("Local generation POST %s model=%s", url, settings.local_model_name)
        try:
            response = self._post(url, payload, settings)
        except httpx.HTTPError as exc:
            raise GenerationError(str(exc) or "Failed to connect to local LLM") from exc

        if not response.is_success:
            raise GenerationError(f"Local LLM error: {response.status_code} - {response.text}")

        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationError("Local LLM returned a non-JSON response") from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        return content if isinstance(content, str) else ""


class GenerationClient:
    """Facade that routes ``generate`` to the adapter for ``settings.provider``."""

    def __init__(self, hosted: Adapter | None = None, local: Adapter | None = None) -> None:
        self._adapters: Dict[ProviderType, Adapter] = {
            ProviderType.HOSTED: hosted or HostedAdapter(),
            ProviderType.LOCAL: local or LocalHttpAdapter(),
        }

    def adapter_for(self, settings: Settings) -> Adapter:
        return self._adapters[settings.provider]

    def generate(self, system_prompt: str, user_prompt: str, settings: Settings) -> str:
        return self.adapter_for(settings).generate(system_prompt, user_prompt, settings)


__all__ = ["Adapter", "GenerationClient", "HostedAdapter", "LocalHttpAdapter"]
