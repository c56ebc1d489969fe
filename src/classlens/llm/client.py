# -----------------------------------------------------------------------------
# Small synchronous LLM client used by the analysis worker.
#
#   - credentials come from Settings (GEMINI_API_KEY / OPENAI_API_KEY)
#   - the model registry resolves aliases → concrete model IDs
#   - a single `generate()` method returns one text completion
#
# Requests go through `urllib.request` inside `_post()`, which is the only
# network seam; tests patch it so no real HTTP calls are made.
#
# Provider support
# ----------------
# 1. Google Gemini "generateContent" (provider="google"): chat messages are
#    mapped to `contents`, system messages to `systemInstruction`.
# 2. OpenAI-compatible Chat Completions (provider="openai").
# -----------------------------------------------------------------------------
from __future__ import annotations

import json
import urllib.error
import urllib.request
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from typing import Any

from classlens.core.errors import ConfigurationError
from classlens.core.settings import Settings
from classlens.core.settings import settings as default_settings

from .models import DEFAULT_ALIAS, ModelConfig, get_model

Message = Mapping[str, str]


@dataclass(slots=True)
class LLMClient:
    """Multi-provider LLM client with a simple `generate()` API.

    Parameters
    ----------
    gemini_api_key:
        Key for provider="google" models. ``None`` means Gemini is not
        configured.
    openai_api_key:
        Key for provider="openai" models.
    default_model_alias:
        Registry alias used when callers do not pass ``model``.
    timeout_seconds:
        Network timeout for one request. Analysis prompts are large and
        reports are long, so this is generous.
    """

    gemini_api_key: str | None = None
    openai_api_key: str | None = None
    default_model_alias: str = DEFAULT_ALIAS
    timeout_seconds: float = 300.0

    # --------------------------------------------------------------------- #
    # Constructors
    # --------------------------------------------------------------------- #
    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> LLMClient:
        """Build a client from application settings."""
        cfg = cfg or default_settings
        return cls(
            gemini_api_key=cfg.gemini_api_key,
            openai_api_key=cfg.openai_api_key,
            default_model_alias=cfg.analysis_model,
        )

    # --------------------------------------------------------------------- #
    # Public API
    # --------------------------------------------------------------------- #
    def resolve(self, model: str | None = None) -> ModelConfig:
        return get_model(model or self.default_model_alias)

    def ensure_configured(self, model: str | None = None) -> ModelConfig:
        """Check that credentials exist for ``model`` before doing any work.

        Raises
        ------
        ConfigurationError
            If the provider behind ``model`` has no API key.
        """
        config = self.resolve(model)
        self._api_key_for(config)
        return config

    def generate(
        self,
        messages: Sequence[Message],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a single text completion from chat-style messages.

        Raises
        ------
        ConfigurationError
            If the provider's API key is missing.
        RuntimeError
            If the HTTP request fails or the response carries no text.
        """
        config = self.resolve(model)
        api_key = self._api_key_for(config)

        effective_temperature = float(
            temperature if temperature is not None else config.temperature
        )
        effective_max_tokens = int(max_tokens if max_tokens is not None else config.max_tokens)

        if config.provider == "google":
            response = self._generate_gemini(
                config=config,
                api_key=api_key,
                messages=messages,
                temperature=effective_temperature,
                max_tokens=effective_max_tokens,
            )
            return self._extract_content_gemini(response)

        response = self._generate_openai_compatible(
            config=config,
            api_key=api_key,
            messages=messages,
            temperature=effective_temperature,
            max_tokens=effective_max_tokens,
        )
        return self._extract_content_openai(response)

    # --------------------------------------------------------------------- #
    # Provider-specific helpers
    # --------------------------------------------------------------------- #
    def _api_key_for(self, config: ModelConfig) -> str:
        if config.provider == "google":
            if not self.gemini_api_key:
                raise ConfigurationError("GEMINI_API_KEY is not configured.")
            return self.gemini_api_key
        if not self.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not configured.")
        return self.openai_api_key

    def _generate_openai_compatible(
        self,
        *,
        config: ModelConfig,
        api_key: str,
        messages: Sequence[Message],
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        url = config.base_url.rstrip("/") + "/chat/completions"
        payload: MutableMapping[str, Any] = {
            "model": config.name,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        return self._post(url=url, headers=headers, payload=payload)

    def _generate_gemini(
        self,
        *,
        config: ModelConfig,
        api_key: str,
        messages: Sequence[Message],
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        """Call ``POST {base_url}/models/{model}:generateContent``.

        Gemini only knows the ``user`` and ``model`` roles, so ``assistant``
        turns become ``model`` and system messages are lifted into
        ``systemInstruction``.
        """
        url = f"{config.base_url.rstrip('/')}/models/{config.name}:generateContent"

        system_texts = [m["content"] for m in messages if m["role"] == "system"]
        contents = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
            if m["role"] != "system"
        ]

        payload: MutableMapping[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        if system_texts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_texts)}]}

        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        }
        return self._post(url=url, headers=headers, payload=payload)

    # --------------------------------------------------------------------- #
    # Internal helpers (test seams)
    # --------------------------------------------------------------------- #
    def _post(
        self,
        *,
        url: str,
        headers: Mapping[str, str],
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Perform an HTTP POST request and decode the JSON response.

        Raises
        ------
        RuntimeError
            If the request fails or the body is not JSON.
        """
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        request = urllib.request.Request(url=url, data=body, headers=dict(headers), method="POST")

        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore")
            raise RuntimeError(f"LLM HTTP error {exc.code}: {exc.reason}; body={detail!r}") from exc
        except urllib.error.URLError as exc:
            raise RuntimeError(f"LLM network error: {exc}") from exc

        try:
            decoded: dict[str, Any] = json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise RuntimeError("Failed to decode LLM response as JSON") from exc

        return decoded

    # --------------------------------------------------------------------- #
    # Response extraction helpers
    # --------------------------------------------------------------------- #
    @staticmethod
    def _extract_content_openai(response: Mapping[str, Any]) -> str:
        """Extract ``choices[0].message.content``."""
        choices = response.get("choices")
        if not isinstance(choices, list) or not choices:
            raise RuntimeError("LLM response has no choices; cannot extract content.")

        message = choices[0].get("message")
        if not isinstance(message, Mapping):
            raise RuntimeError("LLM response choice[0].message is missing or invalid.")

        content = message.get("content")
        if not isinstance(content, str) or not content:
            raise RuntimeError("LLM response choice[0].message.content is empty.")
        return content

    @staticmethod
    def _extract_content_gemini(response: Mapping[str, Any]) -> str:
        """Join the text parts of ``candidates[0].content``."""
        candidates = response.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise RuntimeError("Gemini response has no candidates; cannot extract content.")

        content = candidates[0].get("content")
        if not isinstance(content, Mapping):
            raise RuntimeError("Gemini response candidates[0].content is missing or invalid.")

        parts = content.get("parts")
        if not isinstance(parts, list) or not parts:
            raise RuntimeError("Gemini response candidates[0].content.parts is empty.")

        texts = [
            part["text"]
            for part in parts
            if isinstance(part, Mapping) and isinstance(part.get("text"), str)
        ]
        if not texts:
            raise RuntimeError("Gemini response parts contain no text; cannot extract content.")
        return "".join(texts)


__all__ = ["LLMClient", "Message"]
