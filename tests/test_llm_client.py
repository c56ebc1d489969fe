from __future__ import annotations

from typing import Any

import pytest

from classlens.core.errors import ConfigurationError
from classlens.core.settings import Settings
from classlens.llm.client import LLMClient
from classlens.llm.models import DEFAULT_ALIAS, GEMINI_BASE_URL, get_model


def _capture_post(monkeypatch: Any, response: dict[str, Any]) -> dict[str, Any]:
    """Patch the internal network call at the class level (slots-safe)."""
    captured: dict[str, Any] = {}

    def fake_post(
        self: LLMClient,
        *,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        captured["url"] = url
        captured["headers"] = headers
        captured["payload"] = payload
        return response

    monkeypatch.setattr(LLMClient, "_post", fake_post)
    return captured


def test_from_settings_reads_keys_and_model() -> None:
    """LLMClient.from_settings() should honour the configured keys and alias."""
    cfg = Settings(
        _env_file=None,
        GEMINI_API_KEY="test-gemini-key",
        OPENAI_API_KEY="test-openai-key",
        CLASSLENS_ANALYSIS_MODEL="pro",
    )

    client = LLMClient.from_settings(cfg)

    assert client.gemini_api_key == "test-gemini-key"
    assert client.openai_api_key == "test-openai-key"
    assert client.default_model_alias == "pro"


def test_default_alias_is_a_gemini_model() -> None:
    client = LLMClient()
    assert client.default_model_alias == DEFAULT_ALIAS
    assert client.resolve().provider == "google"


def test_generate_gemini_maps_roles_and_extracts_text(monkeypatch: Any) -> None:
    """For provider='google', `generate()` calls `generateContent`."""
    captured = _capture_post(
        monkeypatch,
        {"candidates": [{"content": {"parts": [{"text": "Part A. "}, {"text": "Part B."}]}}]},
    )
    client = LLMClient(gemini_api_key="test-gemini-key")

    text = client.generate(
        [
            {"role": "system", "content": "You are a school counselor."},
            {"role": "user", "content": "Summarize the class."},
            {"role": "assistant", "content": "Which class?"},
            {"role": "user", "content": "3-2"},
        ]
    )

    # The concatenated parts should be returned.
    assert text == "Part A. Part B."

    model = get_model(DEFAULT_ALIAS)
    assert captured["url"] == f"{GEMINI_BASE_URL}/models/{model.name}:generateContent"
    assert captured["headers"]["x-goog-api-key"] == "test-gemini-key"

    payload = captured["payload"]
    # System messages are lifted out of the conversation.
    assert payload["systemInstruction"]["parts"][0]["text"] == "You are a school counselor."
    assert [c["role"] for c in payload["contents"]] == ["user", "model", "user"]
    assert payload["generationConfig"]["maxOutputTokens"] == model.max_tokens


def test_generate_openai_uses_chat_completions(monkeypatch: Any) -> None:
    """For provider='openai', `generate()` uses Chat Completions."""
    captured = _capture_post(
        monkeypatch, {"choices": [{"message": {"content": "Hello from fake gpt."}}]}
    )
    client = LLMClient(openai_api_key="test-openai-key")

    text = client.generate(
        [{"role": "user", "content": "Say hello."}], model="gpt", temperature=0.1
    )

    assert text == "Hello from fake gpt."
    assert captured["url"].endswith("/chat/completions")
    assert captured["headers"]["Authorization"] == "Bearer test-openai-key"
    assert captured["payload"]["model"] == get_model("gpt").name
    assert captured["payload"]["temperature"] == 0.1


def test_raw_model_ids_route_by_prefix() -> None:
    assert get_model("gpt-4o-mini").provider == "openai"
    assert get_model("gemini-2.0-flash").provider == "google"
    assert get_model("gemini-2.0-flash").name == "gemini-2.0-flash"


@pytest.mark.parametrize(  # type: ignore[misc]
    ("model", "env_name"),
    [("flash", "GEMINI_API_KEY"), ("gpt", "OPENAI_API_KEY")],
)
def test_missing_key_is_a_configuration_error(model: str, env_name: str) -> None:
    client = LLMClient()

    with pytest.raises(ConfigurationError, match=env_name):
        client.ensure_configured(model)
    with pytest.raises(ConfigurationError, match=env_name):
        client.generate([{"role": "user", "content": "hi"}], model=model)


def test_empty_response_is_a_runtime_error(monkeypatch: Any) -> None:
    _capture_post(monkeypatch, {"candidates": []})
    client = LLMClient(gemini_api_key="k")

    with pytest.raises(RuntimeError, match="no candidates"):
        client.generate([{"role": "user", "content": "hi"}])
