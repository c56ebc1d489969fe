# -----------------------------------------------------------------------------
# Model registry used by the LLM client.
#
# Analysis runners refer to models by alias ("flash", "pro", "gpt") so that the
# concrete provider model ID can be re-pinned in one place. Each entry carries
# the provider (which selects the wire protocol and the API key) and default
# sampling parameters.
# -----------------------------------------------------------------------------
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OPENAI_BASE_URL = "https://api.openai.com/v1"


@dataclass(frozen=True, slots=True)
class ModelConfig:
    """Configuration for a single LLM model.

    Parameters
    ----------
    name:
        Provider-specific model identifier, e.g. ``"gemini-2.5-flash"``.
    provider:
        ``"google"`` (Gemini ``generateContent``) or ``"openai"`` (any
        OpenAI-compatible ``/chat/completions`` endpoint).
    base_url:
        Base URL of the provider API.
    max_tokens:
        Default cap on generated tokens. Analysis reports are long, so the
        Gemini entries allow large outputs.
    temperature:
        Default sampling temperature.
    """

    name: str
    provider: str = "google"
    base_url: str = GEMINI_BASE_URL
    max_tokens: int = 65536
    temperature: float = 0.7


MODEL_REGISTRY: dict[str, ModelConfig] = {
    # Default for every analysis kind.
    "flash": ModelConfig(name="gemini-2.5-flash"),
    # Slower, stronger Gemini model for long school-record drafts.
    "pro": ModelConfig(name="gemini-2.5-pro"),
    # OpenAI fallback for deployments without a Gemini key.
    "gpt": ModelConfig(
        name="gpt-4o",
        provider="openai",
        base_url=OPENAI_BASE_URL,
        max_tokens=16384,
    ),
}

DEFAULT_ALIAS = "flash"


def get_model(alias_or_name: str) -> ModelConfig:
    """Resolve an alias (or a raw model ID) to a :class:`ModelConfig`.

    Unknown names are treated as raw model IDs. Names starting with ``gpt`` or
    ``o1``/``o3`` are routed to the OpenAI protocol; everything else is
    assumed to be a Gemini model.
    """
    key = alias_or_name.strip()
    if key in MODEL_REGISTRY:
        return MODEL_REGISTRY[key]
    if key.startswith(("gpt", "o1", "o3")):
        return ModelConfig(name=key, provider="openai", base_url=OPENAI_BASE_URL, max_tokens=16384)
    return ModelConfig(name=key)


def all_models() -> Mapping[str, ModelConfig]:
    """Return a read-only view of the registry (for CLI listings)."""
    return dict(MODEL_REGISTRY)


__all__ = ["DEFAULT_ALIAS", "MODEL_REGISTRY", "ModelConfig", "all_models", "get_model"]
