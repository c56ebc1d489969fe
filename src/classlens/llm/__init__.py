"""LLM access: model registry and a synchronous multi-provider client."""

from .client import LLMClient
from .models import DEFAULT_ALIAS, MODEL_REGISTRY, ModelConfig, get_model

__all__ = ["DEFAULT_ALIAS", "MODEL_REGISTRY", "LLMClient", "ModelConfig", "get_model"]
