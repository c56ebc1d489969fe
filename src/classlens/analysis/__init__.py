"""Analysis kinds, payload validation, classroom context, prompts and runners."""

from __future__ import annotations

from .kinds import AnalysisKind, validate_payload
from .runners import RUNNERS, RunnerContext, get_runner, normalize_result

__all__ = [
    "RUNNERS",
    "AnalysisKind",
    "RunnerContext",
    "get_runner",
    "normalize_result",
    "validate_payload",
]
