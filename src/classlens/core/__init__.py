"""Core package initializer for ClassLens.

Holds the cross-cutting pieces every layer imports:
    from classlens.core.settings import settings, load_settings, Settings, get_logger
    from classlens.core.errors import AuthorizationError, NotFoundError, ...
"""

from __future__ import annotations

__all__ = ["__doc__"]
