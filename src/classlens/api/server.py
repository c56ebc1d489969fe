"""
ASGI Entry Point for the ClassLens API.

This module exposes the `app` object required by ASGI servers. It loads
`.env` before building the app so that settings read at import time see the
same values as the server process.

Usage
-----
    $ python -m classlens.api.server
    $ uvicorn classlens.api.server:app --reload
"""

from __future__ import annotations

from pathlib import Path

import uvicorn
from dotenv import load_dotenv

# Load environment variables from .env BEFORE importing the application factory.
load_dotenv(dotenv_path=Path(".env"))

from classlens.api.app import create_app  # noqa: E402
from classlens.core.settings import get_logger, settings  # noqa: E402

logger = get_logger("classlens.server")

app = create_app()


def main(host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    """Run the API server."""
    for name, value in (
        ("GEMINI_API_KEY", settings.gemini_api_key),
        ("OPENAI_API_KEY", settings.openai_api_key),
    ):
        if value:
            logger.info("%-16s loaded (%s...)", name, value[:6])
        else:
            logger.warning("%-16s missing", name)

    uvicorn.run(
        "classlens.api.server:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
