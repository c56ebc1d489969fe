"""
Smoke tests for package structure and availability.

These tests strictly verify that the package is installed correctly in the
environment and that top-level modules are importable.
"""

from __future__ import annotations

import importlib
import importlib.metadata
import re

import pytest

from classlens import __version__


@pytest.mark.parametrize(  # type: ignore[misc]
    "module",
    [
        "classlens",
        "classlens.db",
        "classlens.worker",
        "classlens.api.server",
        "classlens.client",
    ],
)
def test_modules_importable(module: str) -> None:
    """Ensure the top-level modules can be imported."""
    assert importlib.import_module(module) is not None


def test_version_is_set() -> None:
    """Ensure the package exposes a valid version string."""
    assert isinstance(__version__, str)
    assert len(__version__) > 0


def test_cli_module_exposes_app() -> None:
    """The `classlens.cli:app` entry point must exist."""
    cli = importlib.import_module("classlens.cli")
    assert hasattr(cli, "app"), "classlens.cli must expose an 'app' Typer object."


def test_directly_imported_libraries_are_declared() -> None:
    """Libraries the package imports itself must be declared, not inherited."""
    requirements = importlib.metadata.requires("classlens") or []
    declared = {re.split(r"[<>=!~\[; ]", req, maxsplit=1)[0].lower() for req in requirements}

    assert {"sqlalchemy", "sqlmodel", "httpx", "fastapi", "typer"} <= declared
