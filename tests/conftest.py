"""Pytest configuration for pto-import test runs."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

_ENV_PREFIX = "PTO_IMPORT_"


def pytest_sessionstart() -> None:
    """Put the src directory on sys.path so top-level packages import."""
    src_path = Path(__file__).resolve().parent.parent / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def isolated_import_env(monkeypatch) -> None:
    """Drop PTO_IMPORT_* variables inherited from the caller's shell."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)
