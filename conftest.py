from __future__ import annotations

import os

import pytest

pytest_plugins = ["pytester"]

ENV_PREFIXES = ("DB_", "TMPDB_", "DBHARNESS_")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep connection settings of the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.upper().startswith(ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
