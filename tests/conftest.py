"""Pytest configuration for test isolation.

The CLI reads ``BULK_INGEST_*`` settings from the environment (and from a
``.env`` in the working directory) and configures the package logger once per
process. Both leak between tests, so every test runs in an empty working
directory with those variables unset and logging unconfigured.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from bulk_ingest.logging_setup import reset_logging

_ENV_VARS = (
    "BULK_INGEST_LOG_LEVEL",
    "BULK_INGEST_MAX_WORKERS",
    "BULK_INGEST_MATCH_THRESHOLD",
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of CLI tests.
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    reset_logging()
    yield
    reset_logging()
    # load_dotenv() writes straight to os.environ.
    for name in _ENV_VARS:
        os.environ.pop(name, None)
