"""Pytest configuration shared by the unit and end-to-end suites.

What:
  Establish project import paths and define fixtures that apply a canned runtime
  configuration to every test.

Why:
  Tests must import the ``mailparts`` package from the source tree rather than
  an installed wheel, and the runtime configuration is cached globally, so each
  test needs a clean, deterministic configuration state.

How:
  Compute the project root relative to the file, inject ``mailparts/src`` into
  ``sys.path`` when available, and define :func:`runtime_config` to manage the
  ``MAILPARTS_CONFIG_PATH`` environment variable while resetting the runtime
  cache before and after each test.

Interfaces:
  :func:`runtime_config` (pytest fixture), :data:`CONFIG_PATH`.

Invariants & Safety:
  - The path injection runs once at import time and only when the source tree is
    present.
  - The autouse fixture always resets the runtime configuration.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailparts" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from mailparts.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test.

    Sets ``MAILPARTS_CONFIG_PATH`` to the repository fixture and clears the
    runtime configuration cache before and after the test.
    """

    monkeypatch.setenv("MAILPARTS_CONFIG_PATH", str(CONFIG_PATH))
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
