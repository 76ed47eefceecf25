"""
Global pytest configuration for ai-router

This file provides shared fixtures and enforces Python version requirements.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Add tests directory to sys.path to support imports from test helpers
_tests_dir = Path(__file__).parent
if str(_tests_dir) not in sys.path:
    sys.path.insert(0, str(_tests_dir))

from helpers import SleepRecorder  # noqa: E402

_MIN_PY_VERSION = (3, 11)

_ISOLATED_ENV_VARS = (
    "AI_ROUTER_DEFAULT_PROVIDER",
    "AI_ROUTER_LOG_LEVEL",
    "AI_ROUTER_OUTPUT_DIR",
    "OPENAI_API_KEY",
    "GOOGLE_API_KEY",
    "OPENROUTER_API_KEY",
)


def _verify_python_version() -> str:
    """Return the interpreter version string or exit if <3.11."""
    version_info = sys.version_info
    version_str = ".".join(map(str, version_info[:3]))
    if version_info < _MIN_PY_VERSION:
        pytest.exit(
            f"ERROR: pytest must run on Python 3.11+ (detected {version_str}).",
            returncode=1,
        )
    return version_str


def pytest_report_header(config: pytest.Config) -> str:
    version_str = _verify_python_version()
    return f"Python interpreter verified for pytest: {version_str}"


@pytest.fixture(scope="session", autouse=True)
def register_markers(pytestconfig: pytest.Config) -> None:
    """Register project markers to prevent unknown marker warnings."""
    markers = {
        "unit": "Unit tests that should execute quickly.",
        "integration": "Integration tests hitting multiple components.",
        "slow": "Slow or high-cost tests.",
    }
    for name, description in markers.items():
        pytestconfig.addinivalue_line("markers", f"{name}: {description}")


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config at a temp file, clear API keys and run inside tmp_path."""
    for name in _ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config_path = tmp_path / "config" / "config.json"
    monkeypatch.setenv("AI_ROUTER_CONFIG", str(config_path))
    monkeypatch.chdir(tmp_path)
    return config_path


@pytest.fixture
def config_path(isolated_environment: Path) -> Path:
    return isolated_environment


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()
