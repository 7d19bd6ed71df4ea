"""
Pytest configuration for the transcoder tests.

Core tests run against the in-memory fakes in ``tests/fakes.py``.
PyAV integration tests create tiny media files in ``tmp_path`` and skip
themselves when the required FFmpeg encoder is unavailable.
"""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file from project root
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line("markers", "asyncio: mark test as async")
    config.addinivalue_line("markers", "integration: needs PyAV with working FFmpeg codecs")


@pytest.fixture
def require_codec():
    """
    Factory fixture that skips the test when an FFmpeg codec is missing.

    Usage:
        def test_something(require_codec):
            require_codec("libmp3lame")
    """
    av = pytest.importorskip("av")

    def _require(name: str, mode: str = "w") -> None:
        try:
            av.Codec(name, mode)
        except Exception:
            pytest.skip(f"FFmpeg codec {name} ({mode}) not available")

    return _require
