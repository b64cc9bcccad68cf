# tests/conftest.py
from __future__ import annotations

import logging
import os

import pytest

from image_recognition.core.logs import ROOT_LOGGER
from tests.utils import (
    FakeDam,
    make_asset,
    make_settings,
)
from tests.utils import png_bytes as _make_png


# -------- Isolation --------
@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """No IR_* variable from the developer shell may leak into settings tests."""
    for key in list(os.environ):
        if key.startswith("IR_") or key == "OPENAI_API_KEY":
            monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """configure_logging mutates the package logger; restore it after each test."""
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level = list(logger.handlers), logger.level
    yield
    for h in list(logger.handlers):
        if h not in handlers:
            logger.removeHandler(h)
            h.close()
    logger.setLevel(level)


# -------- Domain fixtures --------
@pytest.fixture
def asset():
    return make_asset()


@pytest.fixture
def wedding_settings():
    return make_settings()


@pytest.fixture
def settings_factory():
    """
    Callable factory for AppSettings.

    Usage:
        s = settings_factory(max_degraded_retries=2)
        s = settings_factory(base={...}, combined_field="tagsFromAI")
    """

    def _factory(base=None, **overrides):
        return make_settings(base, **overrides)

    return _factory


@pytest.fixture
def fake_dam():
    return FakeDam()


@pytest.fixture
def png_bytes():
    """
    Fixture that returns a callable to generate PNG bytes.
    Usage:
        data = png_bytes(64, 64)
    """
    return _make_png

