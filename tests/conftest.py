from __future__ import annotations

import pytest

from smartcast.config import CONFIG_ENV_VAR, get_settings
from smartcast.mock_device import MockSmartCastDevice


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv("LOGLEVEL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def device() -> MockSmartCastDevice:
    return MockSmartCastDevice()
