import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))
sys.path.insert(0, os.path.dirname(__file__))

from ui_harness.config import HarnessConfig


@pytest.fixture(autouse=True)
def no_env_files(monkeypatch):
    """Keep a developer's .env/.env.defaults out of the tests."""
    monkeypatch.setattr("ui_harness.config.get_default", lambda key, fallback=None: fallback)
    yield


@pytest.fixture
def config(tmp_path):
    """Configuration pointing at a fixture path that does not exist."""
    return HarnessConfig(
        base_url="https://app.example.test",
        default_identity="default.user@example.test",
        default_secret="DefaultSecret1",
        fixture_path=tmp_path / "missing-users.csv",
        mailpit_url="http://mailpit.test:8025",
        mailbox_timeout=0.0,
    )


@pytest.fixture
def fixture_csv(tmp_path):
    path = tmp_path / "test-users.csv"
    path.write_text("email,password\na@b.com,secret1\nc@d.com,secret2\n", encoding="utf-8")
    return path


@pytest.fixture
def recorded_pauses(monkeypatch):
    """Record ``Browser.pause`` durations instead of sleeping."""
    pauses = []

    async def _pause(self, milliseconds):
        pauses.append(milliseconds)

    monkeypatch.setattr("ui_harness.browser.Browser.pause", _pause)
    return pauses
