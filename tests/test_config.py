"""Configuration loading from the environment and .env files."""
from __future__ import annotations

from pathlib import Path

import pytest

from ui_harness import env_defaults
from ui_harness.config import DEFAULT_FIXTURE_PATH, HarnessConfig
from ui_harness.errors import ConfigurationError


def test_from_env_reads_all_keys():
    config = HarnessConfig.from_env({
        "UI_BASE_URL": "https://app.example.test/",
        "UI_DEFAULT_IDENTITY": "qa@example.test",
        "UI_DEFAULT_SECRET": "Secret123",
        "UI_CREDENTIAL_FIXTURE": "/data/users.csv",
        "UI_STORAGE_STATE": "/tmp/state.json",
        "PLAYWRIGHT_BROWSER": "Firefox",
        "PLAYWRIGHT_HEADLESS": "true",
        "MAILPIT_URL": "http://mailpit:8025",
        "MAILPIT_USERNAME": "mail",
        "MAILPIT_PASSWORD": "pass",
        "MAILPIT_TIMEOUT": "45",
        "UI_VERIFICATION_DEADLINE": "90",
        "UI_VERIFICATION_RECOVERY_SECRET": "Recover1",
        "LOAD_CAMPAIGN_ID": "nightly-42",
    })

    assert config.base_url == "https://app.example.test/"
    assert config.default_identity == "qa@example.test"
    assert config.fixture_path == Path("/data/users.csv")
    assert config.storage_state_path == Path("/tmp/state.json")
    assert config.browser_type == "firefox"
    assert config.headless is True
    assert config.mailpit_username == "mail"
    assert config.mailbox_timeout == 45.0
    assert config.verification_deadline == 90.0
    assert config.verification_recovery_secret == "Recover1"
    assert config.campaign_id == "nightly-42"


def test_defaults_when_nothing_is_set():
    config = HarnessConfig.from_env({})
    assert config.base_url == ""
    assert config.fixture_path == DEFAULT_FIXTURE_PATH
    assert config.storage_state_path is None
    assert config.browser_type == "chromium"
    assert config.headless is None
    assert config.mailpit_url == "http://localhost:8025"
    assert config.mailbox_timeout == 300.0


def test_env_file_defaults_fill_unset_keys(monkeypatch):
    defaults = {"UI_BASE_URL": "https://from-dotenv.test", "PLAYWRIGHT_HEADLESS": "false"}
    monkeypatch.setattr("ui_harness.config.get_default", lambda key, fallback=None: defaults.get(key, fallback))

    config = HarnessConfig.from_env({"UI_BASE_URL": "https://from-env.test"})

    assert config.base_url == "https://from-env.test"
    assert config.headless is False


def test_unsupported_browser_is_rejected():
    with pytest.raises(ConfigurationError):
        HarnessConfig.from_env({"PLAYWRIGHT_BROWSER": "netscape"})


def test_secrets_are_left_out_of_repr():
    config = HarnessConfig(default_secret="Secret123", mailpit_password="pass")
    assert "Secret123" not in repr(config)
    assert "pass'" not in repr(config)


@pytest.mark.parametrize(
    "base, path, expected",
    [
        ("https://app.example.test", "/", "https://app.example.test/"),
        ("https://app.example.test/", "/matters", "https://app.example.test/matters"),
        ("https://app.example.test/tenant", "bills/7", "https://app.example.test/tenant/bills/7"),
    ],
)
def test_url_joins_paths(base, path, expected):
    assert HarnessConfig(base_url=base).url(path) == expected


def test_parse_env_file_strips_quotes_and_comments(tmp_path):
    path = tmp_path / ".env"
    path.write_text(
        "# harness\nUI_BASE_URL=\"https://app.example.test\"\nexport MAILPIT_USERNAME='mail'\nBROKEN LINE\n\n",
        encoding="utf-8",
    )
    assert env_defaults.parse_env_file(path) == {
        "UI_BASE_URL": "https://app.example.test",
        "MAILPIT_USERNAME": "mail",
    }


def test_dotenv_overlays_dotenv_defaults(tmp_path, monkeypatch):
    (tmp_path / ".env.defaults").write_text("A=1\nB=1\n", encoding="utf-8")
    (tmp_path / ".env").write_text("B=2\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    env_defaults.load_defaults.cache_clear()
    try:
        assert env_defaults.get_default("A") == "1"
        assert env_defaults.get_default("B") == "2"
        assert env_defaults.get_default("C", "fallback") == "fallback"
    finally:
        env_defaults.load_defaults.cache_clear()
