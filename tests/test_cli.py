"""Command line entry point."""
from __future__ import annotations

import io

import pytest

from ui_harness import __main__ as cli
from ui_harness.errors import ConfigurationError


def test_extract_code_from_file(tmp_path, capsys):
    mail = tmp_path / "mail.txt"
    mail.write_text("Hello,\nYour single-use code is: 482913\nThanks", encoding="utf-8")

    assert cli.main(["extract-code", str(mail)]) == 0
    assert capsys.readouterr().out.strip() == "482913"


def test_extract_code_from_stdin(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("Security code: 246810"))
    assert cli.main(["extract-code"]) == 0
    assert capsys.readouterr().out.strip() == "246810"


def test_extract_code_without_phrase_fails(tmp_path):
    mail = tmp_path / "mail.txt"
    mail.write_text("nothing to see", encoding="utf-8")
    assert cli.main(["extract-code", str(mail)]) == 1


def test_login_failure_exits_non_zero(monkeypatch):
    async def failing_bootstrap(options, config=None):
        raise ConfigurationError("UI_BASE_URL is not configured")

    monkeypatch.setattr(cli, "bootstrap", failing_bootstrap)
    assert cli.main(["login", "--headless"]) == 1


def test_login_passes_flags_through(monkeypatch, capsys):
    seen = {}

    class DummySession:
        async def close(self):
            seen["closed"] = True

    async def fake_bootstrap(options, config=None):
        seen["options"] = options
        return DummySession()

    monkeypatch.setattr(cli, "bootstrap", fake_bootstrap)
    assert cli.main(["login", "--headless", "--stealth"]) == 0

    assert seen["options"].headless is True
    assert seen["options"].stealth is True
    assert seen["closed"] is True
    assert "login ok" in capsys.readouterr().out


def test_login_saves_state(monkeypatch, tmp_path, capsys):
    calls = {}

    async def fake_ensure(path, options, config=None, force_login=False):
        calls.update(path=path, force=force_login, headless=options.headless)
        return path

    monkeypatch.setattr(cli, "ensure_auth_state", fake_ensure)
    target = tmp_path / "state.json"
    assert cli.main(["login", "--save-state", str(target), "--force"]) == 0

    assert calls == {"path": target, "force": True, "headless": None}
    assert str(target) in capsys.readouterr().out


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.main([])
