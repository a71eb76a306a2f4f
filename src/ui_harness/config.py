"""Process-wide harness configuration.

Values are read once, at process start, from the environment with
`.env`/`.env.defaults` as fallback (see ``ui_harness.env_defaults``).
The resulting ``HarnessConfig`` is frozen and passed explicitly to the
session bootstrap and the verification handshake; nothing re-reads the
environment mid-session.

Keys:
    UI_BASE_URL                      application root (required for login)
    UI_DEFAULT_IDENTITY              last-resort login identity
    UI_DEFAULT_SECRET                last-resort login secret
    UI_CREDENTIAL_FIXTURE            CSV file with identity,secret rows
    UI_STORAGE_STATE                 saved Playwright storage state (optional)
    PLAYWRIGHT_BROWSER               chromium | firefox | webkit
    PLAYWRIGHT_HEADLESS              "true"/"false"; unset = decided per session
    MAILPIT_URL                      Mailpit base URL
    MAILPIT_USERNAME/MAILPIT_PASSWORD  Mailpit basic auth
    MAILPIT_TIMEOUT                  seconds one mailbox wait may take
    UI_VERIFICATION_DEADLINE         seconds the whole code poll may take
    UI_VERIFICATION_RECOVERY_SECRET  password used by the handshake recovery
    LOAD_CAMPAIGN_ID                 identifier of the running load campaign
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urljoin

from ui_harness.env_defaults import get_default
from ui_harness.errors import ConfigurationError

DEFAULT_FIXTURE_PATH = Path("data") / "test-users.csv"
DEFAULT_MAILPIT_URL = "http://localhost:8025"


def _lookup(env: Mapping[str, str], key: str, fallback: str | None = None) -> str | None:
    value = env.get(key)
    if value:
        return value
    return get_default(key, fallback)


def _parse_bool(value: str | None) -> Optional[bool]:
    if value is None or value == "":
        return None
    return value.strip().lower() in {"true", "1", "yes"}


@dataclass(frozen=True)
class HarnessConfig:
    """Immutable configuration shared by every session in the process."""

    base_url: str = ""
    default_identity: Optional[str] = None
    default_secret: Optional[str] = field(default=None, repr=False)
    fixture_path: Path = DEFAULT_FIXTURE_PATH
    storage_state_path: Optional[Path] = None
    browser_type: str = "chromium"
    headless: Optional[bool] = None
    mailpit_url: str = DEFAULT_MAILPIT_URL
    mailpit_username: Optional[str] = None
    mailpit_password: Optional[str] = field(default=None, repr=False)
    mailbox_timeout: float = 300.0
    verification_deadline: float = 600.0
    verification_recovery_secret: Optional[str] = field(default=None, repr=False)
    campaign_id: Optional[str] = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "HarnessConfig":
        """Build the configuration from the environment (``os.environ`` by default)."""
        env = os.environ if env is None else env

        browser_type = (_lookup(env, "PLAYWRIGHT_BROWSER", "chromium") or "chromium").lower()
        if browser_type not in {"chromium", "firefox", "webkit"}:
            raise ConfigurationError(f"Unsupported PLAYWRIGHT_BROWSER: {browser_type!r}")

        storage_state = _lookup(env, "UI_STORAGE_STATE")
        return cls(
            base_url=_lookup(env, "UI_BASE_URL", "") or "",
            default_identity=_lookup(env, "UI_DEFAULT_IDENTITY"),
            default_secret=_lookup(env, "UI_DEFAULT_SECRET"),
            fixture_path=Path(_lookup(env, "UI_CREDENTIAL_FIXTURE") or DEFAULT_FIXTURE_PATH),
            storage_state_path=Path(storage_state) if storage_state else None,
            browser_type=browser_type,
            headless=_parse_bool(_lookup(env, "PLAYWRIGHT_HEADLESS")),
            mailpit_url=_lookup(env, "MAILPIT_URL", DEFAULT_MAILPIT_URL) or DEFAULT_MAILPIT_URL,
            mailpit_username=_lookup(env, "MAILPIT_USERNAME"),
            mailpit_password=_lookup(env, "MAILPIT_PASSWORD"),
            mailbox_timeout=float(_lookup(env, "MAILPIT_TIMEOUT", "300") or 300),
            verification_deadline=float(_lookup(env, "UI_VERIFICATION_DEADLINE", "600") or 600),
            verification_recovery_secret=_lookup(env, "UI_VERIFICATION_RECOVERY_SECRET"),
            campaign_id=_lookup(env, "LOAD_CAMPAIGN_ID"),
        )

    def url(self, path: str = "/") -> str:
        """Return an absolute URL for the provided path."""
        return urljoin(self.base_url.rstrip("/") + "/", path.lstrip("/"))
