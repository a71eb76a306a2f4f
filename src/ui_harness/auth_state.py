"""
Authentication state management for sessions that reuse a saved login.

Logs in once, saves Playwright storage state (cookies, localStorage) to a JSON
file and lets later sessions start from it via
``SessionOptions.storage_state_path`` / ``UI_STORAGE_STATE``. A session whose
saved state has expired falls back to a fresh login on its own.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional

from playwright.async_api import BrowserContext

from ui_harness.config import HarnessConfig
from ui_harness.context import ExecutionContext
from ui_harness.playwright_client import PlaywrightClient
from ui_harness.session import SessionOptions, bootstrap

logger = logging.getLogger(__name__)


async def save_auth_state(context: BrowserContext, path: Path) -> Path:
    """Save authentication state of ``context`` to ``path``.

    Returns:
        Path to saved state file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    await context.storage_state(path=str(path))
    logger.info("Saved auth state to: %s", path)
    return path


def clear_auth_state(path: Path) -> None:
    """Delete saved authentication state."""
    path = Path(path)
    if path.exists():
        path.unlink()
        logger.info("Cleared auth state: %s", path)


async def ensure_auth_state(
    path: Path,
    options: Optional[SessionOptions] = None,
    execution_context: Optional[ExecutionContext] = None,
    *,
    config: Optional[HarnessConfig] = None,
    client_factory: Callable[..., PlaywrightClient] = PlaywrightClient,
    force_login: bool = False,
) -> Path:
    """Make sure ``path`` holds a usable saved login, logging in if needed.

    An existing file is trusted as is unless ``force_login`` is set.
    """
    path = Path(path)
    if path.exists() and not force_login:
        logger.info("Auth state already exists at %s, skipping UI login", path)
        return path

    # always a fresh login here, never from the state being replaced
    options = replace(options or SessionOptions(), storage_state_path=None)
    config = config or HarnessConfig.from_env()
    if config.storage_state_path is not None:
        config = replace(config, storage_state_path=None)

    session = await bootstrap(options, execution_context, config=config, client_factory=client_factory)
    try:
        return await save_auth_state(session.context, path)
    finally:
        await session.close()
