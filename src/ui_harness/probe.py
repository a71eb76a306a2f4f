"""Non-throwing visibility probe.

``is_visible`` is the predicate every cleanup flow branches on ("is there
still something to remove?"). A timeout is a plain ``False``; exceptions are
reserved for genuine failures elsewhere.
"""
from __future__ import annotations

import logging
from typing import Any

import anyio
from playwright.async_api import Error as PlaywrightError

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_MS = 30_000


async def is_visible(
    scope: Any,
    selector: str,
    timeout_ms: int | None = None,
    require_all: bool = False,
) -> bool:
    """Wait up to ``timeout_ms`` for ``selector`` to become visible inside ``scope``.

    Args:
        scope: Anything exposing ``locator()`` - a Page, Frame or Locator.
        selector: Playwright selector, resolved relative to ``scope``.
        timeout_ms: How long to wait in milliseconds (default 30s).
        require_all: Require every match to be visible instead of the first one.

    Returns:
        True if visible in time, False otherwise. Never raises for
        driver errors (timeouts, strict-mode violations, detached frames).
    """
    if timeout_ms is None:
        timeout_ms = DEFAULT_PROBE_TIMEOUT_MS

    deadline = anyio.current_time() + timeout_ms / 1000
    locator = scope.locator(selector)
    try:
        await locator.first.wait_for(state="visible", timeout=timeout_ms)
        if require_all:
            total = await locator.count()
            for index in range(1, total):
                remaining_ms = max(int((deadline - anyio.current_time()) * 1000), 1)
                await locator.nth(index).wait_for(state="visible", timeout=remaining_ms)
    except PlaywrightError:
        logger.warning(
            "Selector %r not visible within %dms - if unexpected, try increasing the timeout",
            selector,
            timeout_ms,
        )
        return False

    logger.debug("Selector %r is visible", selector)
    return True
