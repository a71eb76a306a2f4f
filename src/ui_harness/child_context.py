"""Popup / new-tab coordination.

Some actions open the record they act on in a new tab (paying an invoice,
cancelling a workflow from a task row, following an activation link). The
caller has to catch the new page, work in it and close it again before the
parent page is touched.

The creation event and the triggering click are awaited through one
Playwright ``expect_popup``/``expect_page`` scope, so a popup that opens
before the click's own continuation resumes is never missed. The child is
closed exactly once on every exit path.

Usage:
    async with child_context(page, lambda: page.locator("a.open").click()) as child:
        await child.locator(".pay").click()
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

from playwright.async_api import Page

logger = logging.getLogger(__name__)

T = TypeVar("T")

SOURCE_POPUP = "popup"
SOURCE_PAGE = "page"


def _expect_child(parent: Page, source: str, timeout_ms: int) -> Any:
    if source == SOURCE_POPUP:
        return parent.expect_popup(timeout=timeout_ms)
    if source == SOURCE_PAGE:
        return parent.context.expect_page(timeout=timeout_ms)
    raise ValueError(f"Unknown child source {source!r} (expected 'popup' or 'page')")


async def close_child(child: Page) -> None:
    """Close a child page unless it already closed itself."""
    if child.is_closed():
        logger.debug("Child page already closed")
        return
    await child.close()
    logger.debug("Closed child page")


@asynccontextmanager
async def child_context(
    parent: Page,
    trigger: Callable[[], Awaitable[Any]],
    *,
    source: str = SOURCE_POPUP,
    wait_until: str = "domcontentloaded",
    timeout_ms: int = 30_000,
) -> AsyncIterator[Page]:
    """Run ``trigger`` and yield the page it opens; close that page on exit.

    Args:
        parent: Page the trigger acts on.
        trigger: Coroutine function performing the action that opens the child.
        source: "popup" for window.open/target=_blank from ``parent``;
            "page" for any new page in the parent's browser context.
        wait_until: Load state the child must reach before it is yielded.
        timeout_ms: How long to wait for the child to appear.
    """
    async with _expect_child(parent, source, timeout_ms) as child_info:
        await trigger()
    child: Page = await child_info.value
    logger.debug("Child page opened: %s", child.url)
    try:
        await child.wait_for_load_state(wait_until)
        yield child
    finally:
        await close_child(child)


async def with_child_context(
    parent: Page,
    trigger: Callable[[], Awaitable[Any]],
    operation: Callable[[Page], Awaitable[T]],
    **kwargs: Any,
) -> T:
    """Open a child page with ``trigger``, run ``operation`` on it, close it, return the result."""
    async with child_context(parent, trigger, **kwargs) as child:
        return await operation(child)
