"""Thin wrapper around direct Playwright for ergonomic UI actions.

``Browser`` is the action executor: each method performs exactly one action on
an already-resolved selector and translates driver failures into ``ToolError``.
Target resolution (is the element there at all?) is the caller's job, usually
through ``ui_harness.probe.is_visible``.
"""
from __future__ import annotations

from typing import Any, Dict

import anyio
from playwright.async_api import Page, TimeoutError as PlaywrightTimeout

from ui_harness.errors import ToolError


class Browser:
    """Convenience wrapper over a Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page
        self.current_url: str | None = None

    @property
    def page(self) -> Page:
        return self._page

    def _update_state(self) -> None:
        self.current_url = self._page.url

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 30000) -> Dict[str, Any]:
        """Navigate to URL and return the response status.

        Note: "networkidle" can time out with long-polling connections, so a
        timed-out networkidle navigation is retried once with "domcontentloaded".
        """
        try:
            response = await self._page.goto(url, wait_until=wait_until, timeout=timeout)
            self._update_state()
            return {"url": self.current_url, "status": response.status if response else None}
        except PlaywrightTimeout as exc:
            if wait_until == "networkidle":
                try:
                    response = await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout)
                    self._update_state()
                    return {"url": self.current_url, "status": response.status if response else None}
                except PlaywrightTimeout:
                    pass  # Fall through to original error
            raise ToolError(name="goto", payload={"url": url, "wait_until": wait_until}, message=str(exc))

    async def click(self, selector: str) -> Dict[str, Any]:
        """Click the first element matching selector."""
        try:
            await self._page.locator(selector).first.click()
            self._update_state()
            return {"selector": selector, "url": self.current_url}
        except Exception as exc:
            raise ToolError(name="click", payload={"selector": selector}, message=str(exc))

    async def hover(self, selector: str) -> Dict[str, Any]:
        """Hover the first element matching selector (opens hover menus)."""
        try:
            await self._page.locator(selector).first.hover()
            return {"selector": selector}
        except Exception as exc:
            raise ToolError(name="hover", payload={"selector": selector}, message=str(exc))

    async def fill(self, selector: str, value: str, secret: bool = False) -> Dict[str, Any]:
        """Fill input field."""
        shown = "***" if secret else value
        try:
            await self._page.locator(selector).first.fill(value)
            return {"selector": selector, "value": shown}
        except Exception as exc:
            raise ToolError(name="fill", payload={"selector": selector, "value": shown}, message=str(exc))

    async def type_into(self, selector: str, value: str, secret: bool = False, delay: float = 0) -> Dict[str, Any]:
        """Focus a field by clicking it, then type key by key.

        Some login forms only react to real key events, which ``fill`` skips.
        """
        shown = "***" if secret else value
        try:
            await self._page.locator(selector).first.click()
            await self._page.keyboard.type(value, delay=delay)
            return {"selector": selector, "value": shown}
        except Exception as exc:
            raise ToolError(name="type_into", payload={"selector": selector, "value": shown}, message=str(exc))

    async def type_sequentially(self, selector: str, value: str, delay: float = 0) -> Dict[str, Any]:
        """Type into a field one key at a time without clicking it first."""
        try:
            await self._page.locator(selector).first.press_sequentially(value, delay=delay)
            return {"selector": selector, "value": value}
        except Exception as exc:
            raise ToolError(name="type_sequentially", payload={"selector": selector, "value": value}, message=str(exc))

    async def press(self, key: str) -> Dict[str, Any]:
        """Press a key on the focused element."""
        try:
            await self._page.keyboard.press(key)
            return {"key": key}
        except Exception as exc:
            raise ToolError(name="press", payload={"key": key}, message=str(exc))

    async def wait_for_load(self, state: str = "load", timeout: int | None = None) -> None:
        try:
            await self._page.wait_for_load_state(state, timeout=timeout)
        except Exception as exc:
            raise ToolError(name="wait_for_load", payload={"state": state}, message=str(exc))

    async def pause(self, milliseconds: int) -> None:
        """Explicit settle wait for UIs that give no better signal."""
        await anyio.sleep(milliseconds / 1000)
