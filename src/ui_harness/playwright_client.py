"""
Playwright Session Client
=========================

Owns the Playwright driver, one browser and one context with a single page
for a logical session. ``ui_harness.session.bootstrap`` builds it with the
pacing and rendering derived for the session; tests replace it through
``bootstrap(client_factory=...)``.

Usage:
    async with PlaywrightClient(headless=True, slow_mo=250) as client:
        await client.page.goto("https://example.com")
"""

import logging
import os
from typing import Any, Dict, List, Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

logger = logging.getLogger(__name__)


class PlaywrightClient:
    """Launches and tears down the browser behind one session.

    Args:
        browser_type: chromium, firefox or webkit
        headless: render without a window
        timeout: default action timeout in milliseconds
        storage_state_path: saved cookies/localStorage to start from, ignored if missing
        slow_mo: delay in milliseconds between driver operations
        launch_args: extra browser command line switches
        context_options: extra keyword arguments for ``new_context``
        init_scripts: scripts run in every page before its own
    """

    def __init__(
        self,
        browser_type: str = "chromium",
        headless: bool = True,
        timeout: int = 30000,
        storage_state_path: Optional[str] = None,
        slow_mo: int = 0,
        launch_args: Optional[List[str]] = None,
        context_options: Optional[Dict[str, Any]] = None,
        init_scripts: Optional[List[str]] = None,
    ):
        self.browser_type = browser_type
        self.headless = headless
        self.timeout = timeout
        self.storage_state_path = storage_state_path
        self.slow_mo = slow_mo
        self.launch_args = list(launch_args or [])
        self.context_options = dict(context_options or {})
        self.init_scripts = list(init_scripts or [])

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self):
        """Start the driver, launch the browser and open the session page."""
        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.browser_type)

        launch_kwargs: Dict[str, Any] = {"headless": self.headless, "slow_mo": self.slow_mo}
        if self.launch_args:
            launch_kwargs["args"] = self.launch_args
        self._browser = await launcher.launch(**launch_kwargs)
        logger.debug("Launched %s (headless=%s, slow_mo=%sms)", self.browser_type, self.headless, self.slow_mo)

        context_kwargs = dict(self.context_options)
        if self.storage_state_path:
            if os.path.exists(self.storage_state_path):
                context_kwargs["storage_state"] = self.storage_state_path
            else:
                logger.warning("Storage state %s not found, starting without it", self.storage_state_path)

        self._context = await self._browser.new_context(**context_kwargs)
        self._context.set_default_timeout(self.timeout)
        for script in self.init_scripts:
            await self._context.add_init_script(script)
        self._page = await self._context.new_page()

    async def close(self):
        """Close page, context, browser and driver; safe to call more than once."""
        page, self._page = self._page, None
        context, self._context = self._context, None
        browser, self._browser = self._browser, None
        driver, self._playwright = self._playwright, None

        if page and not page.is_closed():
            await page.close()
        if context:
            await context.close()
        if browser:
            await browser.close()
        if driver:
            await driver.stop()

    @property
    def browser(self) -> Browser:
        if not self._browser:
            raise RuntimeError("Client not connected")
        return self._browser

    @property
    def context(self) -> BrowserContext:
        if not self._context:
            raise RuntimeError("Client not connected")
        return self._context

    @property
    def page(self) -> Page:
        if not self._page:
            raise RuntimeError("Client not connected")
        return self._page
