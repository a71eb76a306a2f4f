"""Session bootstrap: credentials, browser launch, login and outcome classification.

The same entry point serves two callers:

* an interactive run (one developer or CI job), which reads the shared CSV
  fixture, runs headed with slow pacing and emits no metrics;
* one virtual user of a load campaign, which brings its own credential and
  metrics sink in an ``ExecutionContext``, runs headless with fast pacing and
  reports ``login.success`` / ``login.failure``.

Usage:
    async with await bootstrap(SessionOptions(), ctx, config=config) as session:
        await session.page.goto(config.url("/matters"))
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from playwright.async_api import Browser as PlaywrightBrowser, BrowserContext, Page

from ui_harness.browser import Browser
from ui_harness.config import HarnessConfig
from ui_harness.context import METRIC_LOGIN_FAILURE, METRIC_LOGIN_SUCCESS, ExecutionContext
from ui_harness.credentials import Credential, mask_identity, resolve_credentials
from ui_harness.errors import AuthenticationError, ConfigurationError, ToolError
from ui_harness.playwright_client import PlaywrightClient
from ui_harness.probe import is_visible

logger = logging.getLogger(__name__)

LOAD_SLOW_MO_MS = 250
INTERACTIVE_SLOW_MO_MS = 750
LOAD_SETTLE_MS = 500
INTERACTIVE_SETTLE_MS = 2000

STEALTH_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/109.0.2227.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/110.0.2228.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/109.0.3497.92 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_0) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/110.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]
STEALTH_LAUNCH_ARGS = ["--disable-blink-features=AutomationControlled"]
STEALTH_INIT_SCRIPT = "Object.defineProperty(navigator, 'webdriver', { get: () => false });"
STEALTH_VIEWPORT = {"width": 1200, "height": 768}


@dataclass(frozen=True)
class LoginSelectors:
    """Where the login form and the authenticated shell live."""

    identity: str = "#txtUserName"
    secret: str = "#txtPwd"
    submit: str = "#loginBtn"
    invalid_credentials: str = "text=Invalid Username or Password"
    survey: str = "text=How likely are you to"
    survey_close: str = 'role=button[name="close"]'
    onboarding: str = "#pendo-guide-container"
    onboarding_close: str = '[aria-label="Close"]'
    brand_header: str = "#pageheader-brand-reg"
    avatar: str = '[href="#"] #imgUserPic'


@dataclass(frozen=True)
class SessionOptions:
    """Per-call overrides. ``None`` means "derive from the execution context"."""

    identity: Optional[str] = None
    secret: Optional[str] = field(default=None, repr=False)
    headless: Optional[bool] = None
    slow_mo_ms: Optional[int] = None
    browser_type: Optional[str] = None
    fixture_path: Optional[Path] = None
    storage_state_path: Optional[Path] = None
    stealth: bool = False
    selectors: LoginSelectors = field(default_factory=LoginSelectors)
    action_timeout_ms: int = 30_000
    shell_timeout_ms: int = 30_000
    invalid_credentials_timeout_ms: int = 1_000
    survey_timeout_ms: int = 3_000
    onboarding_timeout_ms: int = 5_000


@dataclass(frozen=True)
class SessionProfile:
    load_campaign: bool
    headless: bool
    slow_mo_ms: int
    settle_ms: int

    @property
    def mode(self) -> str:
        return "load" if self.load_campaign else "interactive"


def derive_profile(load_campaign: bool, options: SessionOptions, config: HarnessConfig) -> SessionProfile:
    """Pick pacing and rendering for the session.

    Load-campaign sessions are forced headless unless the caller set
    ``options.headless``; interactive sessions default to headed unless the
    options or PLAYWRIGHT_HEADLESS say otherwise.
    """
    if load_campaign:
        headless = options.headless if options.headless is not None else True
        slow_mo = LOAD_SLOW_MO_MS
        settle_ms = LOAD_SETTLE_MS
    else:
        if options.headless is not None:
            headless = options.headless
        elif config.headless is not None:
            headless = config.headless
        else:
            headless = False
        slow_mo = INTERACTIVE_SLOW_MO_MS
        settle_ms = INTERACTIVE_SETTLE_MS

    if options.slow_mo_ms is not None:
        slow_mo = options.slow_mo_ms
    return SessionProfile(load_campaign=load_campaign, headless=headless, slow_mo_ms=slow_mo, settle_ms=settle_ms)


@dataclass
class Session:
    """An authenticated browser session. Closing it closes the browser."""

    client: PlaywrightClient
    credential: Credential
    profile: SessionProfile
    execution_context: Optional[ExecutionContext] = None

    @property
    def browser(self) -> PlaywrightBrowser:
        return self.client.browser

    @property
    def context(self) -> BrowserContext:
        return self.client.context

    @property
    def page(self) -> Page:
        return self.client.page

    @property
    def load_campaign(self) -> bool:
        return self.profile.load_campaign

    async def settle(self) -> None:
        """Wait the profile's navigation delay; shorter for load campaigns."""
        await Browser(self.page).pause(self.profile.settle_ms)

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _client_kwargs(options: SessionOptions, config: HarnessConfig, profile: SessionProfile) -> Dict[str, Any]:
    storage_state = options.storage_state_path or config.storage_state_path
    kwargs: Dict[str, Any] = {
        "browser_type": options.browser_type or config.browser_type,
        "headless": profile.headless,
        "slow_mo": profile.slow_mo_ms,
        "timeout": options.action_timeout_ms,
        "storage_state_path": str(storage_state) if storage_state else None,
    }
    if options.stealth:
        kwargs["launch_args"] = list(STEALTH_LAUNCH_ARGS)
        kwargs["context_options"] = {
            "user_agent": random.choice(STEALTH_USER_AGENTS),
            "viewport": dict(STEALTH_VIEWPORT),
        }
        kwargs["init_scripts"] = [STEALTH_INIT_SCRIPT]
    return kwargs


async def dismiss_interstitials(page: Page, options: SessionOptions) -> None:
    """Close the satisfaction survey and onboarding overlay if either shows up.

    Both are optional; absence is the common case and never an error.
    """
    selectors = options.selectors
    browser = Browser(page)
    for marker, close, timeout_ms, name in (
        (selectors.survey, selectors.survey_close, options.survey_timeout_ms, "survey"),
        (selectors.onboarding, selectors.onboarding_close, options.onboarding_timeout_ms, "onboarding overlay"),
    ):
        if not await is_visible(page, marker, timeout_ms):
            logger.debug("No %s shown, no action needed", name)
            continue
        try:
            await browser.click(close)
            logger.info("Dismissed %s", name)
        except ToolError as exc:
            logger.info("Could not dismiss %s: %s", name, exc.message)


async def _submit_login(
    page: Page, credential: Credential, options: SessionOptions, config: HarnessConfig, profile: SessionProfile
) -> None:
    selectors = options.selectors
    browser = Browser(page)
    await browser.goto(config.url("/"))
    await browser.type_into(selectors.identity, credential.identity)
    await browser.type_into(selectors.secret, credential.secret, secret=True)
    await browser.click(selectors.submit)
    await browser.wait_for_load("load")
    await browser.pause(profile.settle_ms)
    await dismiss_interstitials(page, options)


async def _shell_visible(page: Page, options: SessionOptions) -> bool:
    selectors = options.selectors
    if not await is_visible(page, selectors.brand_header, options.shell_timeout_ms):
        return False
    return await is_visible(page, selectors.avatar, options.shell_timeout_ms)


async def _resume_saved_state(page: Page, options: SessionOptions, config: HarnessConfig) -> bool:
    """Return True if the stored cookies already give an authenticated shell."""
    await Browser(page).goto(config.url("/"))
    if await is_visible(page, options.selectors.avatar, options.onboarding_timeout_ms):
        logger.info("Using saved authentication state")
        await dismiss_interstitials(page, options)
        return True
    logger.info("Saved auth state invalid, performing fresh login")
    return False


def _fail(message: str, credential: Credential, profile: SessionProfile, ctx: Optional[ExecutionContext]) -> AuthenticationError:
    masked = mask_identity(credential.identity)
    logger.error("[%s] %s for %s", profile.mode, message, masked)
    if profile.load_campaign and ctx is not None:
        ctx.emit_metric(METRIC_LOGIN_FAILURE, 1)
    return AuthenticationError(f"{message} for {masked}", identity=masked)


async def _log_in(
    client: PlaywrightClient,
    credential: Credential,
    options: SessionOptions,
    config: HarnessConfig,
    profile: SessionProfile,
    ctx: Optional[ExecutionContext],
) -> None:
    page = client.page
    resumed = False
    if client.storage_state_path and Path(client.storage_state_path).exists():
        resumed = await _resume_saved_state(page, options, config)
    if not resumed:
        await _submit_login(page, credential, options, config, profile)

    if await is_visible(page, options.selectors.invalid_credentials, options.invalid_credentials_timeout_ms):
        raise _fail("Invalid Username or Password", credential, profile, ctx)

    if not await _shell_visible(page, options):
        raise _fail("Authenticated shell did not appear", credential, profile, ctx)

    await Browser(page).wait_for_load("domcontentloaded")

    if profile.load_campaign and ctx is not None:
        ctx.emit_metric(METRIC_LOGIN_SUCCESS, 1)
        ctx.record_login()

    logger.info("[%s] Login successful for %s", profile.mode, mask_identity(credential.identity))


async def bootstrap(
    options: Optional[SessionOptions] = None,
    execution_context: Optional[ExecutionContext] = None,
    *,
    config: Optional[HarnessConfig] = None,
    client_factory: Callable[..., PlaywrightClient] = PlaywrightClient,
) -> Session:
    """Resolve credentials, launch a browser, log in and classify the outcome.

    Raises:
        ConfigurationError: no base URL, or no credential from any source.
        AuthenticationError: the application rejected the login or never
            showed the authenticated shell. Not retried.
    """
    options = options or SessionOptions()
    config = config or HarnessConfig.from_env()

    load_campaign = execution_context is not None and execution_context.is_load_campaign
    credential = resolve_credentials(
        context_credential=execution_context.credential if load_campaign else None,
        fixture_path=None if load_campaign else (options.fixture_path or config.fixture_path),
        identity=options.identity,
        secret=options.secret,
        default_identity=config.default_identity,
        default_secret=config.default_secret,
    )
    if not config.base_url:
        raise ConfigurationError("UI_BASE_URL is not configured")

    profile = derive_profile(load_campaign, options, config)
    campaign = (execution_context.campaign_id if execution_context else None) or config.campaign_id
    logger.info(
        "[%s] Starting session for %s (campaign=%s, headless=%s, slow_mo=%dms)",
        profile.mode, mask_identity(credential.identity), campaign or "-", profile.headless, profile.slow_mo_ms,
    )

    client = client_factory(**_client_kwargs(options, config, profile))
    try:
        await client.connect()
        await _log_in(client, credential, options, config, profile, execution_context)
    except BaseException:
        try:
            await client.close()
        except Exception as exc:
            logger.warning("Error closing browser after failed session start: %s", exc)
        raise

    return Session(client=client, credential=credential, profile=profile, execution_context=execution_context)
