"""Out-of-band email verification handshake.

Identity providers sometimes stop a login with "verify your email". The
handshake asks for a one-time code in the UI, waits for the mail that carries
it, pulls the code out of the body and types it into the code cells.

If the provider answers "we couldn't send the code", a scripted recovery
(back, re-enter the password, request the code again) runs once. The mailbox
poll is bounded by an outer deadline on top of the inbox's own timeout.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

import anyio
from playwright.async_api import Page

from ui_harness.browser import Browser
from ui_harness.config import HarnessConfig
from ui_harness.errors import VerificationError
from ui_harness.mailbox import Inbox, MailpitClient
from ui_harness.probe import is_visible
from ui_harness.session import Session

logger = logging.getLogger(__name__)

KNOWN_PHRASES = ("Your single-use code is:", "Security code:")
CODE_LENGTH = 6

EMAIL_CHALLENGE = "[data-testid=\"title\"]:has-text('Verify your email')"
SECOND_STEP = "[data-testid=\"subtitle\"]:has-text('Just one more step to verify it’s you.')"
PASSWORD_PROMPT = "[data-testid=\"title\"]:has-text('Enter your password')"
SEND_CODE_BUTTON = 'button:has-text("Send a code to")'
EMAIL_INPUT = 'role=textbox[name="Email"]'
PASSWORD_INPUT = 'role=textbox[name="Password"]'
SEND_FAILED = "text=We couldn't send the code. Please try again."
BACK_ARROW = '[data-testid="leftArrowIcon"]'
CODE_CELL = "#codeEntry-{index}"

PROMPT_PROBE_MS = 2_000
CHALLENGE_TIMEOUT_MS = 10_000
SEND_FAILED_PROBE_MS = 2_000
STEP_PAUSE_MS = 2_000
KEY_DELAY_MS = 200


def extract_code(text: str, phrases: Sequence[str] = KNOWN_PHRASES) -> str:
    """Return the token following the first recognised phrase, up to whitespace.

    Phrases are tried in priority order; the first one present in ``text``
    anchors extraction.

    Raises:
        VerificationError: no phrase present, or nothing follows it.
    """
    for phrase in phrases:
        if phrase in text:
            tail = text.split(phrase, 1)[1].strip()
            code = tail.split()[0] if tail else ""
            if not code:
                break
            return code
    raise VerificationError("Code not found after the phrase.")


async def fill_code_cells(page: Page, code: str, cell_selector: str = CODE_CELL) -> None:
    """Type the code one character per cell, left to right."""
    if len(code) != CODE_LENGTH or not code.isdigit():
        raise VerificationError(f"Expected a {CODE_LENGTH}-digit code, got {len(code)} character(s)")
    browser = Browser(page)
    for index, digit in enumerate(code):
        await browser.fill(cell_selector.format(index=index), digit)


async def _request_code(browser: Browser, address: str) -> None:
    await browser.type_sequentially(EMAIL_INPUT, address, delay=KEY_DELAY_MS)
    await browser.pause(STEP_PAUSE_MS)
    await browser.press("Enter")


async def _recover(browser: Browser, address: str, recovery_secret: str) -> None:
    """Back out of the email step, re-authenticate and ask for the code again."""
    logger.warning("Code dispatch rejected, retrying through the password step")
    await browser.click(BACK_ARROW)
    await browser.pause(STEP_PAUSE_MS)
    await browser.fill(PASSWORD_INPUT, recovery_secret, secret=True)
    await browser.pause(STEP_PAUSE_MS)
    await browser.press("Enter")
    await browser.pause(STEP_PAUSE_MS)
    await browser.click(SEND_CODE_BUTTON)
    await _request_code(browser, address)


def _carries_phrase(phrases: Sequence[str]) -> Callable[[Any], bool]:
    return lambda message: any(phrase in message.body for phrase in phrases)


async def _await_message(
    inbox: Inbox, requested_at: datetime, deadline_s: float, phrases: Sequence[str] = KNOWN_PHRASES
) -> Any:
    """Wait for the first mail after ``requested_at`` that contains one of ``phrases``."""
    predicate = _carries_phrase(phrases)
    try:
        with anyio.fail_after(deadline_s):
            while True:
                message = await inbox.wait_for_message(after=requested_at, predicate=predicate)
                if message is not None:
                    return message
                logger.info("No verification mail for %s yet, polling again", inbox.address)
    except TimeoutError as exc:
        raise VerificationError(
            f"No verification mail for {inbox.address} within {deadline_s:.0f}s"
        ) from exc


async def verify(
    page: Page,
    mailbox_address: str,
    inbox: Inbox,
    *,
    recovery_secret: Optional[str] = None,
    phrases: Sequence[str] = KNOWN_PHRASES,
    deadline_s: float = 600.0,
    consume: bool = True,
) -> Optional[str]:
    """Complete the email verification challenge currently shown on ``page``.

    Args:
        page: Page showing (or not) one of the verification prompts.
        mailbox_address: Address the code is sent to.
        inbox: Inbox for ``mailbox_address``.
        recovery_secret: Password used by the one-shot recovery path.
        phrases: Recognised phrases preceding the code, highest priority first.
        deadline_s: Upper bound for the whole mailbox wait.
        consume: Delete the verification mail once the code was read.

    Returns:
        The code that was entered, or None when no prompt was showing.
    """
    challenge = await is_visible(page, EMAIL_CHALLENGE, PROMPT_PROBE_MS)
    second_step = await is_visible(page, SECOND_STEP, PROMPT_PROBE_MS)
    password_first = await is_visible(page, PASSWORD_PROMPT, PROMPT_PROBE_MS)
    if not (challenge or second_step or password_first):
        logger.debug("No verification prompt shown")
        return None

    browser = Browser(page)
    if password_first:
        await browser.click(SEND_CODE_BUTTON)
        if not await is_visible(page, EMAIL_CHALLENGE, CHALLENGE_TIMEOUT_MS):
            raise VerificationError("Email challenge did not appear after requesting a code")

    requested_at = datetime.now(timezone.utc)
    await _request_code(browser, mailbox_address)

    if await is_visible(page, SEND_FAILED, SEND_FAILED_PROBE_MS):
        if not recovery_secret:
            raise VerificationError("Code dispatch rejected and no recovery secret configured")
        await _recover(browser, mailbox_address, recovery_secret)
        if await is_visible(page, SEND_FAILED, SEND_FAILED_PROBE_MS):
            raise VerificationError("Code dispatch rejected again after recovery")

    message = await _await_message(inbox, requested_at, deadline_s, phrases)
    code = extract_code(message.body, phrases)
    logger.info("Verification code received for %s", mailbox_address)

    if consume:
        await inbox.client.delete_message(message.id)

    await fill_code_cells(page, code)
    return code


async def verify_session(
    session: Session,
    config: HarnessConfig,
    mailbox_address: Optional[str] = None,
    *,
    client: Optional[MailpitClient] = None,
    **kwargs: Any,
) -> Optional[str]:
    """Run ``verify`` on a bootstrapped session with the process configuration.

    The mailbox defaults to the session's identity. Recovery uses
    UI_VERIFICATION_RECOVERY_SECRET, else the session's own secret.
    """
    address = mailbox_address or session.credential.identity
    kwargs.setdefault("recovery_secret", config.verification_recovery_secret or session.credential.secret)
    kwargs.setdefault("deadline_s", config.verification_deadline)
    if client is not None:
        return await verify(session.page, address, client.open_inbox(address), **kwargs)
    async with MailpitClient.from_config(config) as mailpit:
        return await verify(session.page, address, mailpit.open_inbox(address), **kwargs)
