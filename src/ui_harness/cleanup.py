"""Reusable cleanup flows built on the convergence loop.

Each flow removes leftovers of earlier runs (rows in a grid, running
workflows of a record) and reports a ``ConvergenceResult``; the caller decides
whether an aborted cleanup fails its test.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from playwright.async_api import Dialog, Page

from ui_harness.browser import Browser
from ui_harness.child_context import with_child_context
from ui_harness.convergence import DEFAULT_MAX_ITERATIONS, ConvergenceResult, delete_until_empty
from ui_harness.probe import is_visible

logger = logging.getLogger(__name__)

WORKFLOWS_TAB = ".workflows-tab a"
WORKFLOWS_IN_PROGRESS = "#workflow-runs-in-progress"
WORKFLOW_ROW = "#workflow-runs-grid tbody tr"
WORKFLOW_ROW_MENU = ".fa-ellipsis-v"
WORKFLOW_CANCEL_ITEM = '.cw-grid-action-menu li:has-text("Cancel Running Workflow")'
WORKFLOW_CANCEL_CONFIRM = '[aria-describedby="workflowrun-modal"] [data-bind="click: cancelWorkflowRun"]'


async def _accept(dialog: Dialog) -> None:
    await dialog.accept()


@asynccontextmanager
async def auto_accept_dialogs(page: Page) -> AsyncIterator[Page]:
    """Accept every confirm()/alert() the page raises while the block runs."""
    page.on("dialog", _accept)
    try:
        yield page
    finally:
        page.remove_listener("dialog", _accept)


def row_selector(grid_selector: str, text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'{grid_selector} tr:has-text("{escaped}")'


async def clean_up_rows_by_text(
    page: Page,
    grid_selector: str,
    text: str,
    *,
    delete_selector: str = ".fa-trash",
    probe_timeout_ms: int = 5_000,
    settle_ms: int = 2_000,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> ConvergenceResult:
    """Delete every row of ``grid_selector`` containing ``text``.

    Confirmation dialogs are accepted automatically.
    """
    rows = row_selector(grid_selector, text)
    browser = Browser(page)

    # let the grid render before counting
    if not await is_visible(page, rows, probe_timeout_ms):
        logger.info("No rows matching %r in %s", text, grid_selector)

    async def _delete_first() -> None:
        await browser.click(f"{rows} >> nth=0 >> {delete_selector}")

    async with auto_accept_dialogs(page):
        return await delete_until_empty(
            page, rows, _delete_first, settle_ms=settle_ms, max_iterations=max_iterations,
        )


async def cancel_running_workflows(
    page: Page,
    open_selector: str,
    *,
    settle_ms: int = 2_000,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> ConvergenceResult:
    """Open a record in a new tab, cancel all of its running workflows, close the tab.

    Args:
        page: Page holding the link that opens the record.
        open_selector: Link that opens the record in a popup.
    """
    parent = Browser(page)

    async def _cancel_all(child: Page) -> ConvergenceResult:
        ui = Browser(child)
        await ui.click(WORKFLOWS_TAB)
        await ui.click(WORKFLOWS_IN_PROGRESS)
        await is_visible(child, WORKFLOW_ROW, 5_000)

        async def _cancel_first() -> None:
            first_row = f"{WORKFLOW_ROW} >> nth=0"
            await ui.hover(f"{first_row} >> {WORKFLOW_ROW_MENU}")
            await ui.click(f"{first_row} >> {WORKFLOW_CANCEL_ITEM}")
            await ui.click(WORKFLOW_CANCEL_CONFIRM)

        return await delete_until_empty(
            child, WORKFLOW_ROW, _cancel_first, settle_ms=settle_ms, max_iterations=max_iterations,
        )

    return await with_child_context(page, lambda: parent.click(open_selector), _cancel_all)
