"""Cleanup flows built on the convergence loop."""
from __future__ import annotations

import pytest

from fakes import FakePage
from ui_harness.cleanup import (
    WORKFLOW_CANCEL_CONFIRM,
    WORKFLOW_ROW,
    auto_accept_dialogs,
    cancel_running_workflows,
    clean_up_rows_by_text,
    row_selector,
)
from ui_harness.convergence import ConvergenceOutcome

GRID = "#vendor-bills-grid"


@pytest.mark.asyncio
async def test_rows_matching_text_are_deleted_until_none_remain():
    page = FakePage()
    rows = row_selector(GRID, "ACME Supplies")
    page.elements[rows] = [True, True]
    page.on_action(f"{rows} >> nth=0 >> .fa-trash", lambda: page.remove_first(rows))

    result = await clean_up_rows_by_text(page, GRID, "ACME Supplies", settle_ms=0)

    assert result.outcome is ConvergenceOutcome.DONE
    assert result.removed == 2
    assert page.listeners["dialog"] == []


@pytest.mark.asyncio
async def test_rows_that_refuse_to_go_abort_the_cleanup():
    page = FakePage()
    rows = row_selector(GRID, "Stuck")
    page.elements[rows] = [True]

    result = await clean_up_rows_by_text(page, GRID, "Stuck", settle_ms=0)

    assert result.outcome is ConvergenceOutcome.ABORTED
    assert result.reason == "stalled"
    assert len(page.actions_of("click")) == 1


@pytest.mark.asyncio
async def test_no_matching_rows_is_done_immediately():
    page = FakePage()
    result = await clean_up_rows_by_text(page, GRID, "nothing", probe_timeout_ms=10, settle_ms=0)
    assert result.done
    assert page.actions_of("click") == []


def test_row_selector_escapes_quotes():
    assert row_selector("#grid", 'say "hi"') == '#grid tr:has-text("say \\"hi\\"")'


@pytest.mark.asyncio
async def test_dialog_listener_is_removed_on_error():
    page = FakePage()
    with pytest.raises(RuntimeError):
        async with auto_accept_dialogs(page):
            assert len(page.listeners["dialog"]) == 1
            raise RuntimeError("click failed")
    assert page.listeners["dialog"] == []


@pytest.mark.asyncio
async def test_running_workflows_are_cancelled_in_a_child_page():
    parent = FakePage()
    record = FakePage({WORKFLOW_ROW: [True, True, True]})
    parent.on_action("a.matter-link", lambda: parent.open_child(record))
    record.on_action(WORKFLOW_CANCEL_CONFIRM, lambda: record.remove_first(WORKFLOW_ROW))

    result = await cancel_running_workflows(parent, "a.matter-link", settle_ms=0)

    assert result.done
    assert result.removed == 3
    assert len(record.actions_of("hover")) == 3
    assert record.close_calls == 1
