"""Child page coordination: one combined wait, closed exactly once."""
from __future__ import annotations

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from fakes import FakePage
from ui_harness.child_context import child_context, close_child, with_child_context

pytestmark = pytest.mark.asyncio


def opener(parent: FakePage, child: FakePage, via_context: bool = False):
    async def trigger():
        parent.open_child(child, via_context=via_context)

    return trigger


async def test_child_is_yielded_ready_and_closed_afterwards():
    parent, child = FakePage(), FakePage(url="https://app.example.test/invoice/7")

    async with child_context(parent, opener(parent, child)) as page:
        assert page is child
        assert ("load_state", None, "domcontentloaded") in child.actions
        assert child.close_calls == 0

    assert child.close_calls == 1


async def test_child_is_closed_once_when_the_body_raises():
    parent, child = FakePage(), FakePage()

    with pytest.raises(RuntimeError, match="boom"):
        async with child_context(parent, opener(parent, child)):
            raise RuntimeError("boom")

    assert child.close_calls == 1


async def test_with_child_context_returns_the_operation_result():
    parent, child = FakePage(), FakePage(url="https://app.example.test/matter/3")

    async def read_url(page):
        return page.url

    result = await with_child_context(parent, opener(parent, child), read_url)

    assert result == "https://app.example.test/matter/3"
    assert child.close_calls == 1


async def test_with_child_context_closes_on_operation_error():
    parent, child = FakePage(), FakePage()

    async def fail(page):
        raise ValueError("bad record")

    with pytest.raises(ValueError):
        await with_child_context(parent, opener(parent, child), fail)
    assert child.close_calls == 1


async def test_page_source_watches_the_whole_browser_context():
    parent, child = FakePage(), FakePage()

    async with child_context(parent, opener(parent, child, via_context=True), source="page", wait_until="load"):
        pass

    assert ("load_state", None, "load") in child.actions
    assert child.close_calls == 1


async def test_child_that_closed_itself_is_not_closed_again():
    parent, child = FakePage(), FakePage()

    async with child_context(parent, opener(parent, child)) as page:
        await page.close()

    assert child.close_calls == 1


async def test_trigger_that_opens_nothing_times_out():
    parent = FakePage()

    async def noop():
        return None

    with pytest.raises(PlaywrightTimeout):
        async with child_context(parent, noop, timeout_ms=50):
            pass


async def test_unknown_source_is_rejected():
    parent, child = FakePage(), FakePage()
    with pytest.raises(ValueError):
        async with child_context(parent, opener(parent, child), source="frame"):
            pass


async def test_close_child_skips_closed_pages():
    page = FakePage()
    page.closed = True
    await close_child(page)
    assert page.close_calls == 0
