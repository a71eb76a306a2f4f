"""Bounded delete-until-empty loop.

Cleanup flows repeatedly remove "the first matching row" until none are left.
The UI is slow and sometimes lies, so two independent guards bound the loop:

* stall detection: if the count did not strictly decrease since the previous
  pass, stop;
* an absolute cap on removal attempts, for UIs that keep reporting a
  positive, changing count without the visible set actually shrinking.

Neither guard raises. The outcome is reported in ``ConvergenceResult`` and the
calling flow decides whether an aborted cleanup should fail the run.

    Scanning --count == 0--------------------------> Done
    Scanning --0 < count < previous--> Removing --> Scanning
    Scanning --count >= previous or cap reached----> Aborted (warning)
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import anyio

from ui_harness.errors import ConvergenceStalled

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10

CountFn = Callable[[], Awaitable[int]]
ActionFn = Callable[[], Awaitable[Any]]


class ConvergenceOutcome(enum.Enum):
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class ConvergenceResult:
    """How a ``converge`` run ended.

    ``iterations`` counts calls to ``remove_one``. ``removed`` is the net
    decrease of the matching count from the first scan to the last, clamped
    at zero when the count grew, so it may include items that went away on
    their own.
    """

    outcome: ConvergenceOutcome
    reason: str
    iterations: int
    removed: int
    initial_count: int
    final_count: int

    @property
    def done(self) -> bool:
        return self.outcome is ConvergenceOutcome.DONE

    def raise_for_stall(self) -> "ConvergenceResult":
        """Escalate an aborted run into ``ConvergenceStalled``; return self otherwise."""
        if not self.done:
            raise ConvergenceStalled(
                f"Cleanup aborted ({self.reason}) with {self.final_count} item(s) left "
                f"after {self.iterations} removal(s)",
                result=self,
            )
        return self


async def converge(
    count: CountFn,
    remove_one: ActionFn,
    *,
    settle: Optional[ActionFn] = None,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    label: str = "cleanup",
) -> ConvergenceResult:
    """Remove items one at a time until ``count()`` reaches zero or stops shrinking.

    Args:
        count: Returns how many matching items are currently present.
        remove_one: Removes the first matching item.
        settle: Awaited after each removal (reload, refresh, timed wait).
        max_iterations: Absolute cap on removal attempts (>= 1).
        label: Name used in log lines.
    """
    if max_iterations < 1:
        raise ValueError("max_iterations must be at least 1")

    previous: Optional[int] = None
    initial: Optional[int] = None
    iterations = 0

    while True:
        current = await count()
        if initial is None:
            initial = current

        if current <= 0:
            logger.debug("%s: converged after %d removal(s)", label, iterations)
            return ConvergenceResult(ConvergenceOutcome.DONE, "empty", iterations, initial, initial, 0)

        if previous is not None and current >= previous:
            logger.warning(
                "%s: no progress (count %d -> %d), stopping after %d removal(s)",
                label, previous, current, iterations,
            )
            return ConvergenceResult(
                ConvergenceOutcome.ABORTED, "stalled", iterations, max(0, initial - current), initial, current
            )

        if iterations >= max_iterations:
            logger.warning(
                "%s: reached the cap of %d removal(s) with %d item(s) left",
                label, max_iterations, current,
            )
            return ConvergenceResult(
                ConvergenceOutcome.ABORTED, "max-iterations", iterations, max(0, initial - current), initial, current
            )

        await remove_one()
        iterations += 1
        if settle is not None:
            await settle()
        previous = current


async def delete_until_empty(
    scope: Any,
    selector: str,
    remove_one: ActionFn,
    *,
    settle_ms: int = 2000,
    settle: Optional[ActionFn] = None,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> ConvergenceResult:
    """Run ``converge`` against the elements matching ``selector`` in ``scope``.

    ``settle`` replaces the default timed wait of ``settle_ms`` when given.
    """
    locator = scope.locator(selector)

    async def _count() -> int:
        return await locator.count()

    async def _pause() -> None:
        await anyio.sleep(settle_ms / 1000)

    return await converge(
        _count,
        remove_one,
        settle=settle or _pause,
        max_iterations=max_iterations,
        label=selector,
    )
