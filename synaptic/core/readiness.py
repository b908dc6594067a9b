"""Bounded, linear readiness polling.

A RetryPolicy describes the budget (attempts, fixed delay, optional deadline);
ReadinessPoller runs a check under that policy through tenacity. Sleep and the
clock are injectable so tests can drive the loop with a fake clock, and an
optional threading.Event cancels polling between attempts.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from tenacity import RetryCallState, Retrying, retry_if_result, stop_after_attempt, wait_fixed
from tenacity.stop import stop_base

from synaptic.console import Console
from synaptic.exceptions import ReadinessTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 30
    delay: float = 2.0
    timeout: Optional[float] = None

    @property
    def budget(self) -> float:
        """Worst-case sleep time before giving up."""
        waited = (self.max_attempts - 1) * self.delay
        if self.timeout is not None:
            return min(waited, self.timeout)
        return waited


class _stop_at_deadline(stop_base):
    """Stop once the injected clock passes the deadline."""

    def __init__(self, clock: Callable[[], float], deadline: float):
        self.clock = clock
        self.deadline = deadline

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self.clock() >= self.deadline


class _stop_on_cancel(stop_base):
    def __init__(self, event: threading.Event):
        self.event = event

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self.event.is_set()


def _not_ready(result: bool) -> bool:
    return not result


class ReadinessPoller:
    """Repeatedly invokes a readiness check until it passes or the budget runs out."""

    def __init__(
        self,
        console: Console,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.console = console
        self.sleep = sleep
        self.clock = clock

    def wait(
        self,
        name: str,
        check: Callable[[], bool],
        policy: RetryPolicy,
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        """Return True once check() passes, False when attempts, time or cancel run out."""
        stop = stop_after_attempt(policy.max_attempts)
        if policy.timeout is not None:
            stop = stop | _stop_at_deadline(self.clock, self.clock() + policy.timeout)
        if cancel is not None:
            stop = stop | _stop_on_cancel(cancel)

        def _report(retry_state: RetryCallState) -> None:
            self.console.info(
                f"Waiting for {name}... (attempt {retry_state.attempt_number}/{policy.max_attempts})"
            )

        retrying = Retrying(
            stop=stop,
            wait=wait_fixed(policy.delay),
            retry=retry_if_result(_not_ready),
            after=_report,
            sleep=self.sleep,
            retry_error_callback=lambda retry_state: False,
        )

        if retrying(self._safe_check, name, check):
            self.console.success(f"{name} is ready!")
            return True
        logger.debug("%s not ready within %.1fs budget", name, policy.budget)
        return False

    def require(
        self,
        name: str,
        check: Callable[[], bool],
        policy: RetryPolicy,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Like wait(), but a miss raises ReadinessTimeout."""
        if not self.wait(name, check, policy, cancel):
            raise ReadinessTimeout(name, policy.max_attempts)

    @staticmethod
    def _safe_check(name: str, check: Callable[[], bool]) -> bool:
        try:
            return bool(check())
        except Exception as e:
            logger.debug("Readiness check for %s raised: %s", name, e)
            return False
