from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Iterable, Optional, Tuple

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
)

from .browser import AttemptResult
from .config import Config
from .utils import NavigationError

logger = logging.getLogger(__name__)

AttemptFn = Callable[[int], Awaitable[AttemptResult]]


def backoff_delay_s(
    attempt: int,
    *,
    base_delay_ms: int,
    jitter_ms: int,
    rng: Callable[[], float] = random.random,
) -> float:
    """
    Seconds to sleep before `attempt` (1-based). Attempt 1 never waits;
    attempt n waits base * 2**(n-1) plus jitter drawn from [0, jitter_ms).
    """
    if attempt <= 1:
        return 0.0
    base = base_delay_ms * (2 ** (attempt - 1))
    jitter = rng() * jitter_ms if jitter_ms > 0 else 0.0
    return (base + jitter) / 1000.0


class RetryController:
    """
    Bounded attempt loop around one resolution.

    Stops on a resolved URL, on any status outside `retry_statuses` (a 200
    without a link is a layout problem, not a transient one), or when the
    budget runs out. Only the last AttemptResult is surfaced; each attempt
    is logged for tracing.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 4,
        base_delay_ms: int = 800,
        jitter_ms: int = 400,
        retry_statuses: Iterable[int] = (429, 503),
        retry_navigation_errors: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay_ms = max(0, int(base_delay_ms))
        self.jitter_ms = max(0, int(jitter_ms))
        self.retry_statuses = frozenset(int(s) for s in retry_statuses)
        self.retry_navigation_errors = bool(retry_navigation_errors)
        self._sleep = sleep
        self._rng = rng

    @classmethod
    def from_config(cls, cfg: Config, **overrides) -> "RetryController":
        kwargs = dict(
            max_attempts=cfg.retry_max_attempts,
            base_delay_ms=cfg.retry_base_delay_ms,
            jitter_ms=cfg.retry_jitter_ms,
            retry_statuses=cfg.retry_statuses,
            retry_navigation_errors=cfg.retry_navigation_errors,
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    def should_retry(self, result: Optional[AttemptResult]) -> bool:
        if result is None or result.resolved_url:
            return False
        return result.http_status in self.retry_statuses

    def _wait(self, retry_state: RetryCallState) -> float:
        # tenacity asks after attempt n failed; the next one is n + 1
        return backoff_delay_s(
            retry_state.attempt_number + 1,
            base_delay_ms=self.base_delay_ms,
            jitter_ms=self.jitter_ms,
            rng=self._rng,
        )

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            reason = repr(outcome.exception())
        elif outcome is not None:
            reason = f"status={outcome.result().http_status}"
        else:
            reason = "unknown"
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Attempt %d/%d not resolved (%s); retrying in %.2fs",
            retry_state.attempt_number, self.max_attempts, reason, delay,
        )

    def _retrying(self) -> AsyncRetrying:
        retry = retry_if_result(self.should_retry)
        if self.retry_navigation_errors:
            retry = retry | retry_if_exception_type(NavigationError)
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry,
            sleep=self._sleep,
            before_sleep=self._before_sleep,
            # budget exhausted: hand back the last result, or re-raise its error
            retry_error_callback=lambda rs: rs.outcome.result(),
        )

    async def run(self, attempt_fn: AttemptFn) -> Tuple[AttemptResult, int]:
        """
        Call `attempt_fn(attempt_number)` until a stop condition.
        Returns (last result, attempts made).
        """
        attempts = 0

        async def _one() -> AttemptResult:
            nonlocal attempts
            attempts += 1
            result = await attempt_fn(attempts)
            logger.info(
                "Attempt %d/%d status=%s method=%s resolved=%s",
                attempts, self.max_attempts, result.http_status, result.method,
                bool(result.resolved_url),
            )
            return result

        result = await self._retrying()(_one)
        return result, attempts
