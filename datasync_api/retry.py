from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
)

from datasync_api.errors import SyncCancelledError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    initial_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0

    def delay_for(self, attempt_number: int) -> float:
        """Delay slept after the given failed attempt (1-based)."""
        delay = self.initial_delay * (self.multiplier ** (attempt_number - 1))
        return min(self.max_delay, delay)


@dataclass(frozen=True)
class Attempt(Generic[T]):
    value: T | None
    error: BaseException | None
    attempts: int

    @property
    def ok(self) -> bool:
        return self.error is None


class _Stopped(Exception):
    pass


def call_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    retry_on: Callable[[BaseException], bool],
    should_stop: Callable[[], bool] | None = None,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Attempt[T]:
    """Call ``fn`` until it succeeds, raises a non-retryable error, or runs out of attempts.

    Never raises the wrapped function's errors; the outcome is returned as an
    :class:`Attempt`. ``should_stop`` is checked before every retry so a
    shutdown request interrupts the backoff instead of waiting it out.
    """
    attempts = 0

    def counted() -> T:
        nonlocal attempts
        attempts += 1
        return fn()

    def before_sleep(retry_state: RetryCallState) -> None:
        if should_stop is not None and should_stop():
            raise _Stopped()
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if error is not None and on_retry is not None:
            on_retry(retry_state.attempt_number, error, delay)

    retrying = Retrying(
        stop=stop_after_attempt(max(1, policy.max_attempts)),
        wait=lambda retry_state: policy.delay_for(retry_state.attempt_number),
        retry=retry_if_exception(retry_on),
        before_sleep=before_sleep,
        sleep=sleep,
        reraise=False,
    )

    try:
        value = retrying(counted)
    except _Stopped:
        return Attempt(
            value=None,
            error=SyncCancelledError("Stop requested while retrying"),
            attempts=attempts,
        )
    except RetryError as retry_error:
        last_error = retry_error.last_attempt.exception()
        return Attempt(value=None, error=last_error, attempts=attempts)
    except Exception as error:
        return Attempt(value=None, error=error, attempts=attempts)
    return Attempt(value=value, error=None, attempts=attempts)
