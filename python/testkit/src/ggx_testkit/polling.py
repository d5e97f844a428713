"""
Convergence polling.

A single bounded-retry primitive used for every asynchronous wait in the
testkit: instance readiness, transaction finalization, chain events,
cross-system state sync and exec output matching.

A check is a zero-argument callable (plain or async) returning `None` for
"not yet" or any other value once the condition holds. Checks are invoked
on a fixed cadence; there is no backoff.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar, Union

from ggx_testkit.exceptions import ConnectionLost, ConvergenceTimeout, TimeoutFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

Check = Callable[[], Union[Optional[T], Awaitable[Optional[T]]]]


class Clock(Protocol):
    """Monotonic time source with a matching sleep"""

    def now(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class MonotonicClock:
    """Event-loop clock"""

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


async def _invoke(check: Check) -> Any:
    result = check()
    if inspect.isawaitable(result):
        result = await result
    return result


async def poll_until(
    check: Check,
    interval: float,
    deadline: Optional[float] = None,
    clock: Optional[Clock] = None,
    description: str = "condition",
) -> Any:
    """
    Invoke `check` every `interval` seconds until it yields a value.

    The check runs immediately; a value is returned without any extra wait.
    After each "not yet" the poller sleeps `interval` and then checks the
    elapsed time, so a timeout is never raised before `deadline` has passed.

    Check exceptions propagate unchanged. Wrap the check with
    `retry_on_error` to treat errors as "not yet".

    Args:
        check: Zero-argument callable returning None or a value
        interval: Seconds between attempts
        deadline: Total budget in seconds, None to wait indefinitely
        clock: Time source (defaults to the event-loop clock)
        description: What is being waited for, used in logs and errors

    Returns:
        First non-None value produced by the check

    Raises:
        ConvergenceTimeout: If the deadline elapsed first
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")
    if deadline is not None and deadline < 0:
        raise ValueError(f"deadline must not be negative, got {deadline}")

    clock = clock or MonotonicClock()
    start = clock.now()
    attempt = 0

    while True:
        attempt += 1
        value = await _invoke(check)
        if value is not None:
            logger.debug(
                "%s reached after %d attempt(s), %.1fs",
                description,
                attempt,
                clock.now() - start,
            )
            return value

        logger.debug("Waiting for %s (attempt %d)...", description, attempt)
        await clock.sleep(interval)

        elapsed = clock.now() - start
        if deadline is not None and elapsed >= deadline:
            raise ConvergenceTimeout(
                f"Timed out after {elapsed:.1f}s waiting for {description}",
                elapsed=elapsed,
                deadline=deadline,
            )


def until_true(predicate: Callable[[], Any]) -> Check:
    """Adapt a boolean predicate into a check yielding True or None"""

    async def check() -> Optional[bool]:
        return True if await _invoke(predicate) else None

    return check


def retry_on_error(check: Check, *errors: type[BaseException]) -> Check:
    """
    Treat the given check errors as "not yet".

    Use for transient conditions such as storage that does not exist yet at
    the latest block. `ConnectionLost` and timeout failures always propagate.

    Args:
        check: Check to wrap
        errors: Exception types to swallow (default: Exception)
    """
    retryable = errors or (Exception,)

    async def wrapped() -> Any:
        try:
            return await _invoke(check)
        except (ConnectionLost, TimeoutFailure):
            raise
        except retryable as e:
            logger.debug("Check error treated as not ready: %s", e)
            return None

    return wrapped


def abort_on_error(check: Check) -> Check:
    """Any check error aborts the poll immediately and propagates unchanged"""

    async def wrapped() -> Any:
        try:
            return await _invoke(check)
        except Exception as e:
            logger.error("Check failed, aborting poll: %s", e)
            raise

    return wrapped
