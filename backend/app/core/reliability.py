"""
Reliability Utilities.

Circuit breaker and retry-with-backoff for calls to external services.
"""

import time
import asyncio
import logging
from typing import Callable, Any, Tuple, Type

logger = logging.getLogger(__name__)


class CircuitOpenError(Exception):
    pass


class TransientError(Exception):
    """A failure worth retrying: timeouts, dropped connections, 429/5xx responses."""
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    If 'failure_threshold' failures occur, the circuit opens and rejects
    calls for 'reset_timeout' seconds. Only exceptions listed in
    'failure_exceptions' count as failures; business errors pass through
    without tripping the breaker.
    """
    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: int = 60,
        failure_exceptions: Tuple[Type[BaseException], ...] = (Exception,)
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failure_exceptions = failure_exceptions
        self.failures = 0
        self.last_failure_time = 0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.time() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError("Circuit is OPEN")

        try:
            result = await func(*args, **kwargs)
        except self.failure_exceptions:
            self.record_failure()
            raise

        if self.state == "HALF_OPEN":
            self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.time()
        if self.failures >= self.failure_threshold:
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


async def retry_async(
    func: Callable,
    *args,
    retries: int = 3,
    backoff_seconds: float = 0.5,
    retry_on: Tuple[Type[BaseException], ...] = (TransientError,),
    **kwargs
) -> Any:
    """
    Await func(*args, **kwargs), retrying on 'retry_on' exceptions.

    The delay doubles after each attempt. Exceptions outside 'retry_on' are
    raised immediately; after the last attempt the final error is re-raised.
    """
    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except retry_on as e:
            attempt += 1
            if attempt > retries:
                raise
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                "Transient failure in %s (attempt %d/%d), retrying in %.2fs: %s",
                getattr(func, "__name__", repr(func)), attempt, retries, delay, e
            )
            await asyncio.sleep(delay)


# Shared breaker for the payment processor
payment_circuit_breaker = CircuitBreaker(
    failure_threshold=5,
    reset_timeout=30,
    failure_exceptions=(TransientError,)
)
