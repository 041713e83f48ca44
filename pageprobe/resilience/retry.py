"""Shared retry policy for cancellable HTTP operations.

This module provides a reusable RetryPolicy class that retries transient
transport failures with a fixed (or per-attempt) delay. Every attempt and
every wait goes through the job's CancelToken so a stop request ends the
retry loop immediately.

Example:
    Three retries two seconds apart:
        >>> policy = RetryPolicy(max_retries=3, delays=[2.0])
        >>> response = await policy.execute_async(
        ...     lambda: client.get(url), token, operation_name="fetch"
        ... )
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from pageprobe.core.cancellation import CancelToken

T = TypeVar("T")

# TransportError subclasses that a retry cannot fix
NON_RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (httpx.UnsupportedProtocol,)


class RetryPolicy:
    """Configurable, cancellable retry policy.

    Attributes:
        max_retries: Retries after the first attempt (total attempts is
                     ``max_retries + 1``)
        delays: Delay values in seconds for each retry; the last value is
                reused once the list runs out (default: [2.0])
        exhausted_log_level: Level used to log the final failure
    """

    def __init__(
        self,
        max_retries: int = 3,
        delays: list[float] | None = None,
        exhausted_log_level: int = logging.ERROR,
    ):
        """Initialize retry policy.

        Args:
            max_retries: Retries after the first attempt
            delays: Optional custom delay sequence (seconds)
            exhausted_log_level: Level used to log the final failure
        """
        self.max_retries = max_retries
        self.delays = delays or [2.0]
        self.exhausted_log_level = exhausted_log_level
        self._logger = logging.getLogger(__name__)

    @property
    def max_attempts(self) -> int:
        """Total number of attempts including the first one."""
        return self.max_retries + 1

    async def execute_async(
        self,
        operation: Callable[[], Awaitable[T]],
        token: CancelToken,
        retryable_exceptions: tuple[type[Exception], ...] | None = None,
        operation_name: str = "operation",
    ) -> T:
        """Execute async operation with retry logic.

        Args:
            operation: Async callable to execute, invoked once per attempt
            token: Cancellation token checked before every attempt and
                   raced against every attempt and wait
            retryable_exceptions: Tuple of exception types to retry
                                 (default: httpx transport errors)
                                 except NON_RETRYABLE_EXCEPTIONS, which
                                 always propagate on the first failure
            operation_name: Human-readable operation name for logging

        Returns:
            Result from successful operation execution

        Raises:
            CrawlCancelledError: If the token fires during an attempt or wait
            Exception: Last exception if all attempts are exhausted
        """
        if retryable_exceptions is None:
            retryable_exceptions = (httpx.TransportError,)

        last_exception: Exception | None = None

        for attempt in range(self.max_attempts):
            token.raise_if_cancelled()
            try:
                return await token.run(operation())
            except NON_RETRYABLE_EXCEPTIONS:
                raise
            except retryable_exceptions as e:
                last_exception = e

                if attempt < self.max_retries:
                    delay = self._get_delay(attempt)
                    self._logger.warning(
                        "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                        operation_name,
                        attempt + 1,
                        self.max_attempts,
                        delay,
                        e,
                    )
                    await token.sleep(delay)
                else:
                    self._logger.log(
                        self.exhausted_log_level,
                        "%s failed after %d attempts: %s",
                        operation_name,
                        self.max_attempts,
                        e,
                    )

        # All attempts exhausted
        if last_exception:
            raise last_exception
        raise RuntimeError(f"{operation_name} failed unexpectedly")

    def _get_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        return self.delays[min(attempt, len(self.delays) - 1)]
