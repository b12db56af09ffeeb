"""
Bounded retry around remote image generation.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GenerationError(Exception):
    """Raised when every generation attempt has failed."""

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


def generate_with_retry(attempt: Callable[[int], T], max_retries: int = 3, base_delay: float = 2.0,
                        sleep: Callable[[float], None] = time.sleep) -> T:
    """
    Call attempt(n) for n = 1..max_retries until one succeeds.

    After a failed attempt n (other than the last) waits base_delay * n
    seconds. An exception whose recoverable attribute is False stops the
    loop at once.

    Args:
        attempt: Callable receiving the 1-based attempt number
        max_retries: Total number of attempts
        base_delay: Delay unit in seconds
        sleep: Sleep function, replaceable in tests

    Returns:
        Whatever the first successful attempt returned

    Raises:
        GenerationError: If all attempts fail or one fails unrecoverably
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    last_error: Optional[Exception] = None

    for n in range(1, max_retries + 1):
        try:
            logger.debug(f"Generation attempt {n}/{max_retries}")
            return attempt(n)
        except Exception as e:
            last_error = e
            logger.warning(f"Attempt {n} failed: {e}")

            # Unrecoverable provider errors end the loop
            if not getattr(e, "recoverable", True):
                raise GenerationError(
                    f"Image generation failed after {n} attempts: {e}",
                    attempts=n,
                    last_error=e,
                ) from e

            if n < max_retries:
                wait_time = base_delay * n
                logger.debug(f"Waiting {wait_time:g}s before retry...")
                sleep(wait_time)

    raise GenerationError(
        f"Image generation failed after {max_retries} attempts: {last_error}",
        attempts=max_retries,
        last_error=last_error,
    )
