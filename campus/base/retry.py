"""
Retry helper with exponential backoff and jitter.

Wrap flaky outbound calls (SMTP, HTTP) at the call site:

    retry_with_backoff(lambda: send_mail(...), max_attempts=3)
"""

import logging
import random
import smtplib
import socket
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (
    ConnectionError,
    TimeoutError,
    socket.timeout,
    smtplib.SMTPServerDisconnected,
    smtplib.SMTPConnectError,
)

JITTER_RATIO = 0.1


@dataclass
class RetryResult:
    success: bool
    data: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0


def default_should_retry(error: BaseException, attempt: int) -> bool:
    """Retry on connection/timeout errors and on 5xx responses"""
    if isinstance(error, RETRYABLE_ERRORS):
        return True
    status = getattr(error, "status", None)
    return isinstance(status, int) and 500 <= status < 600


def calculate_delay(
    attempt: int,
    initial_delay: float,
    max_delay: float,
    backoff_multiplier: float,
    rand: Callable[[], float] = random.random,
) -> float:
    exponential = initial_delay * backoff_multiplier ** (attempt - 1)
    capped = min(exponential, max_delay)
    return capped + capped * JITTER_RATIO * rand()


def retry_with_backoff(
    fn: Callable[[], Any],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_multiplier: float = 2.0,
    should_retry: Optional[Callable[[BaseException, int], bool]] = None,
    on_retry: Optional[Callable[[BaseException, int, float], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Call fn until it succeeds; re-raise the last error once retries run out"""
    should_retry = should_retry or default_should_retry
    attempt = 0

    while True:
        attempt += 1
        try:
            return fn()
        except Exception as error:
            if attempt >= max_attempts or not should_retry(error, attempt):
                raise

            delay = calculate_delay(
                attempt, initial_delay, max_delay, backoff_multiplier
            )
            if on_retry:
                on_retry(error, attempt, delay)
            logger.warning(
                "Retry attempt %s/%s after %.2fs: %s",
                attempt,
                max_attempts,
                delay,
                error,
            )
            sleep(delay)


def retry_with_result(fn: Callable[[], Any], **options) -> RetryResult:
    """Same as retry_with_backoff but reports failure in a RetryResult"""
    attempts = 0

    def counted():
        nonlocal attempts
        attempts += 1
        return fn()

    try:
        data = retry_with_backoff(counted, **options)
    except Exception as error:
        return RetryResult(success=False, error=error, attempts=attempts)
    return RetryResult(success=True, data=data, attempts=attempts)
