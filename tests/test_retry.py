import smtplib

import pytest

from base.retry import (
    calculate_delay,
    default_should_retry,
    retry_with_backoff,
    retry_with_result,
)


class ServerError(Exception):
    def __init__(self, status):
        super().__init__(f"status {status}")
        self.status = status


def failing(times, error=ConnectionError("down"), result="ok"):
    attempts = []

    def fn():
        attempts.append(1)
        if len(attempts) <= times:
            raise error
        return result

    return fn, attempts


def test_returns_after_transient_failures():
    fn, attempts = failing(2)
    sleeps = []
    assert retry_with_backoff(fn, max_attempts=3, sleep=sleeps.append) == "ok"
    assert len(attempts) == 3
    assert len(sleeps) == 2


def test_gives_up_after_max_attempts():
    fn, attempts = failing(10)
    with pytest.raises(ConnectionError):
        retry_with_backoff(fn, max_attempts=4, sleep=lambda _: None)
    assert len(attempts) == 4


def test_does_not_retry_client_errors():
    fn, attempts = failing(1, error=ValueError("bad input"))
    with pytest.raises(ValueError):
        retry_with_backoff(fn, sleep=lambda _: None)
    assert len(attempts) == 1


def test_on_retry_is_told_about_each_attempt():
    fn, _ = failing(2)
    seen = []
    retry_with_backoff(
        fn,
        sleep=lambda _: None,
        on_retry=lambda error, attempt, delay: seen.append(attempt),
    )
    assert seen == [1, 2]


@pytest.mark.parametrize("attempt", range(1, 10))
def test_delay_never_exceeds_cap_plus_jitter(attempt):
    delay = calculate_delay(attempt, 1.0, 10.0, 2.0, rand=lambda: 1.0)
    assert delay <= 11.0
    assert calculate_delay(attempt, 1.0, 10.0, 2.0, rand=lambda: 0.0) == min(
        2.0 ** (attempt - 1), 10.0
    )


@pytest.mark.parametrize(
    "error,expected",
    [
        (ConnectionError(), True),
        (TimeoutError(), True),
        (smtplib.SMTPServerDisconnected(), True),
        (ServerError(503), True),
        (ServerError(404), False),
        (KeyError("x"), False),
    ],
)
def test_default_should_retry(error, expected):
    assert default_should_retry(error, 1) is expected


def test_retry_with_result_reports_failure():
    fn, _ = failing(5)
    result = retry_with_result(fn, max_attempts=2, sleep=lambda _: None)
    assert not result.success
    assert isinstance(result.error, ConnectionError)
    assert result.attempts == 2


def test_retry_with_result_reports_success():
    fn, _ = failing(1, result=42)
    result = retry_with_result(fn, sleep=lambda _: None)
    assert result.success
    assert result.data == 42
    assert result.attempts == 2
