import pytest

from sriovfec.utils.retry import RetryError, retry


def test_retries_with_backoff_until_success():
    calls, sleeps, seen = [], [], []

    @retry(retries=4, delay=2, backoff=2, max_delay=5, retry_on=(ValueError,),
           on_retry=lambda n, e: seen.append(n), sleep=sleeps.append)
    def flaky():
        calls.append(1)
        if len(calls) < 4:
            raise ValueError("not yet")
        return "ok"

    assert flaky() == "ok"
    assert sleeps == [2, 4, 5]
    assert seen == [1, 2, 3]


def test_gives_up_with_cause():
    @retry(retries=2, delay=0, retry_on=(ValueError,), sleep=lambda s: None)
    def always():
        raise ValueError("nope")

    with pytest.raises(RetryError, match="always failed after 2 attempts: nope") as info:
        always()
    assert isinstance(info.value.__cause__, ValueError)


def test_other_exceptions_propagate():
    @retry(retries=5, delay=0, retry_on=(ValueError,), sleep=lambda s: None)
    def wrong():
        raise KeyError("x")

    with pytest.raises(KeyError):
        wrong()
