import pytest

from etcdboot.utils.retry import RetryError, retry


def test_retry_returns_first_success():
    calls = []

    @retry(retries=3, delay=0, retry_on=(ValueError,))
    def flaky():
        calls.append(1)
        if len(calls) < 2:
            raise ValueError("not yet")
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 2


def test_retry_gives_up_and_chains_last_error():
    seen = []

    @retry(retries=3, delay=0, retry_on=(ValueError,), on_retry=lambda n, e: seen.append(n))
    def never():
        raise ValueError("still down")

    with pytest.raises(RetryError) as ei:
        never()
    assert seen == [1, 2, 3]
    assert isinstance(ei.value.__cause__, ValueError)


def test_unlisted_errors_propagate_immediately():
    calls = []

    @retry(retries=5, delay=0, retry_on=(ValueError,))
    def broken():
        calls.append(1)
        raise KeyError("bad")

    with pytest.raises(KeyError):
        broken()
    assert len(calls) == 1
