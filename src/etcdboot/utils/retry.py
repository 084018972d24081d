# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/utils/retry.py

import functools
import logging
import time
from typing import Callable

log = logging.getLogger("etcdboot")


class RetryError(RuntimeError):
    pass


def retry(
    *,
    retries: int,
    delay: float,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
):
    """
    Retry decorator for steps that are safe to repeat (health checks, probes).

    retries: number of attempts
    delay: seconds between attempts
    retry_on: exception types to retry; anything else propagates at once
    on_retry: callback(attempt, exception), defaults to a log line
    """

    def _log_retry(attempt: int, exc: Exception) -> None:
        log.info("attempt %d/%d failed: %s", attempt, retries, exc)

    notify = on_retry or _log_retry

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            last_exc = None
            for attempt in range(1, retries + 1):
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    last_exc = exc
                    notify(attempt, exc)
                    if attempt == retries:
                        break
                    time.sleep(delay)
            raise RetryError(f"{fn.__name__} failed after {retries} attempts: {last_exc}") from last_exc
        return wrapper
    return decorator
