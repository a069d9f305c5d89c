# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

import time
import functools
from typing import Callable

class RetryError(RuntimeError):
    pass


def retry(
    *,
    retries: int,
    delay: float,
    backoff: float = 1.0,
    max_delay: float | None = None,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Retry decorator for the daemon's startup API calls.

    The pause starts at `delay` and is multiplied by `backoff` after every
    failed attempt, capped at `max_delay`. Once `retries` attempts have
    failed a RetryError carrying the last error is raised.
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            pause = delay
            for attempt in range(1, retries + 1):
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    if on_retry:
                        on_retry(attempt, exc)
                    if attempt == retries:
                        raise RetryError(f"{fn.__name__} failed after {retries} attempts: {exc}") from exc
                    sleep(pause)
                    pause *= backoff
                    if max_delay is not None:
                        pause = min(pause, max_delay)
        return wrapper
    return decorator
