from __future__ import annotations

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


def with_retries(
    attempts: int,
    time_out: float,
    fn: Callable[[int], bool],
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Call fn(attempt_index) until it returns True, at most `attempts` times.

    Sleeps `time_out` seconds between attempts but never after the last one.
    Zero or negative attempts return False without calling fn. Exceptions
    raised by fn are not caught.
    """

    if attempts <= 0:
        logger.info("No attempts allowed; giving up")
        return False

    for i in range(attempts):
        logger.info("Running provisioner (try %s/%s)", i + 1, attempts)
        if fn(i):
            return True
        if time_out and i < attempts - 1:
            sleep(time_out)

    logger.info("All %s attempts failed", attempts)
    return False
