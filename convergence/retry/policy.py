from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from convergence.config.config import Config

DEFAULT_RETRY_COUNTER = 60
DEFAULT_RETRY_WAIT_IN_SECONDS = 60

Sleeper = Callable[[float], None]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    wait_interval: float


class Verdict(enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    RETRY = "retry"


def resolve_retry_policy(task: str, config: Optional[Config] = None) -> RetryPolicy:
    """
    Looks up retry_counter and retry_wait_in_seconds under the task section
    of the config. Each field falls back to 60 on its own, so a task can
    override just one of them.
    """
    retry_counter = None
    retry_wait = None
    if config is not None:
        retry_counter = config.get(task, "retry_counter")
        retry_wait = config.get(task, "retry_wait_in_seconds")
    if retry_counter is None:
        retry_counter = DEFAULT_RETRY_COUNTER
    if retry_wait is None:
        retry_wait = DEFAULT_RETRY_WAIT_IN_SECONDS
    return RetryPolicy(max_attempts=int(retry_counter), wait_interval=float(retry_wait))


def poll(
    task: str,
    policy: RetryPolicy,
    probe: Callable[[], Verdict],
    sleep: Sleeper = time.sleep,
) -> bool:
    """
    Calls probe up to policy.max_attempts times. SUCCESS and FAILURE end
    the loop at once, RETRY sleeps policy.wait_interval before the next
    attempt (the last attempt sleeps too). Running out of attempts is a
    failure, never an exception.
    """
    counter = 0
    while counter < policy.max_attempts:
        verdict = probe()
        counter += 1
        if verdict == Verdict.SUCCESS:
            logging.info("%s converged after %d attempt(s)" % (task, counter))
            return True
        if verdict == Verdict.FAILURE:
            logging.error("%s failed on attempt %d" % (task, counter))
            return False
        logging.debug(
            "%s not converged yet (attempt %d/%d), waiting %ss"
            % (task, counter, policy.max_attempts, policy.wait_interval)
        )
        sleep(policy.wait_interval)
    logging.error(
        "%s did not converge within %d attempt(s)" % (task, policy.max_attempts)
    )
    return False
