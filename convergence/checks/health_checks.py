import logging
import time
from typing import Callable, Optional

from convergence.config.config import Config
from convergence.models import HealthClient, HealthState
from convergence.retry.policy import Sleeper, Verdict, poll, resolve_retry_policy


def _wait_for_ready_state(
    task: str,
    read_state: Callable[[], HealthState],
    config: Optional[Config],
    sleep: Sleeper,
) -> bool:
    policy = resolve_retry_policy(task, config)
    # a misconfigured balancer is only looked for on the first read,
    # later misconfigured reads count as not ready
    first_state = read_state()
    if first_state == HealthState.MISCONFIGURED:
        logging.error("%s: load balancer is misconfigured" % task)
        return False

    pending = [first_state]

    def probe() -> Verdict:
        state = pending.pop() if pending else read_state()
        logging.debug("%s: health state is %s" % (task, state.value))
        if state == HealthState.READY:
            return Verdict.SUCCESS
        return Verdict.RETRY

    return poll(task, policy, probe, sleep)


def elb_instances_healthy(
    task: str,
    client: HealthClient,
    config: Optional[Config] = None,
    sleep: Sleeper = time.sleep,
) -> bool:
    """
    Waits until the instances behind the component's load balancer are
    all in service.
    """
    return _wait_for_ready_state(task, client.health_state, config, sleep)


def elb_healthy(
    task: str,
    client: HealthClient,
    config: Optional[Config] = None,
    sleep: Sleeper = time.sleep,
) -> bool:
    """
    Waits until the component's load balancer itself reports ready.
    """
    return _wait_for_ready_state(task, client.health_state_elb, config, sleep)


def _wait_for_true(
    task: str, check: Callable[[], bool], config: Optional[Config], sleep: Sleeper
) -> bool:
    policy = resolve_retry_policy(task, config)
    return poll(
        task,
        policy,
        lambda: Verdict.SUCCESS if check() is True else Verdict.RETRY,
        sleep,
    )


def instances_healthy(
    task: str,
    client: HealthClient,
    config: Optional[Config] = None,
    sleep: Sleeper = time.sleep,
) -> bool:
    return _wait_for_true(task, client.healthy, config, sleep)


def asg_healthy(
    task: str,
    client: HealthClient,
    config: Optional[Config] = None,
    sleep: Sleeper = time.sleep,
) -> bool:
    return _wait_for_true(task, client.healthy_asg, config, sleep)
