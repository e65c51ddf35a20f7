import logging
import time
from typing import Optional

from convergence.config.config import Config
from convergence.models import AlarmClient, AlarmState
from convergence.retry.policy import Sleeper, Verdict, poll, resolve_retry_policy


def get_alarm_state(
    alarm_name: str,
    client: AlarmClient,
    config: Optional[Config] = None,
    sleep: Sleeper = time.sleep,
) -> bool:
    """
    Polls the CloudWatch alarm until its first metric alarm record is OK.

    ALARM is fatal and fails on the spot. No records, INSUFFICIENT_DATA or
    any other state value sleeps once and tries again. The retry policy is
    looked up under the alarm name.
    """
    policy = resolve_retry_policy(alarm_name, config)

    def probe() -> Verdict:
        records = client.get_alarm(alarm_name)
        if not records:
            logging.debug("%s: no metric alarm returned" % alarm_name)
            return Verdict.RETRY
        state = records[0].state
        if state == AlarmState.OK:
            return Verdict.SUCCESS
        if state == AlarmState.ALARM:
            logging.error("%s: alarm is in ALARM state" % alarm_name)
            return Verdict.FAILURE
        logging.debug("%s: alarm state is %s" % (alarm_name, records[0].state_value))
        return Verdict.RETRY

    return poll(alarm_name, policy, probe, sleep)


def wait_until_alarm_state_ok(
    alarm_name: str,
    client: AlarmClient,
    config: Optional[Config] = None,
    sleep: Sleeper = time.sleep,
) -> bool:
    """
    Re-runs get_alarm_state until it reports OK, with a retry policy of its
    own.
    """
    # get_alarm_state returns False both for ALARM and for running out of
    # attempts, so an ALARM only ends the inner loop early and the next
    # outer attempt starts a fresh inner budget.
    policy = resolve_retry_policy(alarm_name, config)
    return poll(
        alarm_name,
        policy,
        lambda: Verdict.SUCCESS
        if get_alarm_state(alarm_name, client, config=config, sleep=sleep)
        else Verdict.RETRY,
        sleep,
    )
