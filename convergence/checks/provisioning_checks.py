import logging
import time
from typing import Iterable, Optional

from convergence.config.config import Config
from convergence.models import (
    COMPONENT_INIT_STATUS_TAG,
    FleetClient,
    ProvisionStatus,
    Tag,
    TagClient,
)
from convergence.retry.policy import Sleeper, Verdict, poll, resolve_retry_policy


def component_init_statuses(tags: Iterable[Tag]) -> list[ProvisionStatus]:
    return [
        ProvisionStatus.parse(tag.value)
        for tag in tags
        if tag.key == COMPONENT_INIT_STATUS_TAG
    ]


def successful_provisioned_component(
    task: str,
    client: TagClient,
    config: Optional[Config] = None,
    sleep: Sleeper = time.sleep,
) -> bool:
    """
    Waits for a single instance's ComponentInitStatus tag to turn Success.
    A Failed status fails immediately. Missing tags, Running and unknown
    values are retried.
    """
    policy = resolve_retry_policy(task, config)

    def probe() -> Verdict:
        tags = client.get_tags()
        if not tags:
            logging.debug("%s: no tags received" % task)
            return Verdict.RETRY
        statuses = component_init_statuses(tags)
        if not statuses:
            logging.debug("%s: %s tag not found" % (task, COMPONENT_INIT_STATUS_TAG))
            return Verdict.RETRY
        # last tag wins
        status = statuses[-1]
        logging.debug("%s: component init status is %s" % (task, status.value))
        if status == ProvisionStatus.FAILED:
            logging.error("%s: component provisioning failed" % task)
            return Verdict.FAILURE
        if status == ProvisionStatus.SUCCESS:
            return Verdict.SUCCESS
        return Verdict.RETRY

    return poll(task, policy, probe, sleep)


def successful_provisioned_components(
    task: str,
    client: FleetClient,
    skip_failed_state: bool = False,
    config: Optional[Config] = None,
    sleep: Sleeper = time.sleep,
) -> bool:
    """
    Waits until every instance of the component that reported tags is in
    Success and the autoscaling group is healthy in that same attempt.

    client needs both get_tags() (one tag list per instance) and
    healthy_asg(). A Failed instance fails the check immediately unless
    skip_failed_state is set, in which case it is simply never counted as
    a success.
    """
    policy = resolve_retry_policy(task, config)

    def probe() -> Verdict:
        instances_tags = client.get_tags()
        if not instances_tags:
            logging.debug("%s: no tags received" % task)
            return Verdict.RETRY
        instances_count = len([tags for tags in instances_tags if tags])
        if instances_count == 0:
            logging.debug("%s: no instance returned tags" % task)
            return Verdict.RETRY
        statuses = []
        for tags in instances_tags:
            statuses.extend(component_init_statuses(tags or []))

        if ProvisionStatus.FAILED in statuses and not skip_failed_state:
            logging.error("%s: provisioning failed on at least one instance" % task)
            return Verdict.FAILURE

        success_count = statuses.count(ProvisionStatus.SUCCESS)
        logging.debug(
            "%s: %d of %d instance(s) provisioned"
            % (task, success_count, instances_count)
        )
        if success_count == instances_count and client.healthy_asg() is True:
            return Verdict.SUCCESS
        return Verdict.RETRY

    return poll(task, policy, probe, sleep)
