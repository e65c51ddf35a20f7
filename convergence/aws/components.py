import logging
from typing import Optional

import boto3

from convergence.aws.clients import AWSComponentClient, AWSInstanceClient, AWSStackClient
from convergence.config.config import Config

FULL_SET = "full-set"
CONSOLIDATED = "consolidated"

# component name -> stack architecture it lives in
COMPONENTS = {
    "author-primary": FULL_SET,
    "author-standby": FULL_SET,
    "publish": FULL_SET,
    "author-dispatcher": FULL_SET,
    "publish-dispatcher": FULL_SET,
    "chaos-monkey": FULL_SET,
    "orchestrator": FULL_SET,
    "author-publish-dispatcher": CONSOLIDATED,
}


def create_session(config: Config):
    return boto3.Session(
        aws_access_key_id=config.aws.get("access_key_id"),
        aws_secret_access_key=config.aws.get("secret_access_key"),
        aws_session_token=config.aws.get("session_token"),
        region_name=config.aws.get("region"),
        profile_name=config.aws.get("profile"),
    )


def init_component_client(
    config: Config, session=None
) -> tuple[AWSStackClient, Optional[AWSComponentClient]]:
    """
    Builds the stack client for aem.stack_prefix and the client of the
    component named by aem.component. Without a known component the
    second element is None and only stack level checks (alarms) can run.
    """
    if session is None:
        session = create_session(config)
    component = config.component
    architecture = COMPONENTS.get(component)
    if architecture is None:
        if component:
            logging.warning(
                "unknown component %s, only stack level checks are available"
                % component
            )
        return AWSStackClient(session, config.stack_prefix), None

    stack_client = AWSStackClient(session, config.stack_prefix, architecture)
    logging.info(
        "checking %s of %s stack %s" % (component, architecture, config.stack_prefix)
    )
    return stack_client, stack_client.component(component)


def init_instance_client(config: Config, session=None) -> AWSInstanceClient:
    """
    Builds the client of the single instance named by aem.id, used by the
    single instance provisioning check.
    """
    if not config.instance_id:
        raise ValueError("no instance id configured, set aem.id")
    if session is None:
        session = create_session(config)
    return AWSInstanceClient(session, config.instance_id)
