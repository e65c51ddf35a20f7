#!/usr/bin/env python
import logging
import optparse
import sys
import time

from colorlog import ColoredFormatter
from krkn_lib.utils import log_exception

from convergence.aws.components import (
    create_session,
    init_component_client,
    init_instance_client,
)
from convergence.checks.alarm_checks import get_alarm_state, wait_until_alarm_state_ok
from convergence.checks.health_checks import (
    asg_healthy,
    elb_healthy,
    elb_instances_healthy,
    instances_healthy,
)
from convergence.checks.provisioning_checks import (
    successful_provisioned_component,
    successful_provisioned_components,
)
from convergence.config.config import read_config

COMPONENT_CHECKS = {
    "elb-instances-healthy": elb_instances_healthy,
    "elb-healthy": elb_healthy,
    "instances-healthy": instances_healthy,
    "asg-healthy": asg_healthy,
}
ALARM_CHECKS = {
    "alarm-state": get_alarm_state,
    "alarm-state-ok": wait_until_alarm_state_ok,
}
INSTANCE_CHECK = "provisioned-component"
FLEET_CHECK = "provisioned-components"
CHECKS = sorted(
    list(COMPONENT_CHECKS) + list(ALARM_CHECKS) + [INSTANCE_CHECK, FLEET_CHECK]
)


def run_check(
    options,
    config,
    stack_client,
    component_client,
    instance_client=None,
    sleep=time.sleep,
) -> bool:
    check = options.check
    task = options.task or check
    if check in ALARM_CHECKS:
        if not options.alarm:
            raise ValueError("check %s needs an alarm name (-a/--alarm)" % check)
        return ALARM_CHECKS[check](
            options.alarm, stack_client, config=config, sleep=sleep
        )
    if check == INSTANCE_CHECK:
        if instance_client is None:
            raise ValueError("check %s needs an instance id, set aem.id" % check)
        return successful_provisioned_component(
            task, instance_client, config=config, sleep=sleep
        )
    if component_client is None:
        raise ValueError(
            "check %s needs a known component, set aem.component" % check
        )
    if check == FLEET_CHECK:
        return successful_provisioned_components(
            task,
            component_client,
            skip_failed_state=options.skip_failed_state,
            config=config,
            sleep=sleep,
        )
    return COMPONENT_CHECKS[check](task, component_client, config=config, sleep=sleep)


# Main function
def main(options, session=None) -> int:
    if options.check not in CHECKS:
        logging.error(
            "unknown check %s, valid checks are: %s"
            % (options.check, ", ".join(CHECKS))
        )
        return 2

    config = read_config(options.cfg)
    logging.info(
        "Starting %s for stack %s" % (options.check, config.stack_prefix)
    )
    start_time = time.time()
    try:
        if session is None:
            session = create_session(config)
        stack_client, component_client = init_component_client(config, session)
        instance_client = None
        if options.check == INSTANCE_CHECK:
            instance_client = init_instance_client(config, session)
        converged = run_check(
            options, config, stack_client, component_client, instance_client
        )
    except Exception:
        log_exception(options.check)
        return 1

    elapsed = time.time() - start_time
    if not converged:
        logging.error("%s failed after %.1fs" % (options.check, elapsed))
        return 1
    logging.info("%s passed after %.1fs" % (options.check, elapsed))
    return 0


def build_parser():
    parser = optparse.OptionParser(
        usage="%prog [options]\n\nChecks: " + ", ".join(CHECKS),
    )
    parser.add_option(
        "-c",
        "--config",
        dest="cfg",
        help="config location, defaults to $INSPEC_AEM_AWS_CONF or ./conf/aem-aws.yml",
        default=None,
    )
    parser.add_option(
        "-k",
        "--check",
        dest="check",
        help="check to run",
        default=None,
    )
    parser.add_option(
        "-t",
        "--task",
        dest="task",
        help="task name used to look up the retry settings, defaults to the check name",
        default=None,
    )
    parser.add_option(
        "-a",
        "--alarm",
        dest="alarm",
        help="CloudWatch alarm name for the alarm checks",
        default=None,
    )
    parser.add_option(
        "--skip-failed-state",
        dest="skip_failed_state",
        action="store_true",
        help="do not fail fast when an instance reports a Failed provisioning state",
        default=False,
    )
    parser.add_option(
        "-o",
        "--output",
        dest="output",
        help="output report location",
        default=None,
    )
    parser.add_option(
        "-d",
        "--debug",
        dest="debug",
        action="store_true",
        help="enable debug logging",
        default=False,
    )
    return parser


def setup_logging(options):
    colored = ColoredFormatter(
        "%(asctime)s [%(log_color)s%(levelname)s%(reset)s] %(message)s",
        log_colors={'DEBUG': 'white', 'INFO': 'white', 'WARNING': 'yellow', 'ERROR': 'red', 'CRITICAL': 'bold_red'},
        reset=True, style='%'
    )
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(colored)
    handlers = [stream_handler]
    if options.output:
        file_handler = logging.FileHandler(options.output, mode="w")
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        handlers.append(file_handler)
    logging.basicConfig(
        level=logging.DEBUG if options.debug else logging.INFO,
        handlers=handlers,
    )


if __name__ == "__main__":
    (options, args) = build_parser().parse_args()
    setup_logging(options)
    if options.check is None:
        logging.error("Please select a check with -k/--check")
        sys.exit(2)
    sys.exit(main(options))
