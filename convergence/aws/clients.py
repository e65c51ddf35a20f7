import logging
from typing import Optional

from convergence.models import AlarmRecord, HealthState, Tag

STACK_PREFIX_TAG = "StackPrefix"
COMPONENT_TAG = "Component"

# classic ELB describe_tags accepts at most 20 names per call
ELB_TAGS_BATCH = 20

LIVE_INSTANCE_STATES = ["pending", "running", "stopping", "stopped", "shutting-down"]


def _tags_match(tags, expected: dict) -> bool:
    values = {tag["Key"]: tag["Value"] for tag in tags or []}
    return all(values.get(key) == value for key, value in expected.items())


def _to_tags(aws_tags) -> list[Tag]:
    return [Tag(key=tag["Key"], value=tag["Value"]) for tag in aws_tags or []]


def describe_alarm(cloudwatch, name: str) -> list[AlarmRecord]:
    try:
        response = cloudwatch.describe_alarms(AlarmNames=[name])
    except Exception as e:
        logging.error(
            "Failed to describe CloudWatch alarm %s. Encountered following "
            "exception: %s." % (name, e)
        )
        raise RuntimeError(str(e))
    return [
        AlarmRecord(alarm_name=alarm["AlarmName"], state_value=alarm["StateValue"])
        for alarm in response.get("MetricAlarms", [])
    ]


class AWSStackClient:
    """
    Entry point for one AEM stack, identified by its StackPrefix tag.
    architecture is either "full-set" or "consolidated".
    """

    def __init__(self, session, stack_prefix: str, architecture: str = "full-set"):
        self.session = session
        self.stack_prefix = stack_prefix
        self.architecture = architecture
        self.cloudwatch = session.client("cloudwatch")

    def component(self, component: str) -> "AWSComponentClient":
        return AWSComponentClient(self.session, self.stack_prefix, component)

    def get_alarm(self, name: str) -> list[AlarmRecord]:
        return describe_alarm(self.cloudwatch, name)


class AWSComponentClient:
    """
    Health and provisioning state of one component of a stack. The load
    balancer, autoscaling group and instances are found through their
    StackPrefix and Component tags.
    """

    def __init__(self, session, stack_prefix: str, component: str):
        self.stack_prefix = stack_prefix
        self.component = component
        self.ec2 = session.client("ec2")
        self.elb = session.client("elb")
        self.autoscaling = session.client("autoscaling")
        self.cloudwatch = session.client("cloudwatch")

    @property
    def expected_tags(self) -> dict:
        return {STACK_PREFIX_TAG: self.stack_prefix, COMPONENT_TAG: self.component}

    def find_load_balancer(self) -> Optional[str]:
        try:
            paginator = self.elb.get_paginator("describe_load_balancers")
            names = [
                description["LoadBalancerName"]
                for page in paginator.paginate()
                for description in page.get("LoadBalancerDescriptions", [])
            ]
            for i in range(0, len(names), ELB_TAGS_BATCH):
                response = self.elb.describe_tags(
                    LoadBalancerNames=names[i : i + ELB_TAGS_BATCH]
                )
                for description in response.get("TagDescriptions", []):
                    if _tags_match(description.get("Tags"), self.expected_tags):
                        return description["LoadBalancerName"]
        except Exception as e:
            logging.error(
                "Failed to look up the load balancer of %s/%s. Encountered "
                "following exception: %s." % (self.stack_prefix, self.component, e)
            )
            raise RuntimeError(str(e))
        return None

    def _instance_states(self, load_balancer: str) -> list[str]:
        try:
            response = self.elb.describe_instance_health(LoadBalancerName=load_balancer)
        except Exception as e:
            logging.error(
                "Failed to describe instance health of load balancer %s. "
                "Encountered following exception: %s." % (load_balancer, e)
            )
            raise RuntimeError(str(e))
        return [state["State"] for state in response.get("InstanceStates", [])]

    def health_state(self) -> HealthState:
        load_balancer = self.find_load_balancer()
        if load_balancer is None:
            return HealthState.MISCONFIGURED
        states = self._instance_states(load_balancer)
        if not states:
            return HealthState.MISCONFIGURED
        if all(state == "InService" for state in states):
            return HealthState.READY
        return HealthState.NOT_READY

    def health_state_elb(self) -> HealthState:
        load_balancer = self.find_load_balancer()
        if load_balancer is None:
            return HealthState.MISCONFIGURED
        if "InService" in self._instance_states(load_balancer):
            return HealthState.READY
        return HealthState.NOT_READY

    def describe_instances(self, states: list[str]) -> list[dict]:
        filters = [
            {"Name": "tag:%s" % key, "Values": [value]}
            for key, value in self.expected_tags.items()
        ]
        filters.append({"Name": "instance-state-name", "Values": states})
        try:
            paginator = self.ec2.get_paginator("describe_instances")
            return [
                instance
                for page in paginator.paginate(Filters=filters)
                for reservation in page.get("Reservations", [])
                for instance in reservation.get("Instances", [])
            ]
        except Exception as e:
            logging.error(
                "Failed to describe instances of %s/%s. Encountered following "
                "exception: %s." % (self.stack_prefix, self.component, e)
            )
            raise RuntimeError(str(e))

    def healthy(self) -> bool:
        instances = self.describe_instances(LIVE_INSTANCE_STATES)
        if not instances:
            return False
        return all(instance["State"]["Name"] == "running" for instance in instances)

    def find_autoscaling_group(self) -> Optional[dict]:
        try:
            paginator = self.autoscaling.get_paginator("describe_auto_scaling_groups")
            for page in paginator.paginate():
                for group in page.get("AutoScalingGroups", []):
                    if _tags_match(group.get("Tags"), self.expected_tags):
                        return group
        except Exception as e:
            logging.error(
                "Failed to describe autoscaling groups of %s/%s. Encountered "
                "following exception: %s." % (self.stack_prefix, self.component, e)
            )
            raise RuntimeError(str(e))
        return None

    def healthy_asg(self) -> bool:
        group = self.find_autoscaling_group()
        if group is None:
            logging.debug(
                "no autoscaling group found for %s/%s"
                % (self.stack_prefix, self.component)
            )
            return False
        desired = group.get("DesiredCapacity", 0)
        in_service = [
            instance
            for instance in group.get("Instances", [])
            if instance.get("LifecycleState") == "InService"
            and instance.get("HealthStatus") == "Healthy"
        ]
        return desired > 0 and len(in_service) == desired

    def get_tags(self) -> list[list[Tag]]:
        return [
            _to_tags(instance.get("Tags"))
            for instance in self.describe_instances(["running"])
        ]

    def get_alarm(self, name: str) -> list[AlarmRecord]:
        return describe_alarm(self.cloudwatch, name)


class AWSInstanceClient:
    """Tags and run state of a single EC2 instance."""

    def __init__(self, session, instance_id: str):
        self.instance_id = instance_id
        self.ec2 = session.client("ec2")

    def get_tags(self) -> list[Tag]:
        try:
            response = self.ec2.describe_tags(
                Filters=[{"Name": "resource-id", "Values": [self.instance_id]}]
            )
        except Exception as e:
            logging.error(
                "Failed to describe tags of instance %s. Encountered following "
                "exception: %s." % (self.instance_id, e)
            )
            raise RuntimeError(str(e))
        return _to_tags(response.get("Tags"))

    def healthy(self) -> bool:
        try:
            response = self.ec2.describe_instances(InstanceIds=[self.instance_id])
        except Exception as e:
            logging.error(
                "Failed to describe instance %s. Encountered following "
                "exception: %s." % (self.instance_id, e)
            )
            raise RuntimeError(str(e))
        instances = [
            instance
            for reservation in response.get("Reservations", [])
            for instance in reservation.get("Instances", [])
        ]
        return bool(instances) and instances[0]["State"]["Name"] == "running"
