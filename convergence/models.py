from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol, Sequence, Union


class HealthState(enum.Enum):
    READY = "ready"
    MISCONFIGURED = "misconfigured"
    NOT_READY = "not_ready"


class AlarmState(enum.Enum):
    OK = "OK"
    ALARM = "ALARM"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value) -> "AlarmState":
        for state in cls:
            if state.value == value:
                return state
        return cls.UNKNOWN


class ProvisionStatus(enum.Enum):
    """
    Values of the ComponentInitStatus tag written by the provisioning
    scripts. Anything not listed parses as UNKNOWN, which callers retry on
    as a transitional value.
    """

    RUNNING = "Running"
    SUCCESS = "Success"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value) -> "ProvisionStatus":
        for status in (cls.RUNNING, cls.SUCCESS, cls.FAILED):
            if status.value == value:
                return status
        return cls.UNKNOWN


COMPONENT_INIT_STATUS_TAG = "ComponentInitStatus"


@dataclass(frozen=True)
class Tag:
    key: str
    value: str


@dataclass(frozen=True)
class AlarmRecord:
    alarm_name: str
    state_value: str

    @property
    def state(self) -> AlarmState:
        return AlarmState.parse(self.state_value)


class HealthClient(Protocol):
    def health_state(self) -> HealthState: ...

    def health_state_elb(self) -> HealthState: ...

    def healthy(self) -> bool: ...

    def healthy_asg(self) -> bool: ...


class AlarmClient(Protocol):
    def get_alarm(self, name: str) -> Sequence[AlarmRecord]: ...


class TagClient(Protocol):
    def get_tags(self) -> Union[Sequence[Tag], Sequence[Sequence[Tag]]]: ...


class FleetClient(TagClient, Protocol):
    def healthy_asg(self) -> bool: ...
