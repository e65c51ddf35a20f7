from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml
from krkn_lib.utils import get_yaml_item_value

CONFIG_PATH_ENV = "INSPEC_AEM_AWS_CONF"
DEFAULT_CONFIG_PATH = "./conf/aem-aws.yml"

AWS_FIELDS = [
    "profile",
    "access_key_id",
    "secret_access_key",
    "session_token",
    "s3_bucket",
    "region",
]
AEM_FIELDS = ["stack_prefix", "component", "id"]


@dataclass
class Config:
    """
    Parsed validation configuration.

    ``aws`` and ``aem`` hold the connection and stack settings after the
    environment overrides were applied, ``tasks`` holds every other
    top-level section of the file keyed by task name (retry overrides).
    """

    aws: dict[str, Any] = field(default_factory=dict)
    aem: dict[str, Any] = field(default_factory=dict)
    tasks: dict[str, dict] = field(default_factory=dict)

    def get(self, task: str, item: str) -> Optional[Any]:
        section = self.tasks.get(task)
        if not isinstance(section, dict):
            return None
        return get_yaml_item_value(section, item, None)

    @property
    def stack_prefix(self) -> Optional[str]:
        return self.aem.get("stack_prefix")

    @property
    def component(self) -> Optional[str]:
        return self.aem.get("component")

    @property
    def instance_id(self) -> Optional[str]:
        return self.aem.get("id")

    @property
    def region(self) -> Optional[str]:
        return self.aws.get("region")


def load_config_file(config_file: str) -> dict:
    if not os.path.isfile(config_file):
        logging.debug("config file %s not found, using defaults" % config_file)
        return {}
    with open(config_file, "r") as f:
        content = yaml.safe_load(f)
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(
            "config file %s must contain a mapping, got %s"
            % (config_file, type(content).__name__)
        )
    return content


def _merge_section(
    file_section: Optional[dict], fields: list[str], prefix: str, environ
) -> dict[str, Any]:
    merged = {}
    for item in fields:
        env_value = environ.get("%s_%s" % (prefix, item))
        if env_value is not None:
            merged[item] = env_value
        elif file_section:
            value = get_yaml_item_value(file_section, item, None)
            if value is not None:
                merged[item] = value
    return merged


def read_config(config_file: Optional[str] = None, environ=None) -> Config:
    """
    Builds the Config once at start up. The file path comes from the
    argument, then INSPEC_AEM_AWS_CONF, then ./conf/aem-aws.yml. For the
    aws and aem sections an ``aws_<field>``/``aem_<field>`` environment
    variable wins over the file value.
    """
    if environ is None:
        environ = os.environ
    if config_file is None:
        config_file = environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH
    content = load_config_file(config_file)

    aws = _merge_section(content.get("aws"), AWS_FIELDS, "aws", environ)
    aem = _merge_section(content.get("aem"), AEM_FIELDS, "aem", environ)
    tasks = {
        name: section
        for name, section in content.items()
        if name not in ("aws", "aem") and isinstance(section, dict)
    }
    logging.debug(
        "loaded config from %s with %d task section(s)" % (config_file, len(tasks))
    )
    return Config(aws=aws, aem=aem, tasks=tasks)
