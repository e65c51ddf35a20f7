#!/usr/bin/env python3

"""
Test suite for configuration loading

Covers the YAML file lookup, the aws_/aem_ environment overrides and the
task sections used by the retry policy resolver.

Usage:
    python -m coverage run -a -m unittest tests/test_config.py -v
"""

import os
import tempfile
import unittest

import yaml

from convergence.config.config import CONFIG_PATH_ENV, Config, read_config
from convergence.retry.policy import RetryPolicy, resolve_retry_policy


class TestReadConfig(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.config_file = os.path.join(self.tmp_dir.name, "aem-aws.yml")
        content = {
            "aws": {"region": "ap-southeast-2", "profile": "validation"},
            "aem": {"stack_prefix": "stack-1", "component": "publish"},
            "elb_instances_healthy": {
                "retry_counter": 10,
                "retry_wait_in_seconds": 5,
            },
            "asg_healthy": {"retry_counter": 3},
        }
        with open(self.config_file, "w") as f:
            yaml.safe_dump(content, f)

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_missing_file_gives_empty_config(self):
        config = read_config(
            os.path.join(self.tmp_dir.name, "missing.yml"), environ={}
        )

        self.assertEqual(config, Config())
        self.assertEqual(
            resolve_retry_policy("elb_instances_healthy", config),
            RetryPolicy(60, 60),
        )

    def test_reads_sections(self):
        config = read_config(self.config_file, environ={})

        self.assertEqual(config.region, "ap-southeast-2")
        self.assertEqual(config.aws["profile"], "validation")
        self.assertEqual(config.stack_prefix, "stack-1")
        self.assertEqual(config.component, "publish")
        self.assertEqual(set(config.tasks), {"elb_instances_healthy", "asg_healthy"})

    def test_task_lookup(self):
        config = read_config(self.config_file, environ={})

        self.assertEqual(config.get("elb_instances_healthy", "retry_counter"), 10)
        self.assertIsNone(config.get("asg_healthy", "retry_wait_in_seconds"))
        self.assertIsNone(config.get("unknown", "retry_counter"))
        self.assertEqual(
            resolve_retry_policy("asg_healthy", config), RetryPolicy(3, 60)
        )

    def test_environment_overrides_file(self):
        environ = {
            "aws_region": "us-east-1",
            "aws_access_key_id": "AKIAEXAMPLE",
            "aem_component": "author-primary",
        }

        config = read_config(self.config_file, environ=environ)

        self.assertEqual(config.region, "us-east-1")
        self.assertEqual(config.aws["access_key_id"], "AKIAEXAMPLE")
        self.assertEqual(config.aws["profile"], "validation")
        self.assertEqual(config.component, "author-primary")
        self.assertEqual(config.stack_prefix, "stack-1")

    def test_environment_only(self):
        config = read_config(
            os.path.join(self.tmp_dir.name, "missing.yml"),
            environ={"aem_stack_prefix": "from-env"},
        )

        self.assertEqual(config.stack_prefix, "from-env")
        self.assertEqual(config.tasks, {})

    def test_path_from_environment_variable(self):
        config = read_config(environ={CONFIG_PATH_ENV: self.config_file})

        self.assertEqual(config.stack_prefix, "stack-1")

    def test_empty_file(self):
        with open(self.config_file, "w") as f:
            f.write("")

        self.assertEqual(read_config(self.config_file, environ={}), Config())

    def test_non_mapping_file_is_rejected(self):
        with open(self.config_file, "w") as f:
            f.write("- just\n- a list\n")

        with self.assertRaises(ValueError):
            read_config(self.config_file, environ={})


if __name__ == "__main__":
    unittest.main()
