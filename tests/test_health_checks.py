#!/usr/bin/env python3

"""
Test suite for the load balancer, instance and autoscaling group health
checkers

Usage:
    python -m coverage run -a -m unittest tests/test_health_checks.py -v
"""

import unittest
from unittest.mock import MagicMock, call

from convergence.checks.health_checks import (
    asg_healthy,
    elb_healthy,
    elb_instances_healthy,
    instances_healthy,
)
from convergence.config.config import Config
from convergence.models import HealthState

READY = HealthState.READY
NOT_READY = HealthState.NOT_READY
MISCONFIGURED = HealthState.MISCONFIGURED


class TestElbInstancesHealthy(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.sleep = MagicMock()
        self.config = Config(
            tasks={"elb": {"retry_counter": 5, "retry_wait_in_seconds": 2}}
        )

    def test_misconfigured_fails_after_one_read(self):
        self.client.health_state.side_effect = [MISCONFIGURED]

        result = elb_instances_healthy(
            "elb", self.client, config=self.config, sleep=self.sleep
        )

        self.assertFalse(result)
        self.client.health_state.assert_called_once()
        self.sleep.assert_not_called()

    def test_ready_on_first_read(self):
        self.client.health_state.return_value = READY

        self.assertTrue(
            elb_instances_healthy("elb", self.client, config=self.config, sleep=self.sleep)
        )
        self.client.health_state.assert_called_once()
        self.sleep.assert_not_called()

    def test_ready_on_last_attempt(self):
        self.client.health_state.side_effect = [NOT_READY] * 4 + [READY]

        result = elb_instances_healthy(
            "elb", self.client, config=self.config, sleep=self.sleep
        )

        self.assertTrue(result)
        self.assertEqual(self.client.health_state.call_count, 5)
        self.assertEqual(self.sleep.call_args_list, [call(2.0)] * 4)

    def test_exhausted_attempts_fail(self):
        self.client.health_state.return_value = NOT_READY

        result = elb_instances_healthy(
            "elb", self.client, config=self.config, sleep=self.sleep
        )

        self.assertFalse(result)
        self.assertEqual(self.client.health_state.call_count, 5)
        self.assertEqual(self.sleep.call_count, 5)

    def test_misconfigured_after_first_read_is_retried(self):
        self.client.health_state.side_effect = [NOT_READY, MISCONFIGURED, READY]

        result = elb_instances_healthy(
            "elb", self.client, config=self.config, sleep=self.sleep
        )

        self.assertTrue(result)
        self.assertEqual(self.sleep.call_count, 2)

    def test_does_not_read_balancer_health(self):
        self.client.health_state.return_value = READY

        elb_instances_healthy("elb", self.client, config=self.config, sleep=self.sleep)

        self.client.health_state_elb.assert_not_called()


class TestElbHealthy(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.sleep = MagicMock()
        self.config = Config(
            tasks={"elb": {"retry_counter": 3, "retry_wait_in_seconds": 1}}
        )

    def test_misconfigured_fails_after_one_read(self):
        self.client.health_state_elb.return_value = MISCONFIGURED

        self.assertFalse(
            elb_healthy("elb", self.client, config=self.config, sleep=self.sleep)
        )
        self.client.health_state_elb.assert_called_once()
        self.client.health_state.assert_not_called()
        self.sleep.assert_not_called()

    def test_ready_after_retries(self):
        self.client.health_state_elb.side_effect = [NOT_READY, NOT_READY, READY]

        self.assertTrue(
            elb_healthy("elb", self.client, config=self.config, sleep=self.sleep)
        )
        self.assertEqual(self.sleep.call_count, 2)

    def test_exhausted_attempts_fail(self):
        self.client.health_state_elb.return_value = NOT_READY

        self.assertFalse(
            elb_healthy("elb", self.client, config=self.config, sleep=self.sleep)
        )
        self.assertEqual(self.client.health_state_elb.call_count, 3)


class TestInstancesAndAsgHealthy(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.sleep = MagicMock()

    def test_instances_healthy_first_attempt(self):
        self.client.healthy.return_value = True

        self.assertTrue(instances_healthy("instances", self.client, sleep=self.sleep))
        self.sleep.assert_not_called()

    def test_instances_unhealthy_uses_default_policy(self):
        self.client.healthy.return_value = False

        self.assertFalse(instances_healthy("instances", self.client, sleep=self.sleep))
        self.assertEqual(self.client.healthy.call_count, 60)
        self.assertEqual(self.sleep.call_args_list, [call(60.0)] * 60)

    def test_asg_healthy_after_retries(self):
        self.client.healthy_asg.side_effect = [False, False, True]

        self.assertTrue(asg_healthy("asg", self.client, sleep=self.sleep))
        self.assertEqual(self.sleep.call_count, 2)
        self.client.healthy.assert_not_called()

    def test_asg_unhealthy_exhausts(self):
        self.client.healthy_asg.return_value = False
        config = Config(tasks={"asg": {"retry_counter": 2}})

        self.assertFalse(asg_healthy("asg", self.client, config=config, sleep=self.sleep))
        self.assertEqual(self.client.healthy_asg.call_count, 2)

    def test_truthy_non_boolean_is_not_ready(self):
        self.client.healthy.side_effect = ["yes", True]

        self.assertTrue(instances_healthy("instances", self.client, sleep=self.sleep))
        self.assertEqual(self.sleep.call_count, 1)


if __name__ == "__main__":
    unittest.main()
