"""
Unit tests for configuration.
"""

import unittest
from argparse import Namespace

from config import DeployConfig
from errors import ConfigError


def make_args(**overrides):
    values = dict(
        region=None,
        project_tag="luma-video-ai",
        compose_dir="/opt/luma",
        max_parallel=1,
        command_timeout=900,
        poll_interval=5.0,
        health_port=8000,
        health_path="/health",
        health_attempts=1,
        health_delay=10.0,
        health_timeout=10.0,
        service_url=None,
        report_dir=".",
        verbose=False,
    )
    values.update(overrides)
    return Namespace(**values)


class TestDeployConfig(unittest.TestCase):
    """Test DeployConfig data model."""

    def test_config_defaults(self):
        """Test default configuration values."""
        config = DeployConfig()
        self.assertEqual(config.region, "us-east-1")
        self.assertIsNone(config.account_id)
        self.assertEqual(config.project_tag, "luma-video-ai")
        self.assertEqual(
            config.images, ("luma-video-ai-backend", "luma-video-ai-frontend")
        )
        self.assertEqual(config.max_parallel, 1)
        self.assertEqual(config.health_attempts, 1)
        self.assertIsNone(config.service_url)
        self.assertFalse(config.verbose)

    def test_registry(self):
        """Test the registry endpoint is composed from account and region."""
        config = DeployConfig(account_id="123456789012", region="eu-west-1")
        self.assertEqual(config.registry, "123456789012.dkr.ecr.eu-west-1.amazonaws.com")

    def test_registry_requires_account(self):
        """Test the registry cannot be composed without an account id."""
        with self.assertRaises(ConfigError):
            DeployConfig().registry

    def test_validate(self):
        """Test validation of settings argparse cannot check."""
        DeployConfig(account_id="1").validate()
        DeployConfig().validate(require_registry=False)

        with self.assertRaises(ConfigError):
            DeployConfig().validate()
        with self.assertRaises(ConfigError):
            DeployConfig(account_id="1", max_parallel=0).validate()
        with self.assertRaises(ConfigError):
            DeployConfig(account_id="1", health_attempts=0).validate()

    def test_validate_rejects_negative_intervals(self):
        """Test negative waits are rejected so polling cannot spin."""
        DeployConfig(account_id="1", poll_interval=0, health_delay=0).validate()

        for overrides in (
            {"poll_interval": -1},
            {"health_delay": -0.5},
            {"health_timeout": 0},
        ):
            with self.subTest(**overrides):
                with self.assertRaises(ConfigError):
                    DeployConfig(account_id="1", **overrides).validate()

    def test_config_from_args_and_environment(self):
        """Test creating config from arguments and environment variables."""
        environ = {
            "AWS_REGION": "us-west-2",
            "AWS_ACCOUNT_ID": "123456789012",
            "SERVICE_URL": "https://api.example.com/health",
            "SLACK_WEBHOOK_URL": "https://hooks.slack.com/services/x",
        }
        config = DeployConfig.from_args(
            make_args(max_parallel=3, health_attempts=5, verbose=True), environ
        )

        self.assertEqual(config.region, "us-west-2")
        self.assertEqual(config.account_id, "123456789012")
        self.assertEqual(config.service_url, "https://api.example.com/health")
        self.assertEqual(config.slack_webhook_url, "https://hooks.slack.com/services/x")
        self.assertEqual(config.max_parallel, 3)
        self.assertEqual(config.health_attempts, 5)
        self.assertTrue(config.verbose)

    def test_arguments_override_environment(self):
        """Test CLI values win over environment variables."""
        environ = {"AWS_REGION": "us-west-2", "SERVICE_URL": "https://env/health"}
        config = DeployConfig.from_args(
            make_args(region="eu-central-1", service_url="https://cli/health"), environ
        )

        self.assertEqual(config.region, "eu-central-1")
        self.assertEqual(config.service_url, "https://cli/health")

    def test_region_default(self):
        """Test the region falls back to us-east-1."""
        config = DeployConfig.from_args(make_args(), {})
        self.assertEqual(config.region, "us-east-1")
        self.assertIsNone(config.account_id)


if __name__ == "__main__":
    unittest.main()
