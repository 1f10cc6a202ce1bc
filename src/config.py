"""
Configuration management for the Luma fleet deployment tool.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from errors import ConfigError

DEFAULT_REGION = "us-east-1"
DEFAULT_PROJECT_TAG = "luma-video-ai"
DEFAULT_IMAGES = ("luma-video-ai-backend", "luma-video-ai-frontend")
DEFAULT_COMPOSE_DIR = "/opt/luma"


@dataclass
class DeployConfig:
    """Configuration for fleet rollout operations."""

    region: str = DEFAULT_REGION
    account_id: Optional[str] = None
    project_tag: str = DEFAULT_PROJECT_TAG
    images: Tuple[str, ...] = field(default_factory=lambda: DEFAULT_IMAGES)
    compose_dir: str = DEFAULT_COMPOSE_DIR
    max_parallel: int = 1
    command_timeout: int = 900
    poll_interval: float = 5.0
    health_port: int = 8000
    health_path: str = "/health"
    health_attempts: int = 1
    health_delay: float = 10.0
    health_timeout: float = 10.0
    service_url: Optional[str] = None
    slack_webhook_url: Optional[str] = None
    report_dir: Optional[str] = None
    verbose: bool = False

    @property
    def registry(self) -> str:
        """ECR registry endpoint composed from account and region."""
        if not self.account_id:
            raise ConfigError("AWS_ACCOUNT_ID is required to compose the registry")
        return f"{self.account_id}.dkr.ecr.{self.region}.amazonaws.com"

    def validate(self, require_registry: bool = True) -> None:
        """
        Check settings that cannot be validated by argparse alone.

        Raises:
            ConfigError: If a setting is missing or out of range
        """
        if require_registry and not self.account_id:
            raise ConfigError("AWS_ACCOUNT_ID environment variable is not set")
        if self.max_parallel < 1:
            raise ConfigError("max_parallel must be at least 1")
        if self.health_attempts < 1:
            raise ConfigError("health_attempts must be at least 1")
        if self.command_timeout <= 0:
            raise ConfigError("command_timeout must be positive")
        if self.poll_interval < 0:
            raise ConfigError("poll_interval must not be negative")
        if self.health_delay < 0:
            raise ConfigError("health_delay must not be negative")
        if self.health_timeout <= 0:
            raise ConfigError("health_timeout must be positive")

    @classmethod
    def from_args(cls, args, environ: Optional[Mapping[str, str]] = None) -> "DeployConfig":
        """
        Create configuration from command-line arguments and environment.

        Command-line values win over environment variables. This is the only
        place the process environment is read.

        Args:
            args: Parsed argparse arguments
            environ: Environment mapping (defaults to os.environ)

        Returns:
            DeployConfig instance
        """
        env = os.environ if environ is None else environ

        return cls(
            region=getattr(args, "region", None) or env.get("AWS_REGION") or DEFAULT_REGION,
            account_id=env.get("AWS_ACCOUNT_ID") or None,
            project_tag=args.project_tag,
            compose_dir=args.compose_dir,
            max_parallel=args.max_parallel,
            command_timeout=args.command_timeout,
            poll_interval=args.poll_interval,
            health_port=args.health_port,
            health_path=args.health_path,
            health_attempts=args.health_attempts,
            health_delay=args.health_delay,
            health_timeout=args.health_timeout,
            service_url=args.service_url or env.get("SERVICE_URL") or None,
            slack_webhook_url=env.get("SLACK_WEBHOOK_URL") or None,
            report_dir=args.report_dir,
            verbose=args.verbose,
        )
