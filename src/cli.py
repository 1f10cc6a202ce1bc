"""Console entry point for the Luma fleet deployment CLI."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import List

from clients import FleetClient
from config import DEFAULT_COMPOSE_DIR, DEFAULT_PROJECT_TAG, DeployConfig
from errors import DeployError
from log_utils import setup_logging
from models import Environment, RolloutPhase
from notifier import build_notifier
from prober import HealthProber
from releases import ReleaseMarker
from resolver import TargetResolver
from rollout import RolloutController
from strategies import build_strategy
from updater import InstanceUpdater

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--region", help="AWS region (default: $AWS_REGION or us-east-1)")
    parser.add_argument("--project-tag", default=DEFAULT_PROJECT_TAG)
    parser.add_argument("--compose-dir", default=DEFAULT_COMPOSE_DIR)
    parser.add_argument("--max-parallel", type=int, default=1)
    parser.add_argument("--command-timeout", type=int, default=900)
    parser.add_argument("--poll-interval", type=float, default=5.0)
    parser.add_argument("--health-port", type=int, default=8000)
    parser.add_argument("--health-path", default="/health")
    parser.add_argument("--health-attempts", type=int, default=1)
    parser.add_argument("--health-delay", type=float, default=10.0)
    parser.add_argument("--health-timeout", type=float, default=10.0)
    parser.add_argument(
        "--service-url",
        help="Environment-level health endpoint (default: $SERVICE_URL)",
    )
    parser.add_argument(
        "--report-dir",
        help="Directory to export a JSON rollout report to (default: no export)",
    )
    parser.add_argument("--log-file", default="fleet-deploy.log")
    parser.add_argument("--verbose", action="store_true")


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="fleet-deploy",
        description="Rolling deployment, rollback and health checks for the Luma fleet",
    )
    envs = [e.value for e in Environment]
    sub = parser.add_subparsers(dest="command", required=True)

    deploy = sub.add_parser("deploy", help="Deploy an image tag to an environment")
    deploy.add_argument("environment", help=f"One of: {', '.join(envs)}")
    deploy.add_argument("image_tag", nargs="?", default="latest")
    _add_common_arguments(deploy)

    rollback = sub.add_parser(
        "rollback", help="Redeploy a previous version to an environment"
    )
    rollback.add_argument("environment", help=f"One of: {', '.join(envs)}")
    rollback.add_argument(
        "version",
        nargs="?",
        help="Version to roll back to (default: the previously recorded release)",
    )
    _add_common_arguments(rollback)

    health = sub.add_parser("health-check", help="Probe an environment's health")
    health.add_argument("environment", help=f"One of: {', '.join(envs)}")
    _add_common_arguments(health)

    return parser


def build_controller(config: DeployConfig, client=None) -> RolloutController:
    """Wire the rollout components for one run."""
    client = client or FleetClient(region=config.region)
    return RolloutController(
        config=config,
        resolver=TargetResolver(client, config.project_tag),
        updater=InstanceUpdater(client, config),
        prober=HealthProber.from_config(config),
        notifier=build_notifier(config.slack_webhook_url),
        strategy=build_strategy(config.max_parallel),
        release_marker=ReleaseMarker(client, config.project_tag),
    )


def _install_cancel_handlers(cancel_event: threading.Event) -> None:
    def handler(signum, frame):
        logger.warning(
            f"Received signal {signum}; finishing in-flight waits and stopping "
            "(send again to abort immediately)"
        )
        cancel_event.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)
        signal.signal(signal.SIGTERM, signal.SIG_DFL)

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def main(argv: List[str] | None = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        Environment.parse(args.environment)
        config = DeployConfig.from_args(args)
        config.validate(require_registry=args.command != "health-check")
        controller = build_controller(config)

        if args.command == "health-check":
            health = controller.check_health(args.environment)
            return EXIT_OK if health.healthy else EXIT_FAILED

        if args.command == "rollback":
            version = args.version or controller.release_marker.previous(args.environment)
            if not version:
                raise DeployError(
                    f"No previous release recorded for {args.environment}; "
                    "pass a version explicitly"
                )
            logger.warning(f"Rolling back {args.environment} to {version}")
        else:
            version = args.image_tag

        cancel_event = threading.Event()
        _install_cancel_handlers(cancel_event)
        report = controller.run(args.environment, version, cancel_event)
    except DeployError as e:
        logger.error(f"Error: {e}")
        return EXIT_INVALID

    return EXIT_OK if report.phase == RolloutPhase.SUCCEEDED else EXIT_FAILED
