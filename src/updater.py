"""
Instance updater: replaces the running containers on one instance.

The update runs as a single SSM shell script. Each step echoes a marker line
before it starts and the script runs under ``set -e``, so the last marker in
the captured output names the step that failed.
"""

import logging
import shlex
import threading
import time
from typing import Callable, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from errors import UpdateCancelled, UpdateFailed, UpdateTimeout
from models import CommandResult, InstanceRef, InstanceState

logger = logging.getLogger(__name__)

STEP_MARKER = "::step::"

# Order is significant: stop before start frees the ports, and pruning last
# keeps the previous images cached if the new containers fail to start.
UPDATE_STEPS = ("authenticate", "pull", "stop", "start", "prune")


class InstanceUpdater:
    """Pushes an artifact version to one instance and waits for completion."""

    def __init__(
        self,
        client,
        config,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the updater.

        Args:
            client: FleetClient used to dispatch and poll remote commands
            config: DeployConfig with registry, images and timeouts
            clock: Monotonic clock, replaceable in tests
        """
        self.client = client
        self.config = config
        self.clock = clock

    def build_steps(self, artifact_ref: str) -> List[Tuple[str, List[str]]]:
        """Return the ordered (step, command lines) pairs for one update."""
        registry = self.config.registry
        region = shlex.quote(self.config.region)
        tag = shlex.quote(artifact_ref)
        compose_dir = shlex.quote(self.config.compose_dir)

        pulls = [
            f"docker pull {registry}/{image}:{tag}" for image in self.config.images
        ]
        return [
            (
                "authenticate",
                [
                    f"aws ecr get-login-password --region {region} | "
                    f"docker login --username AWS --password-stdin {registry}"
                ],
            ),
            ("pull", pulls),
            ("stop", [f"cd {compose_dir}", "docker-compose down"]),
            (
                "start",
                [
                    f"export REGISTRY={registry} IMAGE_TAG={tag}",
                    "docker-compose up -d",
                ],
            ),
            ("prune", ["docker system prune -f"]),
        ]

    def build_commands(self, artifact_ref: str) -> List[str]:
        """Return the full shell script as SSM command lines."""
        commands = ["set -e", 'echo "Starting deployment..."']
        for step, lines in self.build_steps(artifact_ref):
            commands.append(f"echo '{STEP_MARKER}{step}'")
            commands.extend(lines)
        commands.append('echo "Deployment complete"')
        return commands

    @staticmethod
    def last_step(output: str) -> str:
        """Name of the last step that started according to the script output."""
        step = "dispatch"
        for line in output.splitlines():
            line = line.strip()
            if line.startswith(STEP_MARKER):
                step = line[len(STEP_MARKER):] or step
        return step

    def update(
        self,
        instance: InstanceRef,
        artifact_ref: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> CommandResult:
        """
        Update one instance and block until the remote script finishes.

        Args:
            instance: Target instance
            artifact_ref: Image tag to deploy
            cancel_event: Set to stop waiting; the remote command keeps running

        Returns:
            The completed CommandResult

        Raises:
            UpdateFailed: If dispatch fails or the script exits non-zero
            UpdateTimeout: If the script does not finish within command_timeout
            UpdateCancelled: If cancel_event is set while waiting
        """
        cancel_event = cancel_event or threading.Event()
        instance_id = instance.instance_id

        logger.info(f"Deploying {artifact_ref} to instance: {instance_id}")
        try:
            command_id = self.client.send_command(
                instance_id,
                self.build_commands(artifact_ref),
                comment=f"deploy {artifact_ref}",
                execution_timeout=self.config.command_timeout,
            )
        except (ClientError, BotoCoreError) as e:
            raise UpdateFailed(instance_id, "dispatch", str(e)) from e

        instance.state = InstanceState.UPDATING
        logger.info(f"Command sent to {instance_id}. Command ID: {command_id}")

        result = self._wait(instance_id, command_id, cancel_event)

        if result.stdout:
            logger.info(f"Deployment output for {instance_id}:\n{result.stdout}")

        if result.status != "Success":
            step = self.last_step(result.stdout)
            cause = (result.stderr or "").strip().splitlines()
            raise UpdateFailed(
                instance_id,
                step,
                f"{result.status}: {cause[-1] if cause else 'no error output'}",
            )

        logger.info(f"✓ Deployment COMPLETED on {instance_id}")
        return result

    def _wait(
        self, instance_id: str, command_id: str, cancel_event: threading.Event
    ) -> CommandResult:
        """Poll the invocation until it is terminal, times out or is cancelled."""
        start = self.clock()
        last = CommandResult(command_id=command_id, status="Pending")

        while True:
            if cancel_event.is_set():
                raise UpdateCancelled(instance_id, self.last_step(last.stdout), command_id)

            elapsed = self.clock() - start
            if elapsed > self.config.command_timeout:
                logger.error(
                    f"Timeout waiting for {instance_id} after {elapsed:.0f}s "
                    f"(command {command_id})"
                )
                raise UpdateTimeout(
                    instance_id, self.last_step(last.stdout), self.config.command_timeout
                )

            try:
                last = self.client.get_command_invocation(command_id, instance_id)
            except (ClientError, BotoCoreError) as e:
                logger.warning(f"Failed polling command for {instance_id}: {e}")
            else:
                if self.client.is_terminal(last.status):
                    return last
                logger.debug(f"  {instance_id}: status={last.status} ({elapsed:.0f}s elapsed)")

            # Event.wait doubles as the poll sleep and the cancellation point.
            cancel_event.wait(self.config.poll_interval)
