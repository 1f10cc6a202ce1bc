"""
Unit tests for the instance updater.
"""

import threading
import unittest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

from clients import FleetClient
from config import DeployConfig
from errors import UpdateCancelled, UpdateFailed, UpdateTimeout
from models import CommandResult, InstanceRef, InstanceState
from updater import STEP_MARKER, UPDATE_STEPS, InstanceUpdater


class FakeClock:
    """Clock that advances a fixed amount on every read."""

    def __init__(self, step=1.0):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


class TestInstanceUpdater(unittest.TestCase):
    """Test InstanceUpdater command building and completion handling."""

    def setUp(self):
        self.config = DeployConfig(
            account_id="123456789012",
            region="us-east-1",
            command_timeout=30,
            poll_interval=0,
        )
        self.client = MagicMock()
        self.client.is_terminal.side_effect = FleetClient.is_terminal
        self.client.send_command.return_value = "cmd-1"
        self.updater = InstanceUpdater(self.client, self.config, clock=FakeClock())
        self.instance = InstanceRef("i-1", private_ip="10.0.0.1")

    def test_build_commands_orders_steps(self):
        """Test steps appear in the fixed order with their markers."""
        commands = self.updater.build_commands("v1.3.0")
        markers = [c for c in commands if STEP_MARKER in c]

        self.assertEqual(commands[0], "set -e")
        self.assertEqual(
            markers, [f"echo '{STEP_MARKER}{step}'" for step in UPDATE_STEPS]
        )

        registry = "123456789012.dkr.ecr.us-east-1.amazonaws.com"
        script = "\n".join(commands)
        self.assertIn(f"docker login --username AWS --password-stdin {registry}", script)
        self.assertIn(f"docker pull {registry}/luma-video-ai-backend:v1.3.0", script)
        self.assertIn(f"docker pull {registry}/luma-video-ai-frontend:v1.3.0", script)
        self.assertLess(script.index("docker-compose down"), script.index("docker-compose up -d"))
        self.assertLess(script.index("docker-compose up -d"), script.index("docker system prune -f"))

    def test_build_commands_quotes_artifact_ref(self):
        commands = self.updater.build_commands("v1; rm -rf /")
        self.assertTrue(any("'v1; rm -rf /'" in c for c in commands))

    def test_last_step(self):
        output = "Starting\n::step::authenticate\nLogin Succeeded\n::step::pull\n"
        self.assertEqual(InstanceUpdater.last_step(output), "pull")
        self.assertEqual(InstanceUpdater.last_step(""), "dispatch")

    def test_update_success(self):
        self.client.get_command_invocation.side_effect = [
            CommandResult("cmd-1", "Pending"),
            CommandResult("cmd-1", "InProgress", stdout="::step::pull\n"),
            CommandResult("cmd-1", "Success", stdout="Deployment complete"),
        ]

        result = self.updater.update(self.instance, "v1.3.0")

        self.assertEqual(result.status, "Success")
        self.assertEqual(result.command_id, "cmd-1")
        self.assertEqual(self.client.get_command_invocation.call_count, 3)
        self.assertEqual(self.instance.state, InstanceState.UPDATING)
        kwargs = self.client.send_command.call_args.kwargs
        self.assertEqual(kwargs["execution_timeout"], 30)

    def test_update_logs_remote_output(self):
        """Test the remote script output is shown at default verbosity."""
        self.client.get_command_invocation.return_value = CommandResult(
            "cmd-1", "Success", stdout="Pulling backend...\nDeployment complete"
        )

        with self.assertLogs("updater", level="INFO") as logs:
            self.updater.update(self.instance, "v1.3.0")

        output = [m for m in logs.output if "Deployment output for i-1" in m]
        self.assertEqual(len(output), 1)
        self.assertTrue(output[0].startswith("INFO:"))
        self.assertIn("Deployment complete", output[0])

    def test_update_failure_reports_step(self):
        self.client.get_command_invocation.return_value = CommandResult(
            "cmd-1",
            "Failed",
            stdout="::step::authenticate\n::step::pull\n::step::stop\n::step::start\n",
            stderr="port is already allocated",
        )

        with self.assertRaises(UpdateFailed) as ctx:
            self.updater.update(self.instance, "v1.3.0")

        self.assertEqual(ctx.exception.instance_id, "i-1")
        self.assertEqual(ctx.exception.step, "start")
        self.assertIn("port is already allocated", ctx.exception.cause)

    def test_dispatch_failure(self):
        self.client.send_command.side_effect = ClientError(
            {"Error": {"Code": "InvalidInstanceId", "Message": "not managed"}},
            "SendCommand",
        )

        with self.assertRaises(UpdateFailed) as ctx:
            self.updater.update(self.instance, "v1.3.0")

        self.assertEqual(ctx.exception.step, "dispatch")
        self.client.get_command_invocation.assert_not_called()

    def test_update_timeout(self):
        self.client.get_command_invocation.return_value = CommandResult(
            "cmd-1", "InProgress", stdout="::step::pull\n"
        )

        with self.assertRaises(UpdateTimeout) as ctx:
            self.updater.update(self.instance, "v1.3.0")

        self.assertIsInstance(ctx.exception, UpdateFailed)
        self.assertEqual(ctx.exception.step, "pull")

    def test_poll_errors_are_retried(self):
        self.client.get_command_invocation.side_effect = [
            ClientError({"Error": {"Code": "ThrottlingException", "Message": ""}}, "Get"),
            CommandResult("cmd-1", "Success"),
        ]

        result = self.updater.update(self.instance, "v1.3.0")

        self.assertEqual(result.status, "Success")

    def test_update_cancelled_while_waiting(self):
        cancel = threading.Event()

        def poll(command_id, instance_id):
            cancel.set()
            return CommandResult(command_id, "InProgress")

        self.client.get_command_invocation.side_effect = poll

        with self.assertRaises(UpdateCancelled) as ctx:
            self.updater.update(self.instance, "v1.3.0", cancel)

        self.assertEqual(ctx.exception.command_id, "cmd-1")
        self.client.send_command.assert_called_once()


if __name__ == "__main__":
    unittest.main()
