"""
AWS API client for the Luma fleet (EC2 inventory, SSM Run Command and
SSM Parameter Store).
"""

import logging
from typing import Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from errors import DeployError
from models import CommandResult, InstanceRef, InstanceState

logger = logging.getLogger(__name__)

RUN_SHELL_DOCUMENT = "AWS-RunShellScript"

# Map EC2 instance-state names onto the rollout lifecycle.
EC2_STATES = {
    "pending": InstanceState.PENDING,
    "running": InstanceState.RUNNING,
    "shutting-down": InstanceState.TERMINATED,
    "terminated": InstanceState.TERMINATED,
    "stopping": InstanceState.TERMINATED,
    "stopped": InstanceState.TERMINATED,
}

# Invocation statuses after which SSM will not change the result any more.
TERMINAL_COMMAND_STATUSES = {
    "Success",
    "Failed",
    "Cancelled",
    "TimedOut",
    "Undeliverable",
    "Terminated",
    "InvalidPlatform",
    "AccessDenied",
}


class FleetClient:
    """Thin wrapper around the boto3 EC2 and SSM clients used by a rollout."""

    def __init__(
        self,
        region: str,
        max_retries: int = 5,
        connect_timeout: int = 10,
        read_timeout: int = 60,
        session=None,
    ):
        """
        Initialize the fleet client.

        Args:
            region: AWS region of the fleet
            max_retries: Maximum attempts for throttled or transient errors
            connect_timeout: Connection timeout in seconds
            read_timeout: Read timeout in seconds
            session: Optional boto3 session (defaults to a new session)
        """
        self.region = region
        self.max_retries = max_retries

        boto_config = Config(
            region_name=region,
            retries={"max_attempts": max_retries, "mode": "standard"},
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )
        session = session or boto3.session.Session()
        self.ec2 = session.client("ec2", config=boto_config)
        self.ssm = session.client("ssm", config=boto_config)

    def list_running_instances(self, environment: str, project: str) -> List[InstanceRef]:
        """
        List running instances tagged for an environment and project.

        Args:
            environment: Value of the Environment tag
            project: Value of the Project tag

        Returns:
            List of InstanceRef objects in API order

        Raises:
            DeployError: If the EC2 API call fails
        """
        filters = [
            {"Name": "tag:Environment", "Values": [environment]},
            {"Name": "tag:Project", "Values": [project]},
            {"Name": "instance-state-name", "Values": ["running"]},
        ]

        instances: List[InstanceRef] = []
        try:
            paginator = self.ec2.get_paginator("describe_instances")
            for page in paginator.paginate(Filters=filters):
                for reservation in page.get("Reservations", []):
                    for item in reservation.get("Instances", []):
                        state_name = item.get("State", {}).get("Name", "running")
                        instances.append(
                            InstanceRef(
                                instance_id=item["InstanceId"],
                                private_ip=item.get("PrivateIpAddress"),
                                state=EC2_STATES.get(state_name, InstanceState.RUNNING),
                            )
                        )
        except (ClientError, BotoCoreError) as e:
            raise DeployError(f"describe_instances failed: {e}") from e

        return instances

    def send_command(
        self,
        instance_id: str,
        commands: List[str],
        comment: str = "",
        execution_timeout: Optional[int] = None,
    ) -> str:
        """
        Dispatch a shell script to one instance via SSM Run Command.

        Args:
            instance_id: Target EC2 instance id
            commands: Ordered shell command lines
            comment: Free text shown in the SSM console (max 100 chars)
            execution_timeout: Remote execution timeout in seconds

        Returns:
            Command id

        Raises:
            ClientError: If SSM rejects the command
        """
        parameters: Dict[str, List[str]] = {"commands": list(commands)}
        if execution_timeout:
            parameters["executionTimeout"] = [str(int(execution_timeout))]

        resp = self.ssm.send_command(
            InstanceIds=[instance_id],
            DocumentName=RUN_SHELL_DOCUMENT,
            Parameters=parameters,
            Comment=comment[:100],
        )
        return resp["Command"]["CommandId"]

    def get_command_invocation(self, command_id: str, instance_id: str) -> CommandResult:
        """
        Get the current status and output of a command on one instance.

        An invocation that SSM has not registered yet is reported as Pending.

        Raises:
            ClientError: For any error other than a not-yet-registered invocation
        """
        try:
            resp = self.ssm.get_command_invocation(
                CommandId=command_id, InstanceId=instance_id
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "InvocationDoesNotExist":
                return CommandResult(command_id=command_id, status="Pending")
            raise

        return CommandResult(
            command_id=command_id,
            status=resp.get("Status", "Pending"),
            stdout=resp.get("StandardOutputContent", ""),
            stderr=resp.get("StandardErrorContent", ""),
        )

    @staticmethod
    def is_terminal(status: str) -> bool:
        return status in TERMINAL_COMMAND_STATUSES

    def put_release(self, name: str, value: str) -> None:
        """Overwrite a release parameter; SSM keeps previous values as history."""
        self.ssm.put_parameter(Name=name, Value=value, Type="String", Overwrite=True)

    def get_release_history(self, name: str) -> List[str]:
        """
        Return all recorded values of a release parameter, oldest first.

        A parameter that was never written yields an empty list.
        """
        values: List[str] = []
        try:
            paginator = self.ssm.get_paginator("get_parameter_history")
            for page in paginator.paginate(Name=name):
                for item in page.get("Parameters", []):
                    values.append(item["Value"])
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ParameterNotFound":
                return []
            raise
        return values
