"""
Exception taxonomy for the Luma fleet deployment tool.

Pre-flight errors (ConfigError, InvalidEnvironment, NoInstancesFound) abort a
rollout before any instance is touched. Per-instance errors (UpdateFailed and
the health check errors) are caught by the rollout controller and recorded in
the report instead of being propagated.
"""

from typing import Optional


class DeployError(Exception):
    """Base class for all deployment errors."""


class ConfigError(DeployError):
    """Required configuration is missing or invalid."""


class InvalidEnvironment(DeployError):
    """Environment name is not one of the recognised values."""

    def __init__(self, environment: str, valid=None):
        self.environment = environment
        self.valid = tuple(valid or ())
        message = f"Invalid environment: {environment!r}"
        if self.valid:
            message += f" (valid environments: {', '.join(self.valid)})"
        super().__init__(message)


class NoInstancesFound(DeployError):
    """The fleet for an environment has no running instances."""

    def __init__(self, environment: str):
        self.environment = environment
        super().__init__(f"No running instances found for environment: {environment}")


class UpdateFailed(DeployError):
    """Updating a single instance failed at a given step."""

    def __init__(self, instance_id: str, step: str, cause: str):
        self.instance_id = instance_id
        self.step = step
        self.cause = cause
        super().__init__(f"Update of {instance_id} failed at step '{step}': {cause}")


class UpdateTimeout(UpdateFailed):
    """The remote update command did not complete within the bound."""

    def __init__(self, instance_id: str, step: str, timeout: float):
        self.timeout = timeout
        super().__init__(instance_id, step, f"timed out after {timeout:.0f}s")


class UpdateCancelled(UpdateFailed):
    """The wait for an update was cancelled; the remote command may still run."""

    def __init__(self, instance_id: str, step: str, command_id: Optional[str] = None):
        self.command_id = command_id
        cause = "cancelled"
        if command_id:
            cause += f" (remote command {command_id} left running)"
        super().__init__(instance_id, step, cause)


class HealthCheckFailed(DeployError):
    """Endpoint answered but reported itself unhealthy."""

    def __init__(self, endpoint: str, detail: str = ""):
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(f"Health check failed for {endpoint}: {detail or 'unhealthy'}")


class HealthCheckTimeout(HealthCheckFailed):
    """Endpoint did not answer within the probe bound."""
