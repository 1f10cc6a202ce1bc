"""
Data models for the Luma fleet deployment tool.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from errors import InvalidEnvironment


class Environment(str, Enum):
    """Deployment environments a fleet can belong to."""

    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"

    @classmethod
    def parse(cls, value: str) -> "Environment":
        """
        Parse an environment name.

        Raises:
            InvalidEnvironment: If the value is not a recognised environment
        """
        for env in cls:
            if env.value == value:
                return env
        raise InvalidEnvironment(value, [env.value for env in cls])


class InstanceState(str, Enum):
    """Lifecycle state of an instance as seen by a rollout."""

    PENDING = "pending"
    RUNNING = "running"
    UPDATING = "updating"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    TERMINATED = "terminated"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    TIMEOUT = "timeout"


class RolloutPhase(str, Enum):
    """Phases of a single rollout. The last three are terminal."""

    RESOLVING = "resolving"
    UPDATING = "updating"
    PROBING = "probing"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


TERMINAL_PHASES = (
    RolloutPhase.SUCCEEDED,
    RolloutPhase.PARTIALLY_FAILED,
    RolloutPhase.FAILED,
)


@dataclass
class InstanceRef:
    """Transient reference to a fleet instance."""

    instance_id: str
    private_ip: Optional[str] = None
    state: InstanceState = InstanceState.RUNNING


@dataclass
class CommandResult:
    """Completed remote command invocation."""

    command_id: str
    status: str  # SSM invocation status, e.g. "Success", "Failed"
    stdout: str = ""
    stderr: str = ""


@dataclass
class HealthResult:
    """Outcome of probing one health endpoint."""

    endpoint: str
    status: HealthStatus
    checked_at: datetime = field(default_factory=datetime.now)
    status_code: Optional[int] = None
    detail: str = ""
    attempts: int = 1

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> Dict:
        return {
            "endpoint": self.endpoint,
            "status": self.status.value,
            "checked_at": self.checked_at.isoformat(),
            "status_code": self.status_code,
            "detail": self.detail,
            "attempts": self.attempts,
        }


@dataclass
class InstanceResult:
    """Result of updating and probing one instance."""

    instance_id: str
    status: str  # "success", "failed"
    artifact_ref: str
    error_type: Optional[str] = None  # exception class name, e.g. "UpdateFailed"
    failed_step: Optional[str] = None
    error_message: Optional[str] = None
    command_id: Optional[str] = None
    output: str = ""
    health: Optional[HealthResult] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    duration_seconds: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> Dict:
        return {
            "instance_id": self.instance_id,
            "status": self.status,
            "artifact_ref": self.artifact_ref,
            "error_type": self.error_type,
            "failed_step": self.failed_step,
            "error_message": self.error_message,
            "command_id": self.command_id,
            "health": self.health.to_dict() if self.health else None,
            "start_time": (
                datetime.fromtimestamp(self.start_time).isoformat()
                if self.start_time
                else None
            ),
            "end_time": (
                datetime.fromtimestamp(self.end_time).isoformat()
                if self.end_time
                else None
            ),
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class RolloutReport:
    """Accumulated outcome of one rollout invocation."""

    environment: str
    artifact_ref: str
    instance_ids: List[str] = field(default_factory=list)
    results: List[InstanceResult] = field(default_factory=list)
    aggregate_health: Optional[HealthResult] = None
    phase: RolloutPhase = RolloutPhase.RESOLVING
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    # (phase, instance id) in the order the work happened
    events: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def failed(self) -> List[InstanceResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def succeeded(self) -> List[InstanceResult]:
        return [r for r in self.results if r.succeeded]

    @property
    def finished(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def verdict(self) -> RolloutPhase:
        """
        Decide the terminal state of the rollout.

        An unhealthy aggregate gate fails the rollout even when every instance
        update succeeded. A missing aggregate result means the gate was skipped.
        """
        if self.aggregate_health is not None and not self.aggregate_health.healthy:
            return RolloutPhase.FAILED
        if not self.results or not self.succeeded:
            return RolloutPhase.FAILED
        if self.failed:
            return RolloutPhase.PARTIALLY_FAILED
        return RolloutPhase.SUCCEEDED

    def to_dict(self) -> Dict:
        return {
            "environment": self.environment,
            "artifact_ref": self.artifact_ref,
            "status": self.phase.value,
            "instance_ids": list(self.instance_ids),
            "start_time": (
                datetime.fromtimestamp(self.start_time).isoformat()
                if self.start_time
                else None
            ),
            "end_time": (
                datetime.fromtimestamp(self.end_time).isoformat()
                if self.end_time
                else None
            ),
            "total_duration_seconds": (
                self.end_time - self.start_time
                if self.start_time and self.end_time
                else None
            ),
            "aggregate_health": (
                self.aggregate_health.to_dict() if self.aggregate_health else None
            ),
            "results": [r.to_dict() for r in self.results],
            "events": [list(e) for e in self.events],
        }


@dataclass
class FleetHealth:
    """Health of every instance in a fleet plus the aggregate endpoint."""

    environment: str
    instances: List[Tuple[str, HealthResult]] = field(default_factory=list)
    aggregate: Optional[HealthResult] = None

    @property
    def healthy(self) -> bool:
        if self.aggregate is not None and not self.aggregate.healthy:
            return False
        return bool(self.instances) and all(h.healthy for _, h in self.instances)
