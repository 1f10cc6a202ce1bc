"""
Luma Video AI fleet rolling deployment tool.
"""

from clients import FleetClient
from config import DeployConfig
from log_utils import setup_logging
from models import HealthResult, InstanceRef, InstanceResult, RolloutReport
from prober import HealthProber
from resolver import TargetResolver
from rollout import RolloutController
from updater import InstanceUpdater

__all__ = [
    "FleetClient",
    "DeployConfig",
    "setup_logging",
    "HealthResult",
    "InstanceRef",
    "InstanceResult",
    "RolloutReport",
    "HealthProber",
    "TargetResolver",
    "RolloutController",
    "InstanceUpdater",
]
