"""
Target resolution: which instances a rollout acts on.
"""

import logging
from typing import List

from errors import NoInstancesFound
from models import Environment, InstanceRef

logger = logging.getLogger(__name__)


class TargetResolver:
    """Discovers the running instances of an environment's fleet."""

    def __init__(self, client, project_tag: str):
        self.client = client
        self.project_tag = project_tag

    def resolve(self, environment: str) -> List[InstanceRef]:
        """
        Return a snapshot of the running instances for an environment.

        The environment is validated before the inventory is queried, so an
        invalid name never results in an API call.

        Raises:
            InvalidEnvironment: If the environment name is not recognised
            NoInstancesFound: If the fleet has no running instances
        """
        env = Environment.parse(environment)

        logger.info(f"Finding instances in {env.value} (project={self.project_tag})...")
        instances = self.client.list_running_instances(env.value, self.project_tag)
        if not instances:
            raise NoInstancesFound(env.value)

        logger.info(
            f"Found {len(instances)} instance(s): "
            f"{', '.join(i.instance_id for i in instances)}"
        )
        return list(instances)
