"""
Release marker: remembers which artifacts each environment was rolled to.

Two SSM parameters per environment: ``attempted-artifact`` is written at the
start of every rollout, ``deployed-artifact`` only when a rollout succeeds.
SSM keeps the value history of both, so the last known-good reference can be
found without a separate ledger.
"""

import logging
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from errors import DeployError

logger = logging.getLogger(__name__)

DEPLOYED = "deployed-artifact"
ATTEMPTED = "attempted-artifact"


class ReleaseMarker:
    """Reads and writes attempted and successfully deployed artifact references."""

    def __init__(self, client, project_tag: str):
        self.client = client
        self.project_tag = project_tag

    def parameter_name(self, environment: str, kind: str = DEPLOYED) -> str:
        return f"/{self.project_tag}/{environment}/{kind}"

    def record(self, environment: str, artifact_ref: str) -> bool:
        """
        Record a successful rollout. Failures are logged, never raised.

        Returns:
            True if the marker was written
        """
        return self._put(self.parameter_name(environment, DEPLOYED), artifact_ref)

    def record_attempt(self, environment: str, artifact_ref: str) -> bool:
        """Record that a rollout of artifact_ref has started."""
        return self._put(self.parameter_name(environment, ATTEMPTED), artifact_ref)

    def _put(self, name: str, artifact_ref: str) -> bool:
        try:
            self.client.put_release(name, artifact_ref)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not record {artifact_ref} in {name}: {e}")
            return False
        logger.info(f"Recorded {artifact_ref} in {name}")
        return True

    def _history(self, environment: str, kind: str) -> List[str]:
        name = self.parameter_name(environment, kind)
        try:
            return self.client.get_release_history(name)
        except (ClientError, BotoCoreError) as e:
            raise DeployError(f"Could not read release history {name}: {e}") from e

    def previous(self, environment: str) -> Optional[str]:
        """
        Return the newest known-good reference other than the last attempted one.

        After a failed rollout this is the release the fleet ran before it;
        after a successful one it is the release before that. Without any
        recorded attempt the newest deployed reference counts as the last
        attempt.

        Returns:
            The artifact reference to roll back to, or None if there is none

        Raises:
            DeployError: If the history cannot be read
        """
        deployed = self._history(environment, DEPLOYED)
        if not deployed:
            return None

        attempted = self._history(environment, ATTEMPTED)
        last_attempt = attempted[-1] if attempted else deployed[-1]

        for value in reversed(deployed):
            if value != last_attempt:
                return value
        return None
