"""
Health prober for instance and environment-level health endpoints.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

import requests

from models import HealthResult, HealthStatus, InstanceRef

logger = logging.getLogger(__name__)

# Values of a JSON "status" field that mean the service considers itself down.
FAILING_BODY_STATUSES = {"unhealthy", "fail", "failed", "error", "down"}


class HealthProber:
    """Probes a health endpoint a fixed number of times with a fixed delay."""

    def __init__(
        self,
        attempts: int = 1,
        delay: float = 10.0,
        timeout: float = 10.0,
        port: int = 8000,
        path: str = "/health",
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the prober.

        Args:
            attempts: Number of probe attempts before giving up
            delay: Seconds to wait before each attempt
            timeout: Per-request timeout in seconds
            port: Port of the per-instance health endpoint
            path: Path of the per-instance health endpoint
            session: Optional requests session
            sleep: Sleep function, replaceable in tests
        """
        self.attempts = max(1, attempts)
        self.delay = delay
        self.timeout = timeout
        self.port = port
        self.path = path if path.startswith("/") else f"/{path}"
        self.session = session or requests.Session()
        self.sleep = sleep

    @classmethod
    def from_config(cls, config, **kwargs) -> "HealthProber":
        return cls(
            attempts=config.health_attempts,
            delay=config.health_delay,
            timeout=config.health_timeout,
            port=config.health_port,
            path=config.health_path,
            **kwargs,
        )

    def endpoint_for(self, instance: InstanceRef) -> str:
        """Health URL of one instance, addressed by its private IP."""
        host = instance.private_ip or instance.instance_id
        return f"http://{host}:{self.port}{self.path}"

    def probe(self, endpoint: str) -> HealthResult:
        """
        Probe an endpoint until it reports healthy or attempts run out.

        Returns:
            The first healthy result, otherwise the result of the last attempt
        """
        result = None
        for attempt in range(1, self.attempts + 1):
            if self.delay > 0:
                self.sleep(self.delay)

            result = self._probe_once(endpoint)
            result.attempts = attempt
            if result.healthy:
                logger.info(f"✓ {endpoint} is healthy (attempt {attempt}/{self.attempts})")
                return result

            logger.warning(
                f"{endpoint} is {result.status.value} "
                f"(attempt {attempt}/{self.attempts}): {result.detail}"
            )

        return result

    def _probe_once(self, endpoint: str) -> HealthResult:
        try:
            resp = self.session.get(endpoint, timeout=self.timeout)
        except (requests.Timeout, requests.ConnectionError) as e:
            return HealthResult(
                endpoint=endpoint,
                status=HealthStatus.TIMEOUT,
                checked_at=datetime.now(),
                detail=f"no response: {e}",
            )
        except requests.RequestException as e:
            return HealthResult(
                endpoint=endpoint,
                status=HealthStatus.UNHEALTHY,
                checked_at=datetime.now(),
                detail=str(e),
            )

        status = HealthStatus.HEALTHY
        detail = f"HTTP {resp.status_code}"

        if not 200 <= resp.status_code < 300:
            status = HealthStatus.UNHEALTHY
            detail = f"HTTP {resp.status_code}: {resp.text[:200]}"
        else:
            body_status = self._body_status(resp)
            if body_status in FAILING_BODY_STATUSES:
                status = HealthStatus.UNHEALTHY
                detail = f"HTTP {resp.status_code} with status={body_status}"

        return HealthResult(
            endpoint=endpoint,
            status=status,
            checked_at=datetime.now(),
            status_code=resp.status_code,
            detail=detail,
        )

    @staticmethod
    def _body_status(resp) -> Optional[str]:
        try:
            data = resp.json()
        except ValueError:
            return None
        if isinstance(data, dict) and isinstance(data.get("status"), str):
            return data["status"].lower()
        return None
