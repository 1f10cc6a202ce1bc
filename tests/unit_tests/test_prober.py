"""
Unit tests for the health prober.
"""

import unittest
from unittest.mock import MagicMock

import requests

from config import DeployConfig
from models import HealthStatus, InstanceRef
from prober import HealthProber

ENDPOINT = "http://10.0.0.1:8000/health"


def response(status_code=200, body=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


class TestHealthProber(unittest.TestCase):
    """Test HealthProber classification and retry policy."""

    def setUp(self):
        self.session = MagicMock()
        self.sleep = MagicMock()

    def make_prober(self, attempts=1, delay=0.0):
        return HealthProber(
            attempts=attempts,
            delay=delay,
            timeout=2.0,
            session=self.session,
            sleep=self.sleep,
        )

    def test_healthy(self):
        self.session.get.return_value = response(200, {"status": "ok"})

        result = self.make_prober().probe(ENDPOINT)

        self.assertEqual(result.status, HealthStatus.HEALTHY)
        self.assertEqual(result.status_code, 200)
        self.assertEqual(result.endpoint, ENDPOINT)
        self.session.get.assert_called_once_with(ENDPOINT, timeout=2.0)

    def test_non_2xx_is_unhealthy(self):
        self.session.get.return_value = response(503, text="Service Unavailable")

        result = self.make_prober().probe(ENDPOINT)

        self.assertEqual(result.status, HealthStatus.UNHEALTHY)
        self.assertIn("503", result.detail)

    def test_failing_body_is_unhealthy(self):
        self.session.get.return_value = response(200, {"status": "unhealthy"})

        result = self.make_prober().probe(ENDPOINT)

        self.assertEqual(result.status, HealthStatus.UNHEALTHY)

    def test_timeout(self):
        self.session.get.side_effect = requests.Timeout("read timed out")

        result = self.make_prober().probe(ENDPOINT)

        self.assertEqual(result.status, HealthStatus.TIMEOUT)

    def test_connection_refused_is_timeout(self):
        self.session.get.side_effect = requests.ConnectionError("refused")

        result = self.make_prober().probe(ENDPOINT)

        self.assertEqual(result.status, HealthStatus.TIMEOUT)

    def test_single_attempt_waits_once(self):
        """Test the default wait-then-check policy."""
        self.session.get.return_value = response(200)

        self.make_prober(attempts=1, delay=10.0).probe(ENDPOINT)

        self.sleep.assert_called_once_with(10.0)
        self.assertEqual(self.session.get.call_count, 1)

    def test_retries_until_healthy(self):
        self.session.get.side_effect = [
            requests.ConnectionError("refused"),
            response(502),
            response(200),
        ]

        result = self.make_prober(attempts=5, delay=1.0).probe(ENDPOINT)

        self.assertTrue(result.healthy)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(self.session.get.call_count, 3)
        self.assertEqual(self.sleep.call_count, 3)

    def test_gives_up_after_attempts(self):
        self.session.get.return_value = response(500)

        result = self.make_prober(attempts=3).probe(ENDPOINT)

        self.assertEqual(result.status, HealthStatus.UNHEALTHY)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(self.session.get.call_count, 3)

    def test_endpoint_for_instance(self):
        prober = HealthProber.from_config(
            DeployConfig(health_port=9000, health_path="ready"), session=self.session
        )

        self.assertEqual(
            prober.endpoint_for(InstanceRef("i-1", private_ip="10.0.0.7")),
            "http://10.0.0.7:9000/ready",
        )
        self.assertEqual(
            prober.endpoint_for(InstanceRef("i-2")), "http://i-2:9000/ready"
        )


if __name__ == "__main__":
    unittest.main()
