"""
Best-effort rollout notifications.

A notifier must never fail a rollout: every error is logged and dropped.
"""

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

LEVEL_EMOJI = {
    "info": ":rocket:",
    "success": ":white_check_mark:",
    "warning": ":warning:",
    "error": ":x:",
}


class LogNotifier:
    """Notifier used when no chat webhook is configured."""

    def notify(self, message: str, level: str = "info") -> None:
        logger.info(f"[notify:{level}] {message}")


class SlackNotifier:
    """Posts rollout status messages to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def notify(self, message: str, level: str = "info") -> None:
        text = f"{LEVEL_EMOJI.get(level, '')} {message}".strip()
        try:
            resp = self.session.post(
                self.webhook_url, json={"text": text}, timeout=self.timeout
            )
            if resp.status_code >= 400:
                logger.warning(
                    f"Slack notification rejected ({resp.status_code}): {resp.text[:200]}"
                )
        except Exception as e:
            logger.warning(f"Slack notification failed: {e}")


def build_notifier(webhook_url: Optional[str]):
    """Return a Slack notifier if a webhook is configured, else a log-only one."""
    if webhook_url:
        return SlackNotifier(webhook_url)
    return LogNotifier()
