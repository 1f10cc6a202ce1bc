"""
Logging utilities for the Luma fleet deployment tool.
"""

import logging
import sys

# Chatty third-party loggers that drown out rollout progress at DEBUG.
NOISY_LOGGERS = ("boto3", "botocore", "urllib3")


def setup_logging(
    verbose: bool = False, log_file: str = "fleet-deploy.log"
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        verbose: Enable verbose (DEBUG) logging
        log_file: Path to log file, or None for stdout only

    Returns:
        Logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(__name__)
