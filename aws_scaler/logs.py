"""Logging setup for hosts embedding the scalers."""

import logging
from typing import Optional

from aws_scaler import settings


def configure_logging(debug: Optional[bool] = None):
    """Configures the root logger, defaulting the level from settings."""
    if debug is None:
        debug = settings.settings.debug

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler()],
    )

    # Filter AWS SDK noise
    for name in ("boto3", "botocore", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARN)
