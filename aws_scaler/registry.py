"""Builds the scaler for a trigger type."""

import logging
from typing import Callable, Optional

from aws_scaler.errors import ConfigurationError
from aws_scaler.scaler import AwsCloudwatchScaler, AwsSqsQueueScaler, Scaler
from aws_scaler.types import ScalerType, TriggerConfig

_logger = logging.getLogger("scaler_registry")


def _build_sqs_queue(config: TriggerConfig, logger: Optional[logging.Logger]) -> Scaler:
    return AwsSqsQueueScaler(
        config.metadata,
        config.auth_params,
        pod_identity=config.pod_identity,
        resolved_annotations=config.resolved_annotations,
        logger=logger,
    )


def _build_cloudwatch(config: TriggerConfig, logger: Optional[logging.Logger]) -> Scaler:
    return AwsCloudwatchScaler(
        config.metadata,
        config.resolved_env,
        config.auth_params,
        pod_identity=config.pod_identity,
        resolved_annotations=config.resolved_annotations,
        logger=logger,
    )


SCALERS: dict[ScalerType, Callable[[TriggerConfig, Optional[logging.Logger]], Scaler]] = {
    ScalerType.SqsQueue: _build_sqs_queue,
    ScalerType.Cloudwatch: _build_cloudwatch,
}


def build_scaler(scaler_type: str, config: TriggerConfig, logger: Optional[logging.Logger] = None) -> Scaler:
    """Creates the scaler for a trigger.

    Raises ConfigurationError for unknown trigger types or unusable metadata; the host should
    report the trigger as misconfigured and not poll it.
    """
    try:
        builder = SCALERS[ScalerType(scaler_type)]
    except ValueError:
        _logger.warning("Rejecting trigger as it has an invalid type %s", scaler_type)
        raise ConfigurationError("Unsupported trigger type: %s" % scaler_type) from None

    scaler = builder(config, logger)
    _logger.debug("Built %s for trigger type %s", scaler.__class__.__name__, scaler_type)
    return scaler
