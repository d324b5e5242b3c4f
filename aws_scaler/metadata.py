"""Parses trigger metadata from KEDA into validated, typed descriptors."""

import logging
import math
import re
from typing import Mapping, Optional

from aws_scaler.auth import resolve_auth
from aws_scaler.errors import ConfigurationError
from aws_scaler.types import CloudwatchMetadata, Dimension, ScalerTargets, SqsQueueMetadata

TARGET_QUEUE_LENGTH_DEFAULT = 5

DEFAULT_METRIC_COLLECTION_TIME = 300
DEFAULT_METRIC_STAT = "Average"
DEFAULT_METRIC_STAT_PERIOD = 300

CLOUDWATCH_STATISTICS = frozenset(["SampleCount", "Average", "Sum", "Minimum", "Maximum"])
# Extended statistics, e.g. p99 or p99.9
PERCENTILE_STAT = re.compile(r"^p\d{1,2}(\.\d{1,2})?$")

# Several dimensions are given as matching lists: dimensionName: "a;b", dimensionValue: "x;y"
DIMENSION_SEPARATOR = ";"

_logger = logging.getLogger("scaler_metadata")


def _required(metadata: Mapping[str, str], key: str) -> str:
    """Fetches a key that must be present and non-empty."""
    value = metadata.get(key, "")
    if value == "":
        raise ConfigurationError("no %s given" % key)
    return value


def _optional_number(metadata: Mapping[str, str], key: str, default: float) -> float:
    """Parses an optional non-negative number."""
    value = metadata.get(key, "")
    if value == "":
        return default

    try:
        number = float(value)
    except ValueError:
        raise ConfigurationError("%s must be a number, got %r" % (key, value)) from None

    if not math.isfinite(number):
        raise ConfigurationError("%s must be a finite number, got %r" % (key, value))

    if number < 0:
        raise ConfigurationError("%s must not be negative, got %r" % (key, value))

    return number


def _optional_seconds(metadata: Mapping[str, str], key: str, default: int) -> int:
    """Parses an optional, positive number of seconds."""
    value = metadata.get(key, "")
    if value == "":
        return default

    try:
        seconds = int(value)
    except ValueError:
        raise ConfigurationError("%s must be an integer number of seconds, got %r" % (key, value)) from None

    if seconds <= 0:
        raise ConfigurationError("%s must be positive, got %r" % (key, value))

    return seconds


def parse_queue_length(metadata: Mapping[str, str], logger: Optional[logging.Logger] = None) -> int:
    """Parses the target queue length.

    A bad target should not stop a workload from scaling, so malformed values fall back to the
    default with a warning rather than failing the trigger.
    """
    logger = logger or _logger

    value = metadata.get("queueLength", "")
    if value == "":
        return TARGET_QUEUE_LENGTH_DEFAULT

    try:
        queue_length = int(value)
    except ValueError:
        queue_length = -1

    if queue_length < 0:
        logger.warning(
            "Error parsing SQS queue metadata queueLength %r, using default %d", value, TARGET_QUEUE_LENGTH_DEFAULT
        )
        return TARGET_QUEUE_LENGTH_DEFAULT

    return queue_length


def parse_dimensions(metadata: Mapping[str, str]) -> tuple[Dimension, ...]:
    """Pairs up dimension names and values, preserving their order."""
    names = [x.strip() for x in _required(metadata, "dimensionName").split(DIMENSION_SEPARATOR)]
    values = [x.strip() for x in _required(metadata, "dimensionValue").split(DIMENSION_SEPARATOR)]

    if len(names) != len(values):
        raise ConfigurationError(
            "dimensionName and dimensionValue must have the same number of entries (%d != %d)"
            % (len(names), len(values))
        )

    if "" in names or "" in values:
        raise ConfigurationError("dimensionName and dimensionValue must not contain empty entries")

    return tuple(Dimension(name=name, value=value) for name, value in zip(names, values))


def parse_metric_stat(metadata: Mapping[str, str]) -> str:
    """Validates the CloudWatch statistic to query."""
    stat = metadata.get("metricStat", "") or DEFAULT_METRIC_STAT
    if stat not in CLOUDWATCH_STATISTICS and PERCENTILE_STAT.match(stat) is None:
        raise ConfigurationError("metricStat %r is not a valid CloudWatch statistic" % stat)
    return stat


def parse_sqs_queue_metadata(
    metadata: Mapping[str, str],
    auth_params: Mapping[str, str],
    pod_identity: Optional[str],
    resolved_annotations: Optional[Mapping[str, str]] = None,
    logger: Optional[logging.Logger] = None,
) -> SqsQueueMetadata:
    """Parses metadata of an aws-sqs-queue trigger."""
    target_queue_length = parse_queue_length(metadata, logger)
    queue_url = _required(metadata, "queueURL")
    aws_region = _required(metadata, "awsRegion")

    return SqsQueueMetadata(
        queue_url=queue_url,
        aws_region=aws_region,
        targets=ScalerTargets(target_value=target_queue_length),
        auth=resolve_auth(pod_identity, auth_params, resolved_annotations),
    )


def parse_cloudwatch_metadata(
    metadata: Mapping[str, str],
    resolved_env: Mapping[str, str],
    auth_params: Mapping[str, str],
    pod_identity: Optional[str],
    resolved_annotations: Optional[Mapping[str, str]] = None,
    logger: Optional[logging.Logger] = None,
) -> CloudwatchMetadata:
    """Parses metadata of an aws-cloudwatch trigger.

    Access keys may additionally be given as `awsAccessKeyID` / `awsSecretAccessKey`, naming
    variables in the resolved environment of the scale target.
    """
    logger = logger or _logger

    namespace = _required(metadata, "namespace")
    dimensions = parse_dimensions(metadata)
    metric_name = _required(metadata, "metricName")

    targets = ScalerTargets(
        target_value=_optional_number(metadata, "targetMetricValue", 0),
        min_value=_optional_number(metadata, "minMetricValue", 0),
    )

    metric_stat = parse_metric_stat(metadata)
    metric_stat_period = _optional_seconds(metadata, "metricStatPeriod", DEFAULT_METRIC_STAT_PERIOD)
    metric_collection_time = _optional_seconds(metadata, "metricCollectionTime", DEFAULT_METRIC_COLLECTION_TIME)
    if metric_stat_period > metric_collection_time:
        raise ConfigurationError(
            "metricStatPeriod (%d) must not exceed metricCollectionTime (%d)"
            % (metric_stat_period, metric_collection_time)
        )

    aws_region = _required(metadata, "awsRegion")

    auth = resolve_auth(pod_identity, auth_params, resolved_annotations, metadata=metadata, resolved_env=resolved_env)
    logger.debug("Resolved %s credentials for %s/%s", auth.kind, namespace, metric_name)

    return CloudwatchMetadata(
        namespace=namespace,
        dimensions=dimensions,
        metric_name=metric_name,
        metric_stat=metric_stat,
        metric_stat_period=metric_stat_period,
        metric_collection_time=metric_collection_time,
        aws_region=aws_region,
        targets=targets,
        auth=auth,
    )
