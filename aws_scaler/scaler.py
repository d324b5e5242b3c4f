"""Scalers turning AWS metrics into measurements the autoscaler can act on."""

import asyncio
import datetime
import logging
import math
import re
from typing import Generic, Mapping, Optional, TypeVar

from aws_scaler.backend import AwsBackend
from aws_scaler.errors import QueryError
from aws_scaler.metadata import parse_cloudwatch_metadata, parse_sqs_queue_metadata
from aws_scaler.types import CloudwatchMetadata, MetricSample, MetricSpec, SqsQueueMetadata

SQS_QUEUE_METRIC_NAME = "ApproximateNumberOfMessages"

T = TypeVar("T")


class Scaler(Generic[T]):
    """Generic interface for a metric source polled by the autoscaler.

    Metadata and credentials are fixed when a scaler is created; every poll makes a fresh
    measurement and nothing is cached between polls.
    """

    def __init__(self, metadata: T, backend: AwsBackend, logger: logging.Logger):
        self.metadata = metadata
        self.backend = backend
        self.logger = logger

    async def measure(self) -> float:
        """Reads the current value of the metric. Raises QueryError if the backend fails."""
        raise NotImplementedError("Not implemented!")

    def get_metric_spec(self) -> list[MetricSpec]:
        """Determines what metrics can be determined from this scaler."""
        raise NotImplementedError("Not implemented!")

    async def is_active(self) -> bool:
        """Determines if the workload should be scaled up from zero."""
        return await self.measure() > 0

    async def get_metrics(self, metric_name: str, selector: Optional[Mapping[str, str]] = None) -> list[MetricSample]:
        """Measures the metric and reports it under the requested name.

        The selector is accepted for compatibility with the external metrics API and is unused.
        """
        try:
            value = await self.measure()
        except QueryError as e:
            self.logger.warning("Error getting metric %s: %s", metric_name, e)
            raise

        # Rounded up so a sample is never 0 while is_active() sees a positive measurement
        return [
            MetricSample(
                metric_name=metric_name,
                value=math.ceil(value),
                timestamp=datetime.datetime.now(datetime.timezone.utc),
            )
        ]

    async def close(self):
        """Releases backend clients. Safe to call more than once."""
        await asyncio.to_thread(self.backend.close)


class AwsSqsQueueScaler(Scaler[SqsQueueMetadata]):
    """Scales on the approximate number of messages waiting in an SQS queue."""

    def __init__(
        self,
        metadata: Mapping[str, str],
        auth_params: Mapping[str, str],
        pod_identity: Optional[str] = "",
        resolved_annotations: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        logger = logger or logging.getLogger("aws_sqs_queue_scaler")

        meta = parse_sqs_queue_metadata(metadata, auth_params, pod_identity, resolved_annotations, logger)
        super().__init__(meta, AwsBackend(meta.auth, meta.aws_region), logger)

    async def measure(self) -> float:
        """Reads ApproximateNumberOfMessages for the queue."""
        value = await self.backend.get_queue_attribute(self.metadata.queue_url, SQS_QUEUE_METRIC_NAME)

        try:
            return int(value)
        except ValueError:
            raise QueryError(
                "%s of %s is not an integer: %r" % (SQS_QUEUE_METRIC_NAME, self.metadata.queue_url, value)
            ) from None

    def get_metric_spec(self) -> list[MetricSpec]:
        """Reports the queue length metric with the target queue length."""
        target_size = math.ceil(self.metadata.targets.target_value)
        return [MetricSpec(metric_name=SQS_QUEUE_METRIC_NAME, target_size=target_size)]


def _normalize_metric_name(name: str) -> str:
    """Makes a name safe to use as an external metric name."""
    return re.sub(r"[^a-z0-9-]+", "-", name.lower()).strip("-")


class AwsCloudwatchScaler(Scaler[CloudwatchMetadata]):
    """Scales on a windowed CloudWatch statistic."""

    def __init__(
        self,
        metadata: Mapping[str, str],
        resolved_env: Mapping[str, str],
        auth_params: Mapping[str, str],
        pod_identity: Optional[str] = "",
        resolved_annotations: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        logger = logger or logging.getLogger("aws_cloudwatch_scaler")

        meta = parse_cloudwatch_metadata(
            metadata, resolved_env, auth_params, pod_identity, resolved_annotations, logger
        )
        super().__init__(meta, AwsBackend(meta.auth, meta.aws_region), logger)

    async def measure(self) -> float:
        """Returns the most recent datapoint in the collection window.

        If CloudWatch has no datapoints for the window (e.g. a metric that is only published while
        there is traffic) the configured minimum is reported instead.
        """
        meta = self.metadata
        end = datetime.datetime.now(datetime.timezone.utc)
        start = end - datetime.timedelta(seconds=meta.metric_collection_time)

        values = await self.backend.get_metric_data(
            namespace=meta.namespace,
            metric_name=meta.metric_name,
            dimensions=meta.dimensions,
            stat=meta.metric_stat,
            period=meta.metric_stat_period,
            start=start,
            end=end,
        )

        if len(values) == 0:
            self.logger.debug(
                "No datapoints for %s/%s, using minimum %s", meta.namespace, meta.metric_name, meta.targets.min_value
            )
            return meta.targets.min_value

        return values[0]

    def get_metric_spec(self) -> list[MetricSpec]:
        """Reports the statistic, named after its first dimension."""
        dimension = self.metadata.dimensions[0]
        name = _normalize_metric_name("aws-cloudwatch-%s-%s" % (dimension.name, dimension.value))
        return [MetricSpec(metric_name=name, target_size=math.ceil(self.metadata.targets.target_value))]
