"""Various shared types."""

import datetime
from enum import StrEnum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ScalerType(StrEnum):
    """Trigger types that can be served."""

    SqsQueue = "aws-sqs-queue"
    Cloudwatch = "aws-cloudwatch"


class PodIdentityProvider(StrEnum):
    """Values accepted for the identity-provider mode of a trigger."""

    # FUTURE: Add support for IRSA ("aws-eks") once the host can pass the service account token.
    Unset = ""
    Kiam = "kiam"
    AwsCredentials = "aws-credentials"
    AwsRole = "aws-role"


class StaticCredentials(BaseModel):
    """Explicit access keys."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["static"] = "static"
    access_key_id: str
    secret_access_key: str = Field(repr=False)
    session_token: Optional[str] = Field(default=None, repr=False)


class AssumedRole(BaseModel):
    """A role that is exchanged for temporary credentials through STS."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["assumed-role"] = "assumed-role"
    role_arn: str
    # length of the STS session in minutes; None leaves it to STS
    session_duration: Optional[int] = None


class WorkloadIdentity(BaseModel):
    """Credentials handed to the pod by the platform (e.g. kiam intercepting the metadata API)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["workload-identity"] = "workload-identity"
    provider: str
    # role annotated on the pod; when set it is assumed on top of the pod's own credentials
    role_arn: Optional[str] = None


ResolvedAuth = Annotated[Union[StaticCredentials, AssumedRole, WorkloadIdentity], Field(discriminator="kind")]


class ScalerTargets(BaseModel):
    """Thresholds the autoscaler compares measurements against."""

    model_config = ConfigDict(frozen=True)

    target_value: float = Field(default=0, ge=0)
    # reported when a statistical query has no datapoints
    min_value: float = Field(default=0, ge=0)


class SqsQueueMetadata(BaseModel):
    """Validated metadata of an aws-sqs-queue trigger."""

    model_config = ConfigDict(frozen=True)

    queue_url: str
    aws_region: str
    targets: ScalerTargets
    auth: ResolvedAuth


class Dimension(BaseModel):
    """A single CloudWatch dimension filter."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class CloudwatchMetadata(BaseModel):
    """Validated metadata of an aws-cloudwatch trigger."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    dimensions: tuple[Dimension, ...]
    metric_name: str
    metric_stat: str
    # both in seconds
    metric_stat_period: int
    metric_collection_time: int
    aws_region: str
    targets: ScalerTargets
    auth: ResolvedAuth


class MetricSpec(BaseModel):
    """A metric a scaler exposes to the autoscaler, along with its target."""

    model_config = ConfigDict(frozen=True)

    metric_name: str
    target_size: int


class MetricSample(BaseModel):
    """A single measurement reported for a metric."""

    model_config = ConfigDict(frozen=True)

    metric_name: str
    value: int
    timestamp: datetime.datetime


class TriggerConfig(BaseModel):
    """Everything the host resolved for a trigger before asking for a scaler."""

    # trigger metadata as written on the ScaledObject
    metadata: dict[str, str] = Field(default_factory=dict)
    # environment of the scale target, with secrets already resolved
    resolved_env: dict[str, str] = Field(default_factory=dict)
    # parameters from a TriggerAuthentication
    auth_params: dict[str, str] = Field(default_factory=dict)
    # annotations of the scale target's pods
    resolved_annotations: dict[str, str] = Field(default_factory=dict)
    pod_identity: str = ""
