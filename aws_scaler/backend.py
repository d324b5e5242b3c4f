"""Wrapper for the AWS APIs that metrics are read from."""

import asyncio
import datetime
import logging
import threading
from typing import Any, Optional, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from aws_scaler import settings
from aws_scaler.errors import QueryError
from aws_scaler.types import AssumedRole, Dimension, ResolvedAuth, StaticCredentials

# STS refuses sessions shorter than 15 minutes
MIN_ASSUME_ROLE_SECONDS = 900

# Assumed role credentials are renewed this long before they expire
EXPIRY_WINDOW = datetime.timedelta(minutes=5)


class AwsBackend:
    """Lazily creates boto3 clients for a single scaler and runs calls against them.

    Credentials are decided before this is created. The only thing managed here is the session
    lifetime: assumed role sessions are exchanged through STS on first use and renewed once they
    are close to expiring.
    """

    def __init__(self, auth: ResolvedAuth, region: str):
        self.auth = auth
        self.region = region

        self.config = Config(
            region_name=region,
            connect_timeout=settings.settings.aws_connect_timeout,
            read_timeout=settings.settings.aws_read_timeout,
            retries={"mode": "standard", "total_max_attempts": settings.settings.aws_max_attempts},
        )

        self._session: Optional[boto3.Session] = None
        self._session_expiry: Optional[datetime.datetime] = None
        self._clients: dict[str, Any] = {}
        self._lock = threading.Lock()

        self.logger = logging.getLogger("aws_backend")

    def _new_client(self, session: boto3.Session, service: str) -> Any:
        """Creates a client with the shared config."""
        return session.client(service, config=self.config, endpoint_url=settings.settings.aws_endpoint_url)

    def _assume_role(self, role_arn: str, session_duration: Optional[int] = None) -> boto3.Session:
        """Exchanges the pod's own credentials for a session in the target role."""
        sts = self._new_client(boto3.Session(region_name=self.region), "sts")

        kwargs: dict[str, Any] = {
            "RoleArn": role_arn,
            "RoleSessionName": settings.settings.assume_role_session_name,
        }
        if session_duration is not None:
            kwargs["DurationSeconds"] = max(session_duration * 60, MIN_ASSUME_ROLE_SECONDS)

        try:
            credentials = sts.assume_role(**kwargs)["Credentials"]
        finally:
            sts.close()

        self._session_expiry = credentials["Expiration"]
        self.logger.info("Assumed role %s until %s", role_arn, self._session_expiry)

        return boto3.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=self.region,
        )

    def _create_session(self) -> boto3.Session:
        """Builds a session for the resolved credentials."""
        if isinstance(self.auth, StaticCredentials):
            return boto3.Session(
                aws_access_key_id=self.auth.access_key_id,
                aws_secret_access_key=self.auth.secret_access_key,
                aws_session_token=self.auth.session_token,
                region_name=self.region,
            )
        elif isinstance(self.auth, AssumedRole):
            return self._assume_role(self.auth.role_arn, self.auth.session_duration)
        elif self.auth.role_arn is not None:
            # Workload identity with an annotated role: assume it using the pod's own credentials
            return self._assume_role(self.auth.role_arn)
        else:
            # Workload identity is served through the default provider chain
            return boto3.Session(region_name=self.region)

    def _session_expired(self) -> bool:
        """Checks if the current (temporary) credentials need renewing."""
        if self._session_expiry is None:
            return False
        return self._session_expiry - EXPIRY_WINDOW <= datetime.datetime.now(datetime.timezone.utc)

    def _close_clients(self):
        """Closes all clients. Must hold the lock."""
        for client in self._clients.values():
            client.close()
        self._clients.clear()

    def client(self, service: str) -> Any:
        """Returns the client for a service, creating the session on first use."""
        with self._lock:
            if self._session is None or self._session_expired():
                if self._session is not None:
                    self.logger.info("Renewing expiring credentials for %s", self.auth.kind)
                    self._close_clients()
                self._session = self._create_session()

            if service not in self._clients:
                self._clients[service] = self._new_client(self._session, service)

            return self._clients[service]

    def _call(self, service: str, operation: str, **kwargs) -> dict:
        """Makes a single AWS call, converting SDK failures into query errors."""
        try:
            client = self.client(service)
            return getattr(client, operation)(**kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            raise QueryError("%s %s failed: %s" % (service, operation, e), code=code) from e
        except BotoCoreError as e:
            raise QueryError("%s %s failed: %s" % (service, operation, e)) from e

    async def _run(self, service: str, operation: str, **kwargs) -> dict:
        """Runs a blocking AWS call in a worker thread so callers can cancel or time out the wait."""
        return await asyncio.to_thread(self._call, service, operation, **kwargs)

    async def get_queue_attribute(self, queue_url: str, attribute: str) -> str:
        """Returns a single attribute of an SQS queue."""
        resp = await self._run("sqs", "get_queue_attributes", QueueUrl=queue_url, AttributeNames=[attribute])

        value = resp.get("Attributes", {}).get(attribute)
        if value is None:
            raise QueryError("Queue %s did not report %s" % (queue_url, attribute))

        return value

    async def get_metric_data(
        self,
        namespace: str,
        metric_name: str,
        dimensions: Sequence[Dimension],
        stat: str,
        period: int,
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> list[float]:
        """Queries a single CloudWatch statistic, returning datapoints with the most recent first."""
        resp = await self._run(
            "cloudwatch",
            "get_metric_data",
            MetricDataQueries=[
                {
                    "Id": "c1",
                    "MetricStat": {
                        "Metric": {
                            "Namespace": namespace,
                            "MetricName": metric_name,
                            "Dimensions": [{"Name": d.name, "Value": d.value} for d in dimensions],
                        },
                        "Period": period,
                        "Stat": stat,
                    },
                    "ReturnData": True,
                }
            ],
            StartTime=start,
            EndTime=end,
            ScanBy="TimestampDescending",
        )

        results = resp.get("MetricDataResults", [])
        if len(results) == 0:
            return []

        return list(results[0].get("Values", []))

    def close(self):
        """Releases all clients. Safe to call more than once."""
        with self._lock:
            self._close_clients()
            self._session = None
            self._session_expiry = None
