"""Tests trigger metadata parsing."""

import logging
from unittest.mock import MagicMock

import pytest

from aws_scaler.errors import ConfigurationError
from aws_scaler.metadata import (
    TARGET_QUEUE_LENGTH_DEFAULT,
    parse_cloudwatch_metadata,
    parse_queue_length,
    parse_sqs_queue_metadata,
)
from aws_scaler.types import AssumedRole, Dimension, StaticCredentials

RESOLVED_ENV = {
    "AWS_ACCESS_KEY": "none",
    "AWS_SECRET_ACCESS_KEY": "none",
}

STATIC_AUTH = {"awsAccessKeyId": "AKIAEXAMPLE", "awsSecretAccessKey": "secret"}


def _cloudwatch_metadata(**overrides) -> dict[str, str]:
    """Generates a minimal, valid aws-cloudwatch trigger."""
    metadata = {
        "namespace": "AWS/SQS",
        "dimensionName": "QueueName",
        "dimensionValue": "keda",
        "metricName": "ApproximateNumberOfMessagesVisible",
        "targetMetricValue": "2",
        "minMetricValue": "0",
        "awsRegion": "eu-west-1",
        "awsAccessKeyID": "AWS_ACCESS_KEY",
        "awsSecretAccessKey": "AWS_SECRET_ACCESS_KEY",
    }
    metadata.update(overrides)
    return {k: v for k, v in metadata.items() if v is not None}


def _sqs_metadata(**overrides) -> dict[str, str]:
    """Generates a minimal, valid aws-sqs-queue trigger."""
    metadata = {
        "queueURL": "https://sqs.eu-west-1.amazonaws.com/123456789012/q",
        "awsRegion": "eu-west-1",
    }
    metadata.update(overrides)
    return {k: v for k, v in metadata.items() if v is not None}


WINDOW = {"metricCollectionTime": "300", "metricStat": "Average", "metricStatPeriod": "300"}


@pytest.mark.parametrize(
    "metadata,auth_params,pod_identity,is_error",
    [
        pytest.param({}, {}, "", True, id="empty structures"),
        pytest.param(_cloudwatch_metadata(), {}, "", False, id="properly formed query and region"),
        pytest.param(_cloudwatch_metadata(**WINDOW), {}, "", False, id="optional parameters"),
        pytest.param(_cloudwatch_metadata(awsRegion=""), {}, "", True, id="empty region"),
        pytest.param(_cloudwatch_metadata(namespace=None), {}, "", True, id="missing namespace"),
        pytest.param(_cloudwatch_metadata(dimensionName=None), {}, "", True, id="missing dimensionName"),
        pytest.param(_cloudwatch_metadata(dimensionValue=None), {}, "", True, id="missing dimensionValue"),
        pytest.param(_cloudwatch_metadata(metricName=None), {}, "", True, id="missing metricName"),
        pytest.param(
            _cloudwatch_metadata(awsAccessKeyID=None, awsSecretAccessKey=None, **WINDOW),
            {"awsAccessKeyID": "none", "awsSecretAccessKey": "none"},
            "aws-credentials",
            False,
            id="aws-credentials from TriggerAuthentication",
        ),
        pytest.param(
            _cloudwatch_metadata(awsAccessKeyID=None, awsSecretAccessKey=None, **WINDOW),
            {"awsRoleArn": "none", "awsAssumeRoleDuration": "5"},
            "aws-role",
            False,
            id="aws-role from TriggerAuthentication",
        ),
        pytest.param(
            _cloudwatch_metadata(awsAccessKeyID=None, awsSecretAccessKey=None, **WINDOW),
            {"awsRoleArn": "none", "awsAssumeRoleDuration": ""},
            "aws-role",
            True,
            id="aws-role with invalid awsAssumeRoleDuration",
        ),
    ],
)
def test_cloudwatch_parse_metadata(metadata, auth_params, pod_identity, is_error):
    """Validates required keys and authentication for aws-cloudwatch triggers."""
    if is_error:
        with pytest.raises(ConfigurationError):
            parse_cloudwatch_metadata(metadata, RESOLVED_ENV, auth_params, pod_identity)
    else:
        parse_cloudwatch_metadata(metadata, RESOLVED_ENV, auth_params, pod_identity)


@pytest.mark.parametrize("missing", ["namespace", "dimensionName", "dimensionValue", "metricName", "awsRegion"])
def test_cloudwatch_missing_required_key_with_complete_auth(missing):
    """A missing required key fails no matter how complete authentication is."""
    metadata = _cloudwatch_metadata()
    del metadata[missing]

    with pytest.raises(ConfigurationError, match=missing):
        parse_cloudwatch_metadata(metadata, RESOLVED_ENV, STATIC_AUTH, "aws-credentials")


def test_cloudwatch_parsed_values():
    """Validates that metadata gets parsed into the descriptor correctly."""
    meta = parse_cloudwatch_metadata(
        _cloudwatch_metadata(metricCollectionTime="600", metricStat="Sum", metricStatPeriod="60"),
        RESOLVED_ENV,
        {},
        "",
    )

    assert meta.namespace == "AWS/SQS"
    assert meta.dimensions == (Dimension(name="QueueName", value="keda"),)
    assert meta.metric_name == "ApproximateNumberOfMessagesVisible"
    assert meta.metric_stat == "Sum"
    assert meta.metric_stat_period == 60
    assert meta.metric_collection_time == 600
    assert meta.aws_region == "eu-west-1"
    assert meta.targets.target_value == 2
    assert meta.targets.min_value == 0
    assert meta.auth == StaticCredentials(access_key_id="none", secret_access_key="none")


def test_cloudwatch_window_defaults():
    """Validates the windowing defaults when nothing is given."""
    meta = parse_cloudwatch_metadata(
        _cloudwatch_metadata(targetMetricValue=None, minMetricValue=None), RESOLVED_ENV, {}, ""
    )

    assert meta.metric_stat == "Average"
    assert meta.metric_stat_period == 300
    assert meta.metric_collection_time == 300
    assert meta.targets.target_value == 0
    assert meta.targets.min_value == 0


def test_cloudwatch_multiple_dimensions():
    """Validates that ;-separated dimensions keep their order."""
    meta = parse_cloudwatch_metadata(
        _cloudwatch_metadata(dimensionName="QueueName;Env", dimensionValue="keda; prod"), RESOLVED_ENV, {}, ""
    )

    assert meta.dimensions == (Dimension(name="QueueName", value="keda"), Dimension(name="Env", value="prod"))

    with pytest.raises(ConfigurationError, match="same number"):
        parse_cloudwatch_metadata(
            _cloudwatch_metadata(dimensionName="QueueName;Env", dimensionValue="keda"), RESOLVED_ENV, {}, ""
        )


@pytest.mark.parametrize("stat", ["SampleCount", "Average", "Sum", "Minimum", "Maximum", "p99", "p99.9"])
def test_cloudwatch_valid_stats(stat):
    """Validates accepted statistics."""
    meta = parse_cloudwatch_metadata(_cloudwatch_metadata(metricStat=stat), RESOLVED_ENV, {}, "")
    assert meta.metric_stat == stat


@pytest.mark.parametrize(
    "overrides",
    [
        {"metricStat": "Median"},
        {"metricStatPeriod": "abc"},
        {"metricStatPeriod": "0"},
        {"metricCollectionTime": "-60"},
        {"metricStatPeriod": "600", "metricCollectionTime": "300"},
        {"targetMetricValue": "lots"},
        {"minMetricValue": "-1"},
        {"targetMetricValue": "inf"},
        {"targetMetricValue": "nan"},
        {"minMetricValue": "infinity"},
    ],
)
def test_cloudwatch_malformed_optional_values(overrides):
    """Malformed windowing and targets fail the trigger."""
    with pytest.raises(ConfigurationError):
        parse_cloudwatch_metadata(_cloudwatch_metadata(**overrides), RESOLVED_ENV, {}, "")


def test_cloudwatch_secret_names_not_resolved():
    """Access key names that are missing from the resolved environment are not credentials."""
    with pytest.raises(ConfigurationError, match="No authentication"):
        parse_cloudwatch_metadata(_cloudwatch_metadata(), {"AWS_ACCESS_KEY": "none"}, {}, "")


def test_sqs_parse_metadata():
    """Validates that metadata from KEDA gets parsed correctly."""
    meta = parse_sqs_queue_metadata(_sqs_metadata(queueLength="10"), STATIC_AUTH, "")

    assert meta.queue_url == "https://sqs.eu-west-1.amazonaws.com/123456789012/q"
    assert meta.aws_region == "eu-west-1"
    assert meta.targets.target_value == 10
    assert meta.auth == StaticCredentials(access_key_id="AKIAEXAMPLE", secret_access_key="secret")


@pytest.mark.parametrize("missing", ["queueURL", "awsRegion"])
def test_sqs_missing_required_key(missing):
    """A missing or empty required key fails regardless of authentication."""
    with pytest.raises(ConfigurationError, match=missing):
        parse_sqs_queue_metadata(_sqs_metadata(**{missing: None}), STATIC_AUTH, "")

    with pytest.raises(ConfigurationError, match=missing):
        parse_sqs_queue_metadata(_sqs_metadata(**{missing: ""}), STATIC_AUTH, "")


def test_sqs_ignores_resolved_env_credentials():
    """Only TriggerAuthentication parameters can authenticate queue triggers."""
    with pytest.raises(ConfigurationError, match="No authentication"):
        parse_sqs_queue_metadata(
            _sqs_metadata(awsAccessKeyID="AWS_ACCESS_KEY", awsSecretAccessKey="AWS_SECRET_ACCESS_KEY"), {}, ""
        )


def test_sqs_role():
    """Validates the role ARN takes precedence over access keys."""
    meta = parse_sqs_queue_metadata(
        _sqs_metadata(),
        {"awsRoleArn": "arn:aws:iam::123456789012:role/keda", "awsAssumeRoleDuration": "30", **STATIC_AUTH},
        "aws-role",
    )

    assert meta.auth == AssumedRole(role_arn="arn:aws:iam::123456789012:role/keda", session_duration=30)


@pytest.mark.parametrize("value", ["", "5"])
def test_queue_length_valid(value):
    """Absent and well-formed queue lengths."""
    expected = TARGET_QUEUE_LENGTH_DEFAULT if value == "" else int(value)
    assert parse_queue_length({"queueLength": value}) == expected
    assert parse_queue_length({}) == TARGET_QUEUE_LENGTH_DEFAULT


@pytest.mark.parametrize("value", ["five", "1.5", "-3"])
def test_queue_length_lenient(value):
    """Malformed queue lengths fall back to the default with a warning instead of failing."""
    logger = MagicMock(spec=logging.Logger)

    meta = parse_sqs_queue_metadata(_sqs_metadata(queueLength=value), STATIC_AUTH, "", logger=logger)

    assert meta.targets.target_value == TARGET_QUEUE_LENGTH_DEFAULT
    logger.warning.assert_called_once()
