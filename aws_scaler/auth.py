"""Picks the single credential strategy a scaler will use for its lifetime."""

from typing import Mapping, Optional

from aws_scaler.errors import ConfigurationError
from aws_scaler.types import (
    AssumedRole,
    PodIdentityProvider,
    ResolvedAuth,
    StaticCredentials,
    WorkloadIdentity,
)

# Pod annotation kiam reads the role from
KIAM_ROLE_ANNOTATION = "iam.amazonaws.com/role"

# Trigger metadata keys naming entries of the resolved environment
METADATA_ACCESS_KEY_ID = "awsAccessKeyID"
METADATA_SECRET_ACCESS_KEY = "awsSecretAccessKey"


def parse_assume_role_duration(value: Optional[str]) -> Optional[int]:
    """Parses awsAssumeRoleDuration (minutes).

    Unlike target values this never falls back to a default: a malformed duration changes what
    the session is allowed to do, so it fails the trigger.
    """
    if value is None:
        return None

    try:
        duration = int(value.strip())
    except ValueError:
        raise ConfigurationError("awsAssumeRoleDuration must be an integer, got %r" % value) from None

    if duration <= 0:
        raise ConfigurationError("awsAssumeRoleDuration must be positive, got %d" % duration)

    return duration


def _static_from_auth_params(auth_params: Mapping[str, str]) -> Optional[StaticCredentials]:
    """Reads access keys from TriggerAuthentication parameters."""
    # Both spellings are seen in the wild for the key id
    access_key_id = auth_params.get("awsAccessKeyId") or auth_params.get("awsAccessKeyID")
    secret_access_key = auth_params.get("awsSecretAccessKey")

    if not access_key_id or not secret_access_key:
        return None

    return StaticCredentials(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        session_token=auth_params.get("awsSessionToken") or None,
    )


def _static_from_resolved_env(
    metadata: Optional[Mapping[str, str]], resolved_env: Optional[Mapping[str, str]]
) -> Optional[StaticCredentials]:
    """Reads access keys indirectly: metadata names the variables, the resolved environment holds them."""
    if metadata is None or resolved_env is None:
        return None

    access_key_name = metadata.get(METADATA_ACCESS_KEY_ID)
    secret_key_name = metadata.get(METADATA_SECRET_ACCESS_KEY)
    if not access_key_name or not secret_key_name:
        return None

    access_key_id = resolved_env.get(access_key_name)
    secret_access_key = resolved_env.get(secret_key_name)
    if not access_key_id or not secret_access_key:
        return None

    return StaticCredentials(access_key_id=access_key_id, secret_access_key=secret_access_key)


def resolve_auth(
    pod_identity: Optional[str],
    auth_params: Mapping[str, str],
    resolved_annotations: Optional[Mapping[str, str]] = None,
    metadata: Optional[Mapping[str, str]] = None,
    resolved_env: Optional[Mapping[str, str]] = None,
) -> ResolvedAuth:
    """Resolves exactly one credential strategy, first match wins.

    1. kiam pod identity - credentials come from the platform.
    2. otherwise, from TriggerAuthentication parameters: a role ARN, then access keys.
    3. otherwise, access keys named in the metadata and held in the resolved environment. Only
       scalers that support this pass `metadata` and `resolved_env`.
    """
    try:
        provider = PodIdentityProvider(pod_identity or "")
    except ValueError:
        raise ConfigurationError("Unsupported pod identity provider: %s" % pod_identity) from None

    if provider == PodIdentityProvider.Kiam:
        annotations = resolved_annotations or {}
        return WorkloadIdentity(provider=provider.value, role_arn=annotations.get(KIAM_ROLE_ANNOTATION) or None)

    role_arn = auth_params.get("awsRoleArn")
    if role_arn:
        return AssumedRole(
            role_arn=role_arn,
            session_duration=parse_assume_role_duration(auth_params.get("awsAssumeRoleDuration")),
        )

    static = _static_from_auth_params(auth_params)
    if static is not None:
        return static

    static = _static_from_resolved_env(metadata, resolved_env)
    if static is not None:
        return static

    raise ConfigurationError("No authentication was found")
