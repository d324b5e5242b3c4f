"""Scaler configuration options."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Scaler environment variables parsed into settings object."""

    model_config = SettingsConfigDict(env_prefix="scaler_", extra="allow")

    # If debug logging should be enabled
    debug: bool = False

    # Overrides the AWS endpoint for every client (e.g. a localstack URL)
    aws_endpoint_url: Optional[str] = None

    # Total attempts per AWS call; 1 means botocore does not retry and the next poll is the retry
    aws_max_attempts: int = 1

    # Socket timeouts (seconds) for AWS calls
    aws_connect_timeout: float = 10
    aws_read_timeout: float = 30

    # Session name reported to STS when assuming a role
    assume_role_session_name: str = "keda-aws-scaler"


settings = Settings()
