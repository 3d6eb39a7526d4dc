"""boto3 client construction shared by the Bedrock adapter."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config

from scribe.config.settings import settings


def _credentials(key_pair: tuple[str, str] | None) -> dict[str, str]:
    if key_pair and all(key_pair):
        access_key, secret_key = key_pair
    elif settings.aws.access_key and settings.aws.secret_key:
        access_key, secret_key = settings.aws.access_key, settings.aws.secret_key
    else:
        # Fall through to the default boto3 credential chain.
        return {}
    return {"aws_access_key_id": access_key, "aws_secret_access_key": secret_key}


def create_boto3_client(
    service_name: str,
    *,
    region_name: str | None = None,
    key_pair: tuple[str, str] | None = None,
    read_timeout: float | None = None,
) -> Any:
    """Client for ``service_name`` with a bounded read timeout and no retries.

    Callers on the realtime path enforce their own deadline, so botocore's
    retry loop is switched off to keep a slow model from outliving it.
    """

    config = Config(
        read_timeout=read_timeout or 60,
        connect_timeout=5,
        retries={"max_attempts": 1, "mode": "standard"},
    )
    kwargs: dict[str, Any] = {
        "region_name": region_name or settings.aws.region,
        "config": config,
        **_credentials(key_pair),
    }
    return boto3.client(service_name, **kwargs)


__all__ = ["create_boto3_client"]
