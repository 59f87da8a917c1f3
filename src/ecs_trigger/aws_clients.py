"""AWS client construction for ecs_trigger."""

from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .errors import CredentialsError

DEFAULT_REGION = "us-east-1"


def _boto_config() -> BotoConfig:
    return BotoConfig(
        retries={
            "max_attempts": 10,
            "mode": "adaptive",
        },
        max_pool_connections=10,
    )


class AWSClients:
    """Container for the ECS, EventBridge and EventBridge Scheduler clients."""

    def __init__(self, ecs: Any, events: Any, scheduler: Any, region: str):
        self.ecs = ecs
        self.events = events
        self.scheduler = scheduler
        self.region = region


def create_aws_clients(profile: str, region: Optional[str] = None) -> AWSClients:
    """Build clients for ``profile`` and make sure its credentials resolve.

    Credentials are resolved eagerly so that a missing or broken profile
    fails here rather than on the first API call.

    Raises:
        CredentialsError: if the profile is unknown or yields no credentials
    """
    try:
        session = boto3.Session(profile_name=profile)

        credentials = session.get_credentials()
        if credentials is None:
            raise CredentialsError("No credentials found", profile)
        # Forces refreshable providers (SSO, assume-role) to fetch now
        credentials.get_frozen_credentials()

        region_name = region or session.region_name or DEFAULT_REGION
        boto_config = _boto_config()

        return AWSClients(
            ecs=session.client("ecs", region_name=region_name, config=boto_config),
            events=session.client("events", region_name=region_name, config=boto_config),
            scheduler=session.client("scheduler", region_name=region_name, config=boto_config),
            region=region_name,
        )
    except CredentialsError:
        raise
    except (BotoCoreError, ClientError) as e:
        raise CredentialsError(str(e), profile) from e
