"""Shared fixtures for ecs_trigger tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ecs_trigger.aws_clients import AWSClients
from ecs_trigger.models import LaunchType, NetworkConfiguration, ScheduledTask

from helpers import CLUSTER_ARN, TASK_DEF_ARN


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def mock_clients():
    """AWSClients whose service clients are MagicMocks."""
    return AWSClients(ecs=MagicMock(), events=MagicMock(), scheduler=MagicMock(), region="us-east-1")


@pytest.fixture
def scheduled_task():
    return ScheduledTask(
        rule_name="nightly-job",
        rule_arn="arn:aws:events:us-east-1:123456789012:rule/nightly-job",
        schedule_expression="cron(0 3 * * ? *)",
        cluster_arn=CLUSTER_ARN,
        task_definition_arn=TASK_DEF_ARN,
        network_configuration=NetworkConfiguration(
            subnets=["subnet-aaa"], security_groups=["sg-111"], assign_public_ip="DISABLED"
        ),
        launch_type=LaunchType.FARGATE,
        platform_version="LATEST",
        enabled=True,
        task_count=1,
        source="eventbridge-rules",
    )
