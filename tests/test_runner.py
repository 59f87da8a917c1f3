"""Tests for launching scheduled tasks and polling them."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from helpers import CLUSTER_ARN, TASK_ARN, TASK_DEF_ARN, client_error
from ecs_trigger.errors import CredentialsError, EcsTriggerError, TaskStartError
from ecs_trigger.models import LaunchType, NetworkConfiguration
from ecs_trigger.runner import (
    MAX_POLL_ATTEMPTS,
    POLL_INTERVAL_SECONDS,
    STARTED_BY,
    PollState,
    TaskPoller,
    format_task_result,
    run_scheduled_task,
)


def _described(status, **extra):
    task = {
        "taskArn": TASK_ARN,
        "clusterArn": CLUSTER_ARN,
        "taskDefinitionArn": TASK_DEF_ARN,
        "lastStatus": status,
        "desiredStatus": "RUNNING",
        "startedBy": STARTED_BY,
        "launchType": "FARGATE",
        "platformVersion": "1.4.0",
        "containers": [],
    }
    task.update(extra)
    return task


class TestTaskPoller:
    """Tests for the polling state machine."""

    def test_returns_once_running(self):
        """Polling stops once the task is RUNNING."""
        describe = MagicMock(side_effect=[_described("PROVISIONING"), _described("PENDING"), _described("RUNNING")])
        sleep = MagicMock()
        poller = TaskPoller(describe, sleep=sleep)

        task = poller.poll()

        assert task["lastStatus"] == "RUNNING"
        assert poller.state == PollState.RUNNING
        assert poller.attempts == 3
        assert sleep.call_count == 2
        sleep.assert_called_with(POLL_INTERVAL_SECONDS)

    @pytest.mark.parametrize(
        "status, state",
        [("STOPPED", PollState.STOPPED), ("DEPROVISIONING", PollState.DEPROVISIONING)],
    )
    def test_stopped_and_deprovisioning_end_polling(self, status, state):
        """STOPPED and DEPROVISIONING end polling successfully."""
        poller = TaskPoller(MagicMock(return_value=_described(status)), sleep=MagicMock())

        assert poller.poll()["lastStatus"] == status
        assert poller.state == state

    def test_stopped_reason_fails_immediately(self):
        """A stopped reason raises TaskStartError at once."""
        describe = MagicMock(
            side_effect=[
                _described("PROVISIONING"),
                _described("PENDING"),
                _described("PENDING", stoppedReason="CannotPullContainerError: image not found"),
                _described("RUNNING"),
            ]
        )
        sleep = MagicMock()

        with pytest.raises(TaskStartError, match="CannotPullContainerError"):
            TaskPoller(describe, sleep=sleep).poll()

        assert describe.call_count == 3
        assert sleep.call_count == 2

    def test_stop_code_without_reason(self):
        """A stop code alone is enough to fail."""
        describe = MagicMock(return_value=_described("DEACTIVATING", stopCode="TaskFailedToStart"))

        with pytest.raises(TaskStartError, match="Task stopped: TaskFailedToStart"):
            TaskPoller(describe, sleep=MagicMock()).poll()

    def test_timeout_returns_final_snapshot(self):
        """After the last attempt the final snapshot is returned."""
        pending = [_described("PENDING")] * MAX_POLL_ATTEMPTS
        describe = MagicMock(side_effect=pending + [_described("PENDING", desiredStatus="RUNNING", version=9)])
        poller = TaskPoller(describe, sleep=MagicMock())

        task = poller.poll()

        assert describe.call_count == MAX_POLL_ATTEMPTS + 1
        assert task["version"] == 9
        assert poller.state == PollState.TIMEOUT

    def test_timeout_without_final_task_fails(self):
        """A missing task after the last attempt raises."""
        describe = MagicMock(side_effect=[_described("PENDING")] * MAX_POLL_ATTEMPTS + [None])

        with pytest.raises(TaskStartError, match="polling timed out"):
            TaskPoller(describe, sleep=MagicMock()).poll()

    def test_task_disappearing_fails(self):
        """A task that vanishes mid-poll raises."""
        with pytest.raises(TaskStartError, match="not found during polling"):
            TaskPoller(MagicMock(return_value=None), sleep=MagicMock()).poll()

    def test_initial_state(self):
        """A new poller starts as SUBMITTED."""
        poller = TaskPoller(MagicMock())
        assert poller.state == PollState.SUBMITTED
        assert poller.attempts == 0


class TestFormatTaskResult:
    """Tests for format_task_result."""

    def test_maps_containers_independently(self):
        """Each container is mapped on its own."""
        created = datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc)
        task = _described(
            "RUNNING",
            createdAt=created,
            containers=[
                {"name": "app", "containerArn": "arn:c/app", "lastStatus": "RUNNING", "healthStatus": "HEALTHY"},
                {"name": "sidecar", "lastStatus": "STOPPED", "exitCode": 1, "reason": "OutOfMemoryError"},
            ],
        )

        result = format_task_result(task, "us-east-1")

        app, sidecar = result.containers
        assert app.exit_code is None
        assert app.health_status == "HEALTHY"
        assert sidecar.exit_code == 1
        assert sidecar.reason == "OutOfMemoryError"
        assert sidecar.container_arn is None
        assert result.created_at == created
        assert result.started_at is None

    def test_console_url(self):
        """The result links to the task in the console."""
        result = format_task_result(_described("RUNNING"), "eu-west-1")
        assert result.console_url == (
            "https://console.aws.amazon.com/ecs/v2/clusters/my-cluster/tasks/0123456789abcdef?region=eu-west-1"
        )

    def test_json_uses_camel_case(self):
        """JSON output uses camelCase keys."""
        data = format_task_result(_described("RUNNING"), "us-east-1").to_json_dict()

        assert data["taskArn"] == TASK_ARN
        assert data["clusterArn"] == CLUSTER_ARN
        assert data["lastStatus"] == "RUNNING"
        assert data["consoleUrl"].startswith("https://console.aws.amazon.com/")
        assert data["createdAt"] is None


@pytest.fixture
def launching_clients(mock_clients):
    mock_clients.ecs.run_task.return_value = {"tasks": [{"taskArn": TASK_ARN}], "failures": []}
    mock_clients.ecs.describe_tasks.return_value = {"tasks": [_described("RUNNING")]}
    return mock_clients


class TestRunScheduledTask:
    """Tests for run_scheduled_task."""

    def test_launches_with_task_settings(self, launching_clients, scheduled_task):
        """RunTask receives the scheduled task's settings."""
        result = run_scheduled_task(launching_clients, "prod", scheduled_task, sleep=MagicMock())

        launching_clients.ecs.run_task.assert_called_once_with(
            cluster=CLUSTER_ARN,
            taskDefinition=TASK_DEF_ARN,
            count=1,
            startedBy="ecs-trigger-manual",
            launchType="FARGATE",
            networkConfiguration={
                "awsvpcConfiguration": {
                    "subnets": ["subnet-aaa"],
                    "securityGroups": ["sg-111"],
                    "assignPublicIp": "DISABLED",
                }
            },
            platformVersion="LATEST",
        )
        launching_clients.ecs.describe_tasks.assert_called_with(cluster=CLUSTER_ARN, tasks=[TASK_ARN])
        assert result.task_arn == TASK_ARN
        assert result.last_status == "RUNNING"

    def test_ec2_task_without_network_skips_resolution(self, launching_clients, scheduled_task):
        """EC2 tasks launch without network resolution."""
        task = scheduled_task.model_copy(
            update={"launch_type": LaunchType.EC2, "network_configuration": None, "platform_version": None}
        )

        with patch("ecs_trigger.runner.resolve_network_configuration") as resolve:
            run_scheduled_task(launching_clients, "prod", task, sleep=MagicMock())

        resolve.assert_not_called()
        kwargs = launching_clients.ecs.run_task.call_args.kwargs
        assert "networkConfiguration" not in kwargs
        assert "platformVersion" not in kwargs
        assert kwargs["launchType"] == "EC2"

    def test_fargate_without_network_uses_resolved_configuration(self, launching_clients, scheduled_task):
        """Fargate tasks borrow a resolved configuration."""
        task = scheduled_task.model_copy(update={"network_configuration": None})
        resolved = NetworkConfiguration(subnets=["subnet-found"], assign_public_ip="DISABLED")

        with patch("ecs_trigger.runner.resolve_network_configuration", return_value=resolved):
            run_scheduled_task(launching_clients, "prod", task, sleep=MagicMock())

        kwargs = launching_clients.ecs.run_task.call_args.kwargs
        assert kwargs["networkConfiguration"] == {
            "awsvpcConfiguration": {"subnets": ["subnet-found"], "assignPublicIp": "DISABLED"}
        }

    def test_fargate_without_any_network_fails_before_launch(self, launching_clients, scheduled_task):
        """Fargate tasks with no configuration fail before RunTask."""
        task = scheduled_task.model_copy(update={"network_configuration": None})

        with patch("ecs_trigger.runner.resolve_network_configuration", return_value=None):
            with pytest.raises(TaskStartError, match="No network configuration found"):
                run_scheduled_task(launching_clients, "prod", task, sleep=MagicMock())

        launching_clients.ecs.run_task.assert_not_called()

    def test_launch_failures_are_surfaced(self, launching_clients, scheduled_task):
        """RunTask failures are raised with their reasons."""
        launching_clients.ecs.run_task.return_value = {
            "tasks": [],
            "failures": [{"arn": TASK_DEF_ARN, "reason": "RESOURCE:ENI", "detail": "x"}],
        }

        with pytest.raises(TaskStartError) as exc_info:
            run_scheduled_task(launching_clients, "prod", scheduled_task, sleep=MagicMock())

        assert exc_info.value.failures == [{"arn": TASK_DEF_ARN, "reason": "RESOURCE:ENI"}]
        launching_clients.ecs.describe_tasks.assert_not_called()

    def test_no_tasks_returned(self, launching_clients, scheduled_task):
        """An empty RunTask response raises."""
        launching_clients.ecs.run_task.return_value = {"tasks": [], "failures": []}

        with pytest.raises(TaskStartError, match="No tasks returned"):
            run_scheduled_task(launching_clients, "prod", scheduled_task, sleep=MagicMock())

    def test_no_task_arn_returned(self, launching_clients, scheduled_task):
        """A task without an ARN raises."""
        launching_clients.ecs.run_task.return_value = {"tasks": [{"lastStatus": "PROVISIONING"}]}

        with pytest.raises(TaskStartError, match="no ARN returned"):
            run_scheduled_task(launching_clients, "prod", scheduled_task, sleep=MagicMock())

    def test_stopped_before_running(self, launching_clients, scheduled_task):
        """A task stopping before RUNNING raises."""
        launching_clients.ecs.describe_tasks.side_effect = [
            {"tasks": [_described("PROVISIONING")]},
            {"tasks": [_described("PENDING", stoppedReason="Essential container exited")]},
        ]
        sleep = MagicMock()

        with pytest.raises(TaskStartError, match="Essential container exited"):
            run_scheduled_task(launching_clients, "prod", scheduled_task, sleep=sleep)

        assert launching_clients.ecs.describe_tasks.call_count == 2

    def test_aws_errors_are_translated(self, launching_clients, scheduled_task):
        """RunTask errors are translated."""
        launching_clients.ecs.run_task.side_effect = client_error("ExpiredTokenException", "RunTask")

        with pytest.raises(CredentialsError):
            run_scheduled_task(launching_clients, "prod", scheduled_task, sleep=MagicMock())

    def test_polling_errors_are_translated(self, launching_clients, scheduled_task):
        """Errors while polling are translated."""
        launching_clients.ecs.describe_tasks.side_effect = client_error("ThrottlingException")

        with pytest.raises(EcsTriggerError, match="rate limit"):
            run_scheduled_task(launching_clients, "prod", scheduled_task, sleep=MagicMock())
