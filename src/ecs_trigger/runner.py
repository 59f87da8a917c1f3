"""Launching scheduled tasks on demand and waiting for them to start."""

from __future__ import annotations

import sys
import time
from enum import Enum
from typing import Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .aws_clients import AWSClients
from .console_link import build_task_url_from_arns
from .errors import TaskStartError, translate_aws_error
from .models import ContainerInfo, LaunchType, ScheduledTask, TaskExecutionResult
from .network import resolve_network_configuration

POLL_INTERVAL_SECONDS = 2
MAX_POLL_ATTEMPTS = 30  # 60 seconds max wait
STARTED_BY = "ecs-trigger-manual"


class PollState(Enum):
    NOT_STARTED = "NOT_STARTED"
    SUBMITTED = "SUBMITTED"
    POLLING = "POLLING"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    DEPROVISIONING = "DEPROVISIONING"
    TIMEOUT = "TIMEOUT"


SETTLED_STATUSES = {
    "RUNNING": PollState.RUNNING,
    "STOPPED": PollState.STOPPED,
    "DEPROVISIONING": PollState.DEPROVISIONING,
}


class TaskPoller:
    """Poll a submitted task until it runs, stops, or the attempts run out.

    ``describe`` returns the current task description, or None when ECS no
    longer knows the task. A task reporting a stop code or stopped reason
    before it settles fails the poll immediately. When the attempts run out
    the poller describes the task once more and returns that snapshot.
    """

    def __init__(
        self,
        describe: Callable[[], Optional[dict]],
        sleep: Callable[[float], None] = time.sleep,
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
        verbose: bool = False,
    ):
        self.describe = describe
        self.sleep = sleep
        self.interval = interval
        self.max_attempts = max_attempts
        self.verbose = verbose
        self.state = PollState.SUBMITTED
        self.attempts = 0

    def poll(self) -> dict:
        self.state = PollState.POLLING

        while self.attempts < self.max_attempts:
            self.attempts += 1
            task = self.describe()
            if task is None:
                raise TaskStartError("Task not found during polling")

            status = task.get("lastStatus")
            if self.verbose:
                print(f"[ecs_trigger] Task status: {status} (attempt {self.attempts})", file=sys.stderr)

            if status in SETTLED_STATUSES:
                self.state = SETTLED_STATUSES[status]
                return task

            if task.get("stopCode") or task.get("stoppedReason"):
                self.state = PollState.STOPPED
                reason = task.get("stoppedReason") or task.get("stopCode") or "unknown reason"
                raise TaskStartError(f"Task stopped: {reason}")

            self.sleep(self.interval)

        self.state = PollState.TIMEOUT
        if self.verbose:
            print(
                f"[ecs_trigger] Task did not settle after {self.max_attempts} attempts, returning last known state",
                file=sys.stderr,
            )
        task = self.describe()
        if task is None:
            raise TaskStartError("Task polling timed out")
        return task


def run_scheduled_task(
    clients: AWSClients,
    profile: str,
    task: ScheduledTask,
    verbose: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> TaskExecutionResult:
    """Run ``task`` once, outside its schedule, and wait for it to start.

    Raises:
        TaskStartError: if no network configuration can be found for a Fargate
            task, RunTask reports failures or returns no task, or the task
            stops before it starts running
    """
    try:
        if verbose:
            print(f"[ecs_trigger] Starting task with definition: {task.task_definition_arn}", file=sys.stderr)
            print(f"[ecs_trigger] Cluster: {task.cluster_arn}", file=sys.stderr)
            launch_type = task.launch_type.value if task.launch_type else "default"
            print(f"[ecs_trigger] Launch type: {launch_type}", file=sys.stderr)

        network_config = task.network_configuration
        if network_config is None and task.launch_type == LaunchType.FARGATE:
            if verbose:
                print(
                    "[ecs_trigger] No network configuration in scheduled task, searching for one...",
                    file=sys.stderr,
                )
            network_config = resolve_network_configuration(clients, task, verbose)
            if network_config is None:
                raise TaskStartError(
                    "No network configuration found. Fargate tasks require network configuration "
                    "(subnets/security groups). Could not find configuration from services or "
                    "recent tasks in the cluster."
                )

        if verbose and network_config:
            print(
                f"[ecs_trigger] Network: subnets={','.join(network_config.subnets)}, "
                f"securityGroups={','.join(network_config.security_groups or [])}, "
                f"publicIp={network_config.assign_public_ip}",
                file=sys.stderr,
            )

        run_kwargs: dict = {
            "cluster": task.cluster_arn,
            "taskDefinition": task.task_definition_arn,
            "count": task.task_count,
            "startedBy": STARTED_BY,
        }
        if task.launch_type:
            run_kwargs["launchType"] = task.launch_type.value
        if network_config:
            run_kwargs["networkConfiguration"] = network_config.to_api()
        if task.platform_version:
            run_kwargs["platformVersion"] = task.platform_version

        response = clients.ecs.run_task(**run_kwargs)

        failures = response.get("failures", [])
        if failures:
            raise TaskStartError(
                "Task failed to start",
                [{"arn": f.get("arn"), "reason": f.get("reason")} for f in failures],
            )

        started_tasks = response.get("tasks", [])
        if not started_tasks:
            raise TaskStartError("No tasks returned from RunTask command")

        task_arn = started_tasks[0].get("taskArn")
        if not task_arn:
            raise TaskStartError("Task started but no ARN returned")

        if verbose:
            print(f"[ecs_trigger] Task started: {task_arn}", file=sys.stderr)
            print("[ecs_trigger] Waiting for task to reach RUNNING state...", file=sys.stderr)

        def describe() -> Optional[dict]:
            described = clients.ecs.describe_tasks(cluster=task.cluster_arn, tasks=[task_arn])
            tasks = described.get("tasks", [])
            return tasks[0] if tasks else None

        final_task = TaskPoller(describe, sleep=sleep, verbose=verbose).poll()
        return format_task_result(final_task, clients.region)
    except (BotoCoreError, ClientError) as e:
        raise translate_aws_error(e, profile) from e


def format_task_result(task: dict, region: str) -> TaskExecutionResult:
    """Normalize a DescribeTasks entry into a TaskExecutionResult."""
    containers = [
        ContainerInfo(
            name=c.get("name"),
            container_arn=c.get("containerArn"),
            last_status=c.get("lastStatus"),
            exit_code=c.get("exitCode"),
            reason=c.get("reason"),
            health_status=c.get("healthStatus"),
        )
        for c in task.get("containers", [])
    ]

    task_arn = task["taskArn"]
    cluster_arn = task["clusterArn"]
    return TaskExecutionResult(
        task_arn=task_arn,
        cluster_arn=cluster_arn,
        task_definition_arn=task.get("taskDefinitionArn"),
        last_status=task.get("lastStatus"),
        desired_status=task.get("desiredStatus"),
        started_by=task.get("startedBy"),
        launch_type=task.get("launchType"),
        platform_version=task.get("platformVersion"),
        containers=containers,
        created_at=task.get("createdAt"),
        started_at=task.get("startedAt"),
        console_url=build_task_url_from_arns(cluster_arn, task_arn, region),
    )
