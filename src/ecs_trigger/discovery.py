"""Discovery of ECS clusters and scheduled tasks."""

from __future__ import annotations

import re
import sys
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from .aws_clients import AWSClients
from .errors import (
    ClusterNotFoundError,
    EcsTriggerError,
    NoEcsTargetError,
    RuleNotFoundError,
    translate_aws_error,
)
from .models import (
    RULES_SOURCE,
    SCHEDULER_SOURCE,
    ClusterInfo,
    LaunchType,
    NetworkConfiguration,
    ScheduledTask,
)

# DescribeClusters accepts at most 100 clusters per call
DESCRIBE_CLUSTERS_BATCH_SIZE = 100


def discover_clusters(clients: AWSClients, profile: str) -> list[ClusterInfo]:
    """List and describe every ECS cluster visible to the credentials.

    Clusters come back in listing order. No clusters is an empty list.
    """
    try:
        cluster_arns: list[str] = []
        paginator = clients.ecs.get_paginator("list_clusters")
        for page in paginator.paginate():
            cluster_arns.extend(page.get("clusterArns", []))

        clusters: list[ClusterInfo] = []
        for i in range(0, len(cluster_arns), DESCRIBE_CLUSTERS_BATCH_SIZE):
            batch = cluster_arns[i : i + DESCRIBE_CLUSTERS_BATCH_SIZE]
            response = clients.ecs.describe_clusters(clusters=batch)
            for cluster in response.get("clusters", []):
                clusters.append(
                    ClusterInfo(
                        cluster_arn=cluster["clusterArn"],
                        cluster_name=cluster["clusterName"],
                        status=cluster.get("status"),
                        running_tasks_count=cluster.get("runningTasksCount", 0),
                        pending_tasks_count=cluster.get("pendingTasksCount", 0),
                        active_services_count=cluster.get("activeServicesCount", 0),
                    )
                )
        return clusters
    except (BotoCoreError, ClientError) as e:
        raise translate_aws_error(e, profile) from e


def find_cluster_by_name(clients: AWSClients, profile: str, cluster_identifier: str) -> ClusterInfo:
    """Find a cluster by name, ARN, or trailing ARN segment.

    Raises:
        ClusterNotFoundError: if nothing matches
    """
    for cluster in discover_clusters(clients, profile):
        if (
            cluster.cluster_name == cluster_identifier
            or cluster.cluster_arn == cluster_identifier
            or cluster.cluster_arn.endswith(f"/{cluster_identifier}")
        ):
            return cluster
    raise ClusterNotFoundError(cluster_identifier)


def get_task_definition_family(task_definition_arn: str) -> str:
    """Extract the family from a task definition ARN.

    "arn:aws:ecs:us-east-1:123456789012:task-definition/my-task:10" -> "my-task"
    """
    match = re.search(r"task-definition/([^:]+)", task_definition_arn)
    return match.group(1) if match else task_definition_arn


def normalize_network_configuration(raw: Optional[dict]) -> Optional[NetworkConfiguration]:
    """Normalize an awsvpc network configuration from any of the ECS APIs.

    EventBridge returns ``awsvpcConfiguration`` with upper-case members
    (``Subnets``), ECS uses lower-case members throughout, and Scheduler
    documents ``AwsvpcConfiguration``. All spellings are accepted. Returns None
    when there are no subnets.
    """
    if not raw:
        return None

    awsvpc = raw.get("awsvpcConfiguration") or raw.get("AwsvpcConfiguration")
    if not awsvpc:
        return None

    subnets = awsvpc.get("Subnets") or awsvpc.get("subnets")
    security_groups = awsvpc.get("SecurityGroups") or awsvpc.get("securityGroups")
    assign_public_ip = awsvpc.get("AssignPublicIp") or awsvpc.get("assignPublicIp")

    if not subnets:
        return None

    return NetworkConfiguration(
        subnets=list(subnets),
        security_groups=list(security_groups) if security_groups else None,
        assign_public_ip=assign_public_ip,
    )


def discover_scheduled_tasks(
    clients: AWSClients,
    profile: str,
    cluster_arn: Optional[str] = None,
    verbose: bool = False,
) -> list[ScheduledTask]:
    """Collect scheduled ECS tasks from EventBridge Rules and EventBridge Scheduler.

    A failure in one source is logged (when verbose) and counts as zero
    results from that source.
    """
    scheduled_tasks: list[ScheduledTask] = []

    try:
        if verbose:
            print("[ecs_trigger] Checking EventBridge Rules...", file=sys.stderr)
        rules_results = _discover_from_eventbridge_rules(clients, cluster_arn)
        scheduled_tasks.extend(rules_results)
        if verbose:
            print(
                f"[ecs_trigger] Found {len(rules_results)} scheduled tasks from EventBridge Rules",
                file=sys.stderr,
            )
    except (BotoCoreError, ClientError) as e:
        if verbose:
            print(f"[ecs_trigger] Error discovering from EventBridge Rules: {e}", file=sys.stderr)

    try:
        if verbose:
            print("[ecs_trigger] Checking EventBridge Scheduler...", file=sys.stderr)
        scheduler_results = _discover_from_eventbridge_scheduler(clients, cluster_arn, verbose)
        scheduled_tasks.extend(scheduler_results)
        if verbose:
            print(
                f"[ecs_trigger] Found {len(scheduler_results)} scheduled tasks from EventBridge Scheduler",
                file=sys.stderr,
            )
    except (BotoCoreError, ClientError) as e:
        if verbose:
            print(f"[ecs_trigger] Error discovering from EventBridge Scheduler: {e}", file=sys.stderr)

    return scheduled_tasks


def _discover_from_eventbridge_rules(
    clients: AWSClients, cluster_arn: Optional[str]
) -> list[ScheduledTask]:
    rules: list[dict] = []
    paginator = clients.events.get_paginator("list_rules")
    for page in paginator.paginate():
        rules.extend(page.get("Rules", []))

    scheduled_tasks: list[ScheduledTask] = []
    targets_paginator = clients.events.get_paginator("list_targets_by_rule")

    for rule in rules:
        rule_name = rule.get("Name")
        if not rule_name:
            continue

        for page in targets_paginator.paginate(Rule=rule_name):
            for target in page.get("Targets", []):
                scheduled_task = parse_ecs_target(rule, target)
                if scheduled_task is None:
                    continue
                if cluster_arn and scheduled_task.cluster_arn != cluster_arn:
                    continue
                scheduled_tasks.append(scheduled_task)

    return scheduled_tasks


def parse_ecs_target(rule: dict, target: dict) -> Optional[ScheduledTask]:
    """Turn an EventBridge rule target into a ScheduledTask.

    Returns None for targets without ECS parameters.
    """
    ecs_params = target.get("EcsParameters")
    if not ecs_params:
        return None

    # For ECS targets the target ARN is the cluster ARN
    cluster_arn = target.get("Arn")
    if not cluster_arn:
        return None

    return ScheduledTask(
        rule_name=rule["Name"],
        rule_arn=rule.get("Arn", ""),
        schedule_expression=rule.get("ScheduleExpression"),
        cluster_arn=cluster_arn,
        task_definition_arn=ecs_params.get("TaskDefinitionArn", ""),
        network_configuration=normalize_network_configuration(ecs_params.get("NetworkConfiguration")),
        launch_type=LaunchType.parse(ecs_params.get("LaunchType")),
        platform_version=ecs_params.get("PlatformVersion"),
        enabled=rule.get("State") == "ENABLED",
        task_count=ecs_params.get("TaskCount") or 1,
        source=RULES_SOURCE,
    )


def _discover_from_eventbridge_scheduler(
    clients: AWSClients, cluster_arn: Optional[str], verbose: bool
) -> list[ScheduledTask]:
    schedules: list[dict] = []
    paginator = clients.scheduler.get_paginator("list_schedules")
    for page in paginator.paginate():
        schedules.extend(page.get("Schedules", []))

    if verbose:
        print(f"[ecs_trigger] Found {len(schedules)} schedules in EventBridge Scheduler", file=sys.stderr)

    scheduled_tasks: list[ScheduledTask] = []

    for schedule in schedules:
        name = schedule.get("Name")
        if not name:
            continue

        kwargs = {"Name": name}
        if schedule.get("GroupName"):
            kwargs["GroupName"] = schedule["GroupName"]

        try:
            detail = clients.scheduler.get_schedule(**kwargs)
        except (BotoCoreError, ClientError) as e:
            if verbose:
                print(f"[ecs_trigger] Error getting schedule {name}: {e}", file=sys.stderr)
            continue

        scheduled_task = parse_schedule(detail)
        if scheduled_task is None:
            continue
        if cluster_arn and scheduled_task.cluster_arn != cluster_arn:
            continue
        scheduled_tasks.append(scheduled_task)

    return scheduled_tasks


def parse_schedule(detail: dict) -> Optional[ScheduledTask]:
    """Turn a GetSchedule response into a ScheduledTask.

    Returns None unless the schedule targets an ECS cluster with ECS parameters.
    """
    target = detail.get("Target") or {}
    ecs_params = target.get("EcsParameters")
    target_arn = target.get("Arn") or ""
    if not ecs_params or ":cluster/" not in target_arn:
        return None

    name = detail.get("Name", "")
    return ScheduledTask(
        rule_name=name,
        rule_arn=detail.get("Arn") or f"scheduler:{name}",
        schedule_expression=detail.get("ScheduleExpression"),
        cluster_arn=target_arn,
        task_definition_arn=ecs_params.get("TaskDefinitionArn", ""),
        network_configuration=normalize_network_configuration(ecs_params.get("NetworkConfiguration")),
        launch_type=LaunchType.parse(ecs_params.get("LaunchType")),
        platform_version=ecs_params.get("PlatformVersion"),
        enabled=detail.get("State") == "ENABLED",
        task_count=ecs_params.get("TaskCount") or 1,
        source=SCHEDULER_SOURCE,
    )


def find_scheduled_task_by_rule(
    clients: AWSClients,
    profile: str,
    rule_name: str,
    cluster_arn: Optional[str] = None,
    verbose: bool = False,
) -> Optional[ScheduledTask]:
    """Return the first scheduled task named ``rule_name``, or None."""
    for task in discover_scheduled_tasks(clients, profile, cluster_arn, verbose):
        if task.rule_name == rule_name:
            return task
    return None


def _schedule_exists(clients: AWSClients, name: str) -> bool:
    try:
        clients.scheduler.get_schedule(Name=name)
    except (BotoCoreError, ClientError):
        return False
    return True


def explain_missing_rule(
    clients: AWSClients,
    rule_name: str,
    cluster: ClusterInfo,
    verbose: bool = False,
) -> EcsTriggerError:
    """Build the error for a rule name that matched no scheduled task in ``cluster``.

    The EventBridge lookups only refine the message. Any failure while making
    them falls back to the generic "no scheduled task found" error.
    """
    not_found = EcsTriggerError(
        f'No scheduled task found with rule "{rule_name}" for cluster "{cluster.cluster_name}"'
    )

    try:
        clients.events.describe_rule(Name=rule_name)
        targets = clients.events.list_targets_by_rule(Rule=rule_name).get("Targets", [])
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code")
        if code == "ResourceNotFoundException" and not _schedule_exists(clients, rule_name):
            return RuleNotFoundError(rule_name)
        if verbose:
            print(f"[ecs_trigger] Could not inspect rule {rule_name}: {e}", file=sys.stderr)
        return not_found
    except BotoCoreError as e:
        if verbose:
            print(f"[ecs_trigger] Could not inspect rule {rule_name}: {e}", file=sys.stderr)
        return not_found

    if not any(target.get("EcsParameters") for target in targets):
        return NoEcsTargetError(rule_name)

    return not_found
