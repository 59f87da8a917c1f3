"""Infer a network configuration for Fargate tasks from the rest of the cluster."""

from __future__ import annotations

import sys
from typing import Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .aws_clients import AWSClients
from .discovery import get_task_definition_family, normalize_network_configuration
from .models import NetworkConfiguration, ScheduledTask

# DescribeServices accepts at most 10 services per call
DESCRIBE_SERVICES_BATCH_SIZE = 10
# ListTasks page size used when sampling task history
TASK_HISTORY_LIMIT = 100

NetworkResolver = Callable[[AWSClients, str, str, bool], Optional[NetworkConfiguration]]


def _describe_services(clients: AWSClients, cluster_arn: str) -> list[dict]:
    service_arns: list[str] = []
    paginator = clients.ecs.get_paginator("list_services")
    for page in paginator.paginate(cluster=cluster_arn):
        service_arns.extend(page.get("serviceArns", []))

    services: list[dict] = []
    for i in range(0, len(service_arns), DESCRIBE_SERVICES_BATCH_SIZE):
        batch = service_arns[i : i + DESCRIBE_SERVICES_BATCH_SIZE]
        response = clients.ecs.describe_services(cluster=cluster_arn, services=batch)
        services.extend(response.get("services", []))
    return services


def find_network_configuration_from_service(
    clients: AWSClients,
    cluster_arn: str,
    task_definition_arn: str,
    verbose: bool = False,
) -> Optional[NetworkConfiguration]:
    """Borrow the network configuration of a service in the same cluster.

    A service running the same task definition family wins; otherwise the
    first service with subnets is used.
    """
    try:
        target_family = get_task_definition_family(task_definition_arn)
        if verbose:
            print(
                f"[ecs_trigger] Looking for network config from services using task family: {target_family}",
                file=sys.stderr,
            )

        services = _describe_services(clients, cluster_arn)
        if not services:
            if verbose:
                print("[ecs_trigger] No services found in cluster", file=sys.stderr)
            return None

        for service in services:
            task_definition = service.get("taskDefinition")
            if not task_definition:
                continue
            service_family = get_task_definition_family(task_definition)
            if verbose:
                print(
                    f"[ecs_trigger] Checking service {service.get('serviceName')}: family={service_family}",
                    file=sys.stderr,
                )
            if service_family != target_family:
                continue
            network_config = normalize_network_configuration(service.get("networkConfiguration"))
            if network_config:
                if verbose:
                    print(
                        f"[ecs_trigger] Found matching network config from service: {service.get('serviceName')}",
                        file=sys.stderr,
                    )
                return network_config

        if verbose:
            print(
                "[ecs_trigger] No exact match found, looking for any service with network config...",
                file=sys.stderr,
            )

        for service in services:
            network_config = normalize_network_configuration(service.get("networkConfiguration"))
            if network_config:
                if verbose:
                    print(
                        f"[ecs_trigger] Using network config from service: {service.get('serviceName')}",
                        file=sys.stderr,
                    )
                return network_config

        return None
    except (BotoCoreError, ClientError) as e:
        if verbose:
            print(f"[ecs_trigger] Error finding network configuration: {e}", file=sys.stderr)
        return None


def extract_network_config_from_attachments(attachments: list[dict]) -> Optional[NetworkConfiguration]:
    """Rebuild a network configuration from a task's ENI attachment.

    Security groups are not part of the attachment details, so they are left
    empty. Public IPs are disabled.
    """
    eni = next((a for a in attachments if a.get("type") == "ElasticNetworkInterface"), None)
    if not eni or not eni.get("details"):
        return None

    subnet_id = next(
        (d.get("value") for d in eni["details"] if d.get("name") == "subnetId" and d.get("value")),
        None,
    )
    if not subnet_id:
        return None

    return NetworkConfiguration(subnets=[subnet_id], assign_public_ip="DISABLED")


def find_network_configuration_from_tasks(
    clients: AWSClients,
    cluster_arn: str,
    task_definition_arn: str,
    verbose: bool = False,
) -> Optional[NetworkConfiguration]:
    """Borrow the subnet of a recently run task in the same cluster.

    Running tasks are checked before stopped ones; within each, a task of the
    same task definition family wins over any other task.
    """
    try:
        target_family = get_task_definition_family(task_definition_arn)
        if verbose:
            print(
                f"[ecs_trigger] Looking for network config from tasks using family: {target_family}",
                file=sys.stderr,
            )

        for desired_status in ("RUNNING", "STOPPED"):
            response = clients.ecs.list_tasks(
                cluster=cluster_arn,
                desiredStatus=desired_status,
                maxResults=TASK_HISTORY_LIMIT,
            )
            task_arns = response.get("taskArns", [])
            if not task_arns:
                if verbose:
                    print(f"[ecs_trigger] No {desired_status.lower()} tasks found", file=sys.stderr)
                continue

            if verbose:
                print(f"[ecs_trigger] Found {len(task_arns)} {desired_status.lower()} tasks", file=sys.stderr)

            tasks = clients.ecs.describe_tasks(cluster=cluster_arn, tasks=task_arns).get("tasks", [])

            same_family = [
                t
                for t in tasks
                if t.get("taskDefinitionArn")
                and get_task_definition_family(t["taskDefinitionArn"]) == target_family
            ]
            for task in same_family + tasks:
                network_config = extract_network_config_from_attachments(task.get("attachments", []))
                if network_config:
                    if verbose:
                        print(
                            f"[ecs_trigger] Using network config from task: {task.get('taskArn')}",
                            file=sys.stderr,
                        )
                    return network_config

        return None
    except (BotoCoreError, ClientError) as e:
        if verbose:
            print(f"[ecs_trigger] Error finding network configuration from tasks: {e}", file=sys.stderr)
        return None


NETWORK_RESOLVERS: tuple[NetworkResolver, ...] = (
    find_network_configuration_from_service,
    find_network_configuration_from_tasks,
)


def resolve_network_configuration(
    clients: AWSClients,
    task: ScheduledTask,
    verbose: bool = False,
    resolvers: tuple[NetworkResolver, ...] = NETWORK_RESOLVERS,
) -> Optional[NetworkConfiguration]:
    """Return the first network configuration any resolver finds for ``task``."""
    for resolver in resolvers:
        network_config = resolver(clients, task.cluster_arn, task.task_definition_arn, verbose)
        if network_config:
            return network_config
    return None
