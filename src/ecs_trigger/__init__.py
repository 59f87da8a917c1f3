"""Discover and trigger AWS ECS scheduled tasks."""

from .aws_clients import AWSClients, create_aws_clients
from .discovery import (
    discover_clusters,
    discover_scheduled_tasks,
    find_cluster_by_name,
    find_scheduled_task_by_rule,
)
from .runner import run_scheduled_task

__all__ = [
    "AWSClients",
    "create_aws_clients",
    "discover_clusters",
    "discover_scheduled_tasks",
    "find_cluster_by_name",
    "find_scheduled_task_by_rule",
    "run_scheduled_task",
]
