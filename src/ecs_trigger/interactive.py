"""Interactive selection of clusters and scheduled tasks."""

from __future__ import annotations

import questionary

from .errors import EcsTriggerError
from .models import ClusterInfo, ScheduledTask


def _ask_select(message: str, choices: list[questionary.Choice]):
    result = questionary.select(message, choices=choices).ask()
    # ask() returns None when the prompt is aborted with Ctrl-C
    if result is None:
        raise EcsTriggerError("Selection cancelled")
    return result


def format_cluster_choice(cluster: ClusterInfo) -> str:
    parts = [cluster.cluster_name]

    status_info = []
    if cluster.running_tasks_count > 0:
        status_info.append(f"{cluster.running_tasks_count} running")
    if cluster.pending_tasks_count > 0:
        status_info.append(f"{cluster.pending_tasks_count} pending")
    if cluster.active_services_count > 0:
        status_info.append(f"{cluster.active_services_count} services")
    if status_info:
        parts.append(f"({', '.join(status_info)})")

    if cluster.status and cluster.status != "ACTIVE":
        parts.append(f"[{cluster.status}]")

    return " ".join(parts)


def select_cluster(clusters: list[ClusterInfo]) -> ClusterInfo:
    """Prompt for a cluster, skipping the prompt when there is only one."""
    if not clusters:
        raise EcsTriggerError("No ECS clusters found")
    if len(clusters) == 1:
        return clusters[0]

    choices = [
        questionary.Choice(title=format_cluster_choice(cluster), value=index)
        for index, cluster in enumerate(clusters)
    ]
    return clusters[_ask_select("Select an ECS cluster:", choices)]


def format_task_choice(task: ScheduledTask) -> str:
    parts = [task.rule_name]
    if task.schedule_expression:
        parts.append(f"({task.schedule_expression})")
    parts.append("[ENABLED]" if task.enabled else "[DISABLED]")
    task_def_short = task.task_definition_arn.split("/")[-1] or task.task_definition_arn
    parts.append(f"-> {task_def_short}")
    return " ".join(parts)


def select_scheduled_task(tasks: list[ScheduledTask]) -> ScheduledTask:
    """Prompt for a scheduled task, skipping the prompt when there is only one."""
    if not tasks:
        raise EcsTriggerError("No scheduled tasks found")
    if len(tasks) == 1:
        return tasks[0]

    choices = [
        questionary.Choice(title=format_task_choice(task), value=index)
        for index, task in enumerate(tasks)
    ]
    return tasks[_ask_select("Select a scheduled task:", choices)]


def confirm_execution(task: ScheduledTask) -> bool:
    choices = [
        questionary.Choice(title="Yes, run the task", value=True),
        questionary.Choice(title="No, cancel", value=False),
    ]
    result = questionary.select(f'Execute task "{task.rule_name}"?', choices=choices).ask()
    return bool(result)
