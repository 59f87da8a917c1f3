"""AWS Console URL generation."""


def build_task_url(cluster_name: str, task_id: str, region: str) -> str:
    """Build AWS Console URL for a task.

    Args:
        cluster_name: ECS cluster name
        task_id: Task ID (last segment of the task ARN)
        region: AWS region

    Returns:
        AWS Console URL for the task
    """
    return f"https://console.aws.amazon.com/ecs/v2/clusters/{cluster_name}/tasks/{task_id}?region={region}"


def build_task_url_from_arns(cluster_arn: str, task_arn: str, region: str) -> str:
    """Build the task URL from full cluster and task ARNs."""
    cluster_name = cluster_arn.split("/")[-1]
    task_id = task_arn.split("/")[-1]
    return build_task_url(cluster_name, task_id, region)
