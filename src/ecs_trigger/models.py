"""Data models for discovered clusters, scheduled tasks and task executions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

ScheduledTaskSource = Literal["eventbridge-rules", "eventbridge-scheduler"]

RULES_SOURCE: ScheduledTaskSource = "eventbridge-rules"
SCHEDULER_SOURCE: ScheduledTaskSource = "eventbridge-scheduler"


class LaunchType(str, Enum):
    EC2 = "EC2"
    FARGATE = "FARGATE"
    EXTERNAL = "EXTERNAL"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["LaunchType"]:
        """Return the matching launch type, or None for unset/unknown values."""
        if not value:
            return None
        try:
            return cls(value.upper())
        except ValueError:
            return None


class _CamelModel(BaseModel):
    """Base model that serializes with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ClusterInfo(_CamelModel):
    """Snapshot of an ECS cluster."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    cluster_arn: str
    cluster_name: str
    status: Optional[str] = None
    running_tasks_count: int = 0
    pending_tasks_count: int = 0
    active_services_count: int = 0


class NetworkConfiguration(BaseModel):
    """awsvpc network configuration used to place a task."""

    model_config = ConfigDict(frozen=True)

    subnets: list[str]
    security_groups: Optional[list[str]] = None
    assign_public_ip: Optional[str] = None

    def to_api(self) -> dict:
        """Render in the shape ecs.run_task expects."""
        awsvpc: dict = {"subnets": list(self.subnets)}
        if self.security_groups:
            awsvpc["securityGroups"] = list(self.security_groups)
        if self.assign_public_ip:
            awsvpc["assignPublicIp"] = self.assign_public_ip
        return {"awsvpcConfiguration": awsvpc}


class ScheduledTask(_CamelModel):
    """A schedulable ECS task, regardless of which EventBridge API defined it.

    Rule names are only unique within a source; the same name can appear once
    from EventBridge Rules and once from EventBridge Scheduler.
    """

    rule_name: str
    rule_arn: str
    schedule_expression: Optional[str] = None
    cluster_arn: str
    task_definition_arn: str
    network_configuration: Optional[NetworkConfiguration] = None
    launch_type: Optional[LaunchType] = None
    platform_version: Optional[str] = None
    enabled: bool = False
    task_count: int = 1
    source: ScheduledTaskSource


class ContainerInfo(_CamelModel):
    name: Optional[str] = None
    container_arn: Optional[str] = None
    last_status: Optional[str] = None
    exit_code: Optional[int] = None
    reason: Optional[str] = None
    health_status: Optional[str] = None


class TaskExecutionResult(_CamelModel):
    """Outcome of one launch attempt."""

    task_arn: str
    cluster_arn: str
    task_definition_arn: Optional[str] = None
    last_status: Optional[str] = None
    desired_status: Optional[str] = None
    started_by: Optional[str] = None
    launch_type: Optional[str] = None
    platform_version: Optional[str] = None
    containers: list[ContainerInfo] = []
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    console_url: Optional[str] = None


class CLIOptions(BaseModel):
    """Options collected from the command line."""

    profile: str
    region: Optional[str] = None
    cluster: Optional[str] = None
    rule: Optional[str] = None
    list_only: bool = False
    verbose: bool = False
