"""Constants and mock builders shared by the test modules."""

from __future__ import annotations

from unittest.mock import MagicMock

from botocore.exceptions import ClientError

CLUSTER_ARN = "arn:aws:ecs:us-east-1:123456789012:cluster/my-cluster"
TASK_DEF_ARN = "arn:aws:ecs:us-east-1:123456789012:task-definition/nightly-job:7"
TASK_ARN = "arn:aws:ecs:us-east-1:123456789012:task/my-cluster/0123456789abcdef"


def paginators(**pages_by_operation):
    """Build a get_paginator side effect.

    Each value is either a list of pages or a callable taking the paginate()
    keyword arguments and returning a list of pages.
    """
    created = {}

    def get_paginator(operation_name):
        if operation_name not in created:
            pages = pages_by_operation[operation_name]
            paginator = MagicMock()
            if callable(pages):
                paginator.paginate.side_effect = lambda **kwargs: pages(**kwargs)
            else:
                paginator.paginate.return_value = pages
            created[operation_name] = paginator
        return created[operation_name]

    return get_paginator


def client_error(code: str, operation: str = "DescribeTasks") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} happened"}}, operation)
