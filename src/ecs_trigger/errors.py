"""Error types raised by ecs_trigger and translation of botocore failures."""

from __future__ import annotations

from typing import Optional

from botocore.exceptions import (
    ClientError,
    NoCredentialsError,
    NoRegionError,
    PartialCredentialsError,
    ProfileNotFound,
    SSOTokenLoadError,
    TokenRetrievalError,
    UnauthorizedSSOTokenError,
)

EXPIRED_TOKEN_CODES = ("ExpiredTokenException", "ExpiredToken")
ACCESS_DENIED_CODES = ("AccessDeniedException", "AccessDenied")
THROTTLING_CODES = ("ThrottlingException", "Throttling")


class EcsTriggerError(Exception):
    """Base class for every error surfaced to the user."""


class CredentialsError(EcsTriggerError):
    def __init__(self, message: str, profile: str):
        super().__init__(f'Credentials error for profile "{profile}": {message}')
        self.profile = profile


class ClusterNotFoundError(EcsTriggerError):
    def __init__(self, cluster_identifier: str):
        super().__init__(f"Cluster not found: {cluster_identifier}")
        self.cluster_identifier = cluster_identifier


class RuleNotFoundError(EcsTriggerError):
    def __init__(self, rule_name: str):
        super().__init__(f"EventBridge rule not found: {rule_name}")
        self.rule_name = rule_name


class NoEcsTargetError(EcsTriggerError):
    def __init__(self, rule_name: str):
        super().__init__(f'EventBridge rule "{rule_name}" has no ECS target')
        self.rule_name = rule_name


class TaskStartError(EcsTriggerError):
    """RunTask was rejected, returned nothing usable, or the task stopped early.

    ``failures`` holds the ``{"arn": ..., "reason": ...}`` entries reported by
    ECS when they are available.
    """

    def __init__(self, message: str, failures: Optional[list[dict]] = None):
        self.failures = failures or []
        details = "; ".join(
            f"{f.get('arn') or 'unknown'}: {f.get('reason') or 'unknown reason'}"
            for f in self.failures
        )
        suffix = f" ({details})" if details else ""
        super().__init__(f"Failed to start task: {message}{suffix}")


def translate_aws_error(error: Exception, profile: str) -> EcsTriggerError:
    """Map a boto3/botocore failure onto the ecs_trigger error taxonomy.

    Errors that already belong to the taxonomy are returned unchanged.
    """
    if isinstance(error, EcsTriggerError):
        return error

    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        if code in EXPIRED_TOKEN_CODES:
            return CredentialsError("Token has expired. Please refresh your credentials.", profile)
        if code in ACCESS_DENIED_CODES:
            return CredentialsError("Access denied. Check your IAM permissions.", profile)
        if code in THROTTLING_CODES:
            return EcsTriggerError("AWS API rate limit exceeded. Please try again later.")
        return EcsTriggerError(str(error))

    if isinstance(error, (NoCredentialsError, PartialCredentialsError, ProfileNotFound)):
        return CredentialsError(
            f'Could not load credentials. Ensure profile "{profile}" exists in '
            "~/.aws/credentials or ~/.aws/config",
            profile,
        )
    if isinstance(error, (TokenRetrievalError, UnauthorizedSSOTokenError, SSOTokenLoadError)):
        return CredentialsError("Token has expired. Please refresh your credentials.", profile)
    if isinstance(error, NoRegionError):
        return EcsTriggerError("No AWS region specified. Use --region or configure one for the profile.")

    return EcsTriggerError(str(error))
