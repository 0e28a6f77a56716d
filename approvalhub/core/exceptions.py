"""Exception hierarchy for routing, dispatch and approval workflows."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from approvalhub.models.message import Message


class ApprovalHubError(Exception):
    """Base exception for the application."""


class NoProviderConfigured(ApprovalHubError):
    """No registered provider satisfies the routing request."""


class ProviderError(ApprovalHubError):
    """A provider failed to hand a message over to its channel."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class SendFailed(ApprovalHubError):
    """All send attempts failed, including the fallback if one was allowed."""

    def __init__(self, cause: Exception, message: Message | None = None) -> None:
        super().__init__(f"Message could not be sent: {cause}")
        self.cause = cause
        self.message = message


class ConfigValidationFailed(ApprovalHubError):
    """Provider or routing configuration is invalid."""


class WorkflowNotFound(ApprovalHubError):
    """The referenced workflow does not exist."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow not found: {workflow_id}")
        self.workflow_id = workflow_id


class SideEffectFailed(ApprovalHubError):
    """The downstream action for a resolved workflow raised.

    The workflow stays resolved; the failure is reported for manual follow-up.
    """

    def __init__(self, workflow_id: str, cause: Exception) -> None:
        super().__init__(f"Side effect failed for workflow {workflow_id}: {cause}")
        self.workflow_id = workflow_id
        self.cause = cause


class InvalidResponsePayload(ApprovalHubError):
    """An inbound callback could not be parsed into a workflow response."""


__all__ = [
    "ApprovalHubError",
    "ConfigValidationFailed",
    "InvalidResponsePayload",
    "NoProviderConfigured",
    "ProviderError",
    "SendFailed",
    "SideEffectFailed",
    "WorkflowNotFound",
]
