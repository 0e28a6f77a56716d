"""Outbound message request and response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from approvalhub.models.message import MessageKind, MessageStatus, Priority, ProviderName


class SendMessageRequest(BaseModel):
    """Request model for a plain text send."""

    model_config = ConfigDict(
        title="Text message (recipient, content, routing hints)",
        json_schema_extra={
            "examples": [
                {"to": "9876543210", "content": "Order ORD-1042 is ready for dispatch", "priority": "high"}
            ]
        },
    )

    to: str = Field(..., min_length=1, description="Recipient phone number or chat id")
    content: str = Field(..., min_length=1, max_length=4096, description="Message body")
    priority: Priority = Field(default=Priority.MEDIUM, description="Routing priority")
    preferred_provider: ProviderName | None = Field(
        default=None,
        description="Provider to try first, bypassing priority routing",
    )
    allow_fallback: bool = Field(
        default=True,
        description="Retry once through the fallback provider on failure",
    )


class SendTemplateRequest(BaseModel):
    """Request model for a named template send."""

    to: str = Field(..., min_length=1, description="Recipient phone number or chat id")
    template_name: str = Field(..., min_length=1, description="Provider-side template name")
    params: dict[str, str] = Field(
        default_factory=dict,
        description="Template parameters, in order for Meta and by key for n8n",
    )
    priority: Priority = Field(default=Priority.MEDIUM, description="Routing priority")
    preferred_provider: ProviderName | None = Field(default=None, description="Provider to try first")
    allow_fallback: bool = Field(default=True, description="Allow one fallback attempt")


class MessageResponse(BaseModel):
    """A recorded send attempt."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Message id")
    provider: ProviderName = Field(..., description="Provider that carried the attempt")
    recipient: str = Field(..., description="Recipient")
    kind: MessageKind = Field(..., description="text, template or interactive")
    content: str = Field(..., description="What was sent, as recorded")
    status: MessageStatus = Field(..., description="pending, sent or failed")
    sent_at: datetime | None = Field(default=None, description="When the provider accepted it")
    provider_message_id: str | None = Field(default=None, description="Provider-side id")
    error: str | None = Field(default=None, description="Failure reason for failed attempts")
    workflow_id: str | None = Field(default=None, description="Workflow the message belongs to")
