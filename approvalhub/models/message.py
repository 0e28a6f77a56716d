"""Outbound message records and routing vocabulary."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import uuid


class Priority(str, Enum):
    """Delivery priority used by the routing policy."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ProviderName(str, Enum):
    """Registered messaging backends."""

    META_CLOUD_API = "meta_cloud_api"
    N8N_EVOLUTION_API = "n8n_evolution_api"


class MessageKind(str, Enum):
    TEXT = "text"
    TEMPLATE = "template"
    INTERACTIVE = "interactive"


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class Button:
    """A reply button; `id` is what the channel echoes back when pressed."""

    id: str
    title: str


@dataclass(frozen=True)
class ProviderReceipt:
    """What a provider reports after handing a message to its channel."""

    content: str
    provider_message_id: str | None = None


@dataclass
class Message:
    """Audit record of one send attempt."""

    provider: ProviderName
    recipient: str
    kind: MessageKind
    content: str
    status: MessageStatus = MessageStatus.PENDING
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    sent_at: datetime | None = None
    provider_message_id: str | None = None
    error: str | None = None
    workflow_id: str | None = None


__all__ = [
    "Button",
    "Message",
    "MessageKind",
    "MessageStatus",
    "Priority",
    "ProviderName",
    "ProviderReceipt",
]
