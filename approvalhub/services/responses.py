"""Inbound response handling: the trust boundary for at-least-once callbacks.

Accepted shapes:

* Meta Cloud webhook: ``entry[].changes[].value.messages[]`` with an
  interactive ``button_reply``/``list_reply`` (or template ``button``) whose
  id is ``<workflow_id>:<button_id>``. Older ``approve_<id>``/``reject_<id>``
  ids are understood as well.
* n8n/Evolution bridge: ``{"replyId": "<workflow_id>:<button_id>", "from": ...}``
  or a free-text reply ``{"workflowId": ..., "from": ..., "text": "1"}``.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from approvalhub.core.exceptions import (
    InvalidResponsePayload,
    NoProviderConfigured,
    SendFailed,
    WorkflowNotFound,
)
from approvalhub.models.message import Priority
from approvalhub.models.workflow import ApprovalAction, TransitionOutcome, TransitionResult
from approvalhub.services.approvals import ApprovalWorkflowEngine
from approvalhub.services.text import expired_notice

logger = structlog.get_logger(__name__)

BUTTON_ACTIONS: dict[str, ApprovalAction] = {
    "approve": ApprovalAction.APPROVE,
    "reject": ApprovalAction.REJECT,
}

# Numbered replies follow the button order of the approval request.
NUMBERED_ACTIONS: dict[str, ApprovalAction] = {
    "1": ApprovalAction.APPROVE,
    "2": ApprovalAction.REJECT,
}


@dataclass(frozen=True)
class InboundResponse:
    workflow_id: str
    action: ApprovalAction
    actor_id: str


def parse_reply_id(reply_id: str) -> tuple[str, ApprovalAction]:
    """Split a reply id into (workflow_id, action).

    Raises:
        InvalidResponsePayload: If the id has no known shape or button.
    """
    reply_id = reply_id.strip()
    workflow_id, sep, button_id = reply_id.rpartition(":")
    if not sep:
        button_id, sep, workflow_id = reply_id.partition("_")
    action = BUTTON_ACTIONS.get(button_id.strip().lower())
    if not sep or not workflow_id or action is None:
        raise InvalidResponsePayload(f"Unrecognised reply id: {reply_id!r}")
    return workflow_id, action


def parse_text_reply(text: str) -> ApprovalAction:
    token = text.strip().lower().rstrip(".")
    action = NUMBERED_ACTIONS.get(token) or BUTTON_ACTIONS.get(token)
    if action is None:
        raise InvalidResponsePayload(f"Unrecognised text reply: {text!r}")
    return action


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidResponsePayload(f"Missing '{key}'")
    return value.strip()


def _object(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidResponsePayload(f"'{what}' must be an object")
    return value


def _array(value: Any, what: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidResponsePayload(f"'{what}' must be an array")
    return value


def _parse_meta_message(message: dict[str, Any]) -> InboundResponse | None:
    actor_id = _require_str(message, "from")
    message_type = message.get("type")
    if message_type == "interactive":
        interactive = _object(message.get("interactive"), "interactive")
        reply = _object(
            interactive.get("button_reply") or interactive.get("list_reply"), "reply"
        )
        workflow_id, action = parse_reply_id(_require_str(reply, "id"))
    elif message_type == "button":
        button = _object(message.get("button"), "button")
        workflow_id, action = parse_reply_id(_require_str(button, "payload"))
    else:
        # Free text on the Cloud API carries no workflow reference.
        return None
    return InboundResponse(workflow_id=workflow_id, action=action, actor_id=actor_id)


def parse_responses(raw: Any) -> list[InboundResponse]:
    """Extract workflow responses from a webhook body.

    Returns an empty list for envelopes that carry nothing actionable, such
    as Meta delivery-status callbacks.

    Raises:
        InvalidResponsePayload: If the body is not a recognised envelope.
    """
    if not isinstance(raw, dict):
        raise InvalidResponsePayload("Payload must be a JSON object")

    if "entry" in raw:
        responses: list[InboundResponse] = []
        for entry in _array(raw["entry"], "entry"):
            for change in _array(_object(entry, "entry").get("changes"), "changes"):
                value = _object(_object(change, "change").get("value"), "value")
                for message in _array(value.get("messages"), "messages"):
                    parsed = _parse_meta_message(_object(message, "message"))
                    if parsed is not None:
                        responses.append(parsed)
        return responses

    actor_id = _require_str(raw, "from")
    if "replyId" in raw:
        workflow_id, action = parse_reply_id(_require_str(raw, "replyId"))
    elif "text" in raw:
        workflow_id = _require_str(raw, "workflowId")
        action = parse_text_reply(_require_str(raw, "text"))
    else:
        raise InvalidResponsePayload("Payload has neither 'replyId' nor 'text'")
    return [InboundResponse(workflow_id=workflow_id, action=action, actor_id=actor_id)]


class ResponseProcessor:
    """Drives the engine from inbound callbacks; never raises.

    Duplicate deliveries reach the engine as ordinary transition calls and
    come back as ALREADY_RESOLVED, so replaying a payload has no effect.
    """

    def __init__(self, engine: ApprovalWorkflowEngine) -> None:
        self.engine = engine

    async def handle(self, raw_payload: Any) -> None:
        try:
            responses = parse_responses(raw_payload)
        except InvalidResponsePayload as e:
            logger.warning("Dropping malformed response payload", error=str(e))
            return

        for response in responses:
            await self._apply(response)

    async def _apply(self, response: InboundResponse) -> TransitionResult | None:
        try:
            result = await self.engine.transition(
                response.workflow_id, response.action, response.actor_id
            )
        except WorkflowNotFound:
            logger.warning(
                "Response for unknown workflow dropped",
                workflow_id=response.workflow_id,
                actor_id=response.actor_id,
            )
            return None
        except Exception as e:
            logger.error(
                "Response processing failed",
                workflow_id=response.workflow_id,
                actor_id=response.actor_id,
                error=str(e),
                exc_info=True,
            )
            return None

        if result.outcome is TransitionOutcome.ALREADY_RESOLVED:
            logger.debug(
                "Duplicate or late response ignored",
                workflow_id=response.workflow_id,
                status=result.workflow.status.value,
            )
        elif result.outcome is TransitionOutcome.EXPIRED:
            logger.info("Response arrived after expiry", workflow_id=response.workflow_id)
            await self._notify_expired(result, response.actor_id)
        return result

    async def _notify_expired(self, result: TransitionResult, actor_id: str) -> None:
        try:
            await self.engine.dispatcher.send(
                actor_id,
                expired_notice(result.workflow),
                priority=Priority.LOW,
                workflow_id=result.workflow.id,
            )
        except (SendFailed, NoProviderConfigured) as e:
            logger.warning(
                "Expiry notice not delivered",
                workflow_id=result.workflow.id,
                error=str(e),
            )


__all__ = [
    "BUTTON_ACTIONS",
    "InboundResponse",
    "ResponseProcessor",
    "parse_reply_id",
    "parse_responses",
    "parse_text_reply",
]
