"""Approval workflow engine: creation, exactly-once transition, expiry."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from approvalhub.core.exceptions import (
    NoProviderConfigured,
    SendFailed,
    SideEffectFailed,
    WorkflowNotFound,
)
from approvalhub.models.message import Priority
from approvalhub.models.workflow import (
    DEFAULT_TTL,
    ApprovalAction,
    TransitionOutcome,
    TransitionResult,
    Workflow,
    WorkflowStatus,
    WorkflowType,
)
from approvalhub.services.dispatcher import MessageDispatcher
from approvalhub.services.recipients import RecipientDirectory
from approvalhub.services.side_effects import SideEffectTable
from approvalhub.services.text import APPROVAL_COPY, approval_buttons, confirmation_text
from approvalhub.storage.base import ApprovalStore

logger = structlog.get_logger(__name__)

DEFAULT_PRIORITY: dict[WorkflowType, Priority] = {
    WorkflowType.DUPLICATE_RESOLUTION: Priority.HIGH,
    WorkflowType.REJECTION_APPROVAL: Priority.URGENT,
    WorkflowType.MAPPING_APPROVAL: Priority.HIGH,
    WorkflowType.TRANSFER_AUTHORIZATION: Priority.MEDIUM,
}


class ApprovalWorkflowEngine:
    """Owns the workflow lifecycle.

    State machine: pending -> approved | rejected | expired, all terminal.
    Concurrent callers (webhook workers, the API, the expiry sweeper)
    coordinate only through the store's conditional updates, so any
    interleaving leaves exactly one terminal status.

    Creation is not idempotent: two `create` calls for the same subject
    produce two independent workflows and two sets of messages.
    """

    def __init__(
        self,
        store: ApprovalStore,
        dispatcher: MessageDispatcher,
        recipients: RecipientDirectory,
        side_effects: SideEffectTable,
        *,
        default_ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.recipients = recipients
        self.side_effects = side_effects
        self.default_ttl = default_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._clock()

    async def create(
        self,
        workflow_type: WorkflowType | str,
        subject_ref: str,
        requested_by: str,
        payload: dict[str, Any],
        approver_groups: list[str],
        *,
        ttl: timedelta | None = None,
        priority: Priority | str | None = None,
    ) -> str:
        """Persist a pending workflow and send the approval request to its approvers.

        Args:
            workflow_type: Kind of approval requested.
            subject_ref: Business key the decision is about, e.g. an order uid.
            requested_by: Who asked for the approval.
            payload: Data the approval text and side effect need.
            approver_groups: Recipient groups that receive the request.
            ttl: Lifetime of the request; defaults to the engine's TTL (24h).
            priority: Routing priority; defaults per workflow type.

        Returns:
            The new workflow id.

        Raises:
            NoProviderConfigured: If no provider can carry the request. Nothing
                is persisted in that case.
        """
        workflow_type = WorkflowType(workflow_type)
        send_priority = Priority(priority) if priority else DEFAULT_PRIORITY[workflow_type]
        # Configuration errors surface before anything is written.
        self.dispatcher.routing.select(send_priority)

        workflow = Workflow.new(
            workflow_type,
            subject_ref,
            requested_by,
            payload,
            approver_groups,
            now=self.now(),
            ttl=ttl if ttl is not None else self.default_ttl,
        )
        await self.store.insert_workflow(workflow)
        logger.info(
            "Workflow created",
            workflow_id=workflow.id,
            workflow_type=workflow.type.value,
            subject_ref=subject_ref,
            expires_at=workflow.expires_at.isoformat(),
        )

        await self._send_request(workflow, send_priority)
        return workflow.id

    async def _send_request(self, workflow: Workflow, priority: Priority) -> int:
        """Send the interactive request to every approver; returns how many succeeded."""
        recipients = await self.recipients.resolve(workflow.approver_groups)
        if not recipients:
            logger.warning(
                "No recipients for approval request",
                workflow_id=workflow.id,
                approver_groups=workflow.approver_groups,
            )
            return 0

        copy = APPROVAL_COPY[workflow.type]
        body = copy.render_body(workflow)
        buttons = approval_buttons(workflow)
        delivered = 0
        for recipient in recipients:
            try:
                await self.dispatcher.send_interactive(
                    recipient,
                    copy.title,
                    body,
                    buttons,
                    priority=priority,
                    workflow_id=workflow.id,
                )
                delivered += 1
            except (SendFailed, NoProviderConfigured) as e:
                # The workflow stays pending and simply expires if nobody is reached.
                logger.error(
                    "Approval request not delivered",
                    workflow_id=workflow.id,
                    recipient=recipient,
                    error=str(e),
                )
        return delivered

    async def get(self, workflow_id: str) -> Workflow:
        workflow = await self.store.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFound(workflow_id)
        return workflow

    async def list_workflows(
        self, status: WorkflowStatus | None = None, limit: int = 100
    ) -> list[Workflow]:
        return await self.store.list_workflows(status=status, limit=limit)

    async def transition(
        self,
        workflow_id: str,
        action: ApprovalAction | str,
        actor_id: str,
        notes: str | None = None,
    ) -> TransitionResult:
        """Resolve a pending workflow with a human decision.

        Safe to call any number of times for the same decision: only the call
        that wins the store's compare-and-set changes state, runs the side
        effect and sends the confirmation.

        Raises:
            WorkflowNotFound: If the workflow does not exist.
        """
        action = ApprovalAction(action)
        workflow = await self.get(workflow_id)

        if not workflow.is_pending:
            logger.debug(
                "Workflow already resolved",
                workflow_id=workflow_id,
                status=workflow.status.value,
                actor_id=actor_id,
            )
            return TransitionResult(TransitionOutcome.ALREADY_RESOLVED, workflow)

        now = self.now()
        if workflow.is_overdue(now):
            return await self._expire(workflow, now)

        won = await self.store.resolve_if_pending(
            workflow_id, action.resulting_status, actor_id, now, notes
        )
        if not won:
            current = await self.get(workflow_id)
            logger.debug(
                "Lost resolution race",
                workflow_id=workflow_id,
                status=current.status.value,
                actor_id=actor_id,
            )
            return TransitionResult(TransitionOutcome.ALREADY_RESOLVED, current)

        workflow.status = action.resulting_status
        workflow.resolved_by = actor_id
        workflow.resolved_at = now
        workflow.notes = notes
        logger.info(
            "Workflow resolved",
            workflow_id=workflow_id,
            workflow_type=workflow.type.value,
            status=workflow.status.value,
            actor_id=actor_id,
        )

        side_effect_error: str | None = None
        try:
            await self.side_effects.execute(workflow, action)
        except Exception as e:
            failure = SideEffectFailed(workflow_id, e)
            side_effect_error = str(failure)
            logger.error(
                "Side effect failed; decision stands, manual follow-up required",
                workflow_id=workflow_id,
                workflow_type=workflow.type.value,
                action=action.value,
                error=str(e),
                exc_info=True,
            )

        await self._confirm(workflow, actor_id)
        return TransitionResult(TransitionOutcome.RESOLVED, workflow, side_effect_error)

    async def _expire(self, workflow: Workflow, now: datetime) -> TransitionResult:
        if await self.store.expire_if_pending(workflow.id, now):
            logger.info("Workflow expired on response", workflow_id=workflow.id)
        current = await self.get(workflow.id)
        if current.status is WorkflowStatus.EXPIRED:
            return TransitionResult(TransitionOutcome.EXPIRED, current)
        return TransitionResult(TransitionOutcome.ALREADY_RESOLVED, current)

    async def _confirm(self, workflow: Workflow, actor_id: str) -> None:
        try:
            await self.dispatcher.send(
                actor_id,
                confirmation_text(workflow),
                priority=Priority.LOW,
                workflow_id=workflow.id,
            )
        except (SendFailed, NoProviderConfigured) as e:
            logger.warning(
                "Confirmation not delivered",
                workflow_id=workflow.id,
                actor_id=actor_id,
                error=str(e),
            )


__all__ = ["DEFAULT_PRIORITY", "ApprovalWorkflowEngine"]
