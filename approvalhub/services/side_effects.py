"""Dispatch table from (workflow type, action) to the downstream business action."""

from collections.abc import Awaitable, Callable
from typing import Protocol

import structlog

from approvalhub.models.workflow import ApprovalAction, Workflow, WorkflowType

logger = structlog.get_logger(__name__)

SideEffectHandler = Callable[[Workflow], Awaitable[None]]


class SideEffectTable:
    """Handlers invoked once a workflow is resolved by a human.

    The engine knows nothing about the business meaning of a workflow; it
    looks up `(type, action)` here and awaits the handler.
    """

    def __init__(self) -> None:
        self._handlers: dict[tuple[WorkflowType, ApprovalAction], SideEffectHandler] = {}

    def register(
        self, workflow_type: WorkflowType, action: ApprovalAction, handler: SideEffectHandler
    ) -> None:
        self._handlers[(workflow_type, action)] = handler

    def get(self, workflow_type: WorkflowType, action: ApprovalAction) -> SideEffectHandler | None:
        return self._handlers.get((workflow_type, action))

    def missing(self) -> list[tuple[WorkflowType, ApprovalAction]]:
        return [
            (workflow_type, action)
            for workflow_type in WorkflowType
            for action in ApprovalAction
            if (workflow_type, action) not in self._handlers
        ]

    async def execute(self, workflow: Workflow, action: ApprovalAction) -> None:
        handler = self.get(workflow.type, action)
        if handler is None:
            logger.debug(
                "No side effect registered",
                workflow_type=workflow.type.value,
                action=action.value,
            )
            return
        await handler(workflow)


class OrderActions(Protocol):
    """Order-management operations that approvals unlock."""

    async def allow_ct_duplicate(self, subject_ref: str, ct_number: str) -> None: ...

    async def generate_new_ct_number(self, subject_ref: str) -> None: ...

    async def mark_qc_rejected(self, subject_ref: str, ct_numbers: list[str]) -> None: ...

    async def return_to_qc(self, subject_ref: str, ct_numbers: list[str]) -> None: ...

    async def apply_part_mapping(self, subject_ref: str, description: str) -> None: ...

    async def request_mapping_changes(self, subject_ref: str) -> None: ...

    async def execute_transfer(self, subject_ref: str, quantity: int, destination: str) -> None: ...

    async def cancel_transfer(self, subject_ref: str) -> None: ...


class LoggingOrderActions:
    """OrderActions that only log; used until an order service is wired in."""

    async def allow_ct_duplicate(self, subject_ref: str, ct_number: str) -> None:
        logger.info("Allowing CT duplicate", subject_ref=subject_ref, ct_number=ct_number)

    async def generate_new_ct_number(self, subject_ref: str) -> None:
        logger.info("New CT number requested", subject_ref=subject_ref)

    async def mark_qc_rejected(self, subject_ref: str, ct_numbers: list[str]) -> None:
        logger.info("Marking QC rejected", subject_ref=subject_ref, ct_numbers=ct_numbers)

    async def return_to_qc(self, subject_ref: str, ct_numbers: list[str]) -> None:
        logger.info("Returning to QC", subject_ref=subject_ref, ct_numbers=ct_numbers)

    async def apply_part_mapping(self, subject_ref: str, description: str) -> None:
        logger.info("Part mapping approved", subject_ref=subject_ref, description=description)

    async def request_mapping_changes(self, subject_ref: str) -> None:
        logger.info("Part mapping changes requested", subject_ref=subject_ref)

    async def execute_transfer(self, subject_ref: str, quantity: int, destination: str) -> None:
        logger.info(
            "Executing transfer", subject_ref=subject_ref, quantity=quantity, destination=destination
        )

    async def cancel_transfer(self, subject_ref: str) -> None:
        logger.info("Transfer cancelled", subject_ref=subject_ref)


def default_side_effects(actions: OrderActions) -> SideEffectTable:
    """Wire every (type, action) pair to the matching order operation."""
    table = SideEffectTable()
    approve, reject = ApprovalAction.APPROVE, ApprovalAction.REJECT

    async def allow_duplicate(w: Workflow) -> None:
        await actions.allow_ct_duplicate(w.subject_ref, str(w.payload["ct_number"]))

    async def new_ct(w: Workflow) -> None:
        await actions.generate_new_ct_number(w.subject_ref)

    async def qc_rejected(w: Workflow) -> None:
        await actions.mark_qc_rejected(w.subject_ref, list(w.payload.get("ct_numbers", [])))

    async def back_to_qc(w: Workflow) -> None:
        await actions.return_to_qc(w.subject_ref, list(w.payload.get("ct_numbers", [])))

    async def apply_mapping(w: Workflow) -> None:
        await actions.apply_part_mapping(w.subject_ref, str(w.payload["proposed_description"]))

    async def mapping_changes(w: Workflow) -> None:
        await actions.request_mapping_changes(w.subject_ref)

    async def transfer(w: Workflow) -> None:
        await actions.execute_transfer(
            w.subject_ref, int(w.payload["quantity"]), str(w.payload["destination"])
        )

    async def cancel(w: Workflow) -> None:
        await actions.cancel_transfer(w.subject_ref)

    table.register(WorkflowType.DUPLICATE_RESOLUTION, approve, allow_duplicate)
    table.register(WorkflowType.DUPLICATE_RESOLUTION, reject, new_ct)
    table.register(WorkflowType.REJECTION_APPROVAL, approve, qc_rejected)
    table.register(WorkflowType.REJECTION_APPROVAL, reject, back_to_qc)
    table.register(WorkflowType.MAPPING_APPROVAL, approve, apply_mapping)
    table.register(WorkflowType.MAPPING_APPROVAL, reject, mapping_changes)
    table.register(WorkflowType.TRANSFER_AUTHORIZATION, approve, transfer)
    table.register(WorkflowType.TRANSFER_AUTHORIZATION, reject, cancel)

    unwired = table.missing()
    if unwired:
        raise RuntimeError(f"Side effects missing for: {unwired}")
    return table


__all__ = [
    "LoggingOrderActions",
    "OrderActions",
    "SideEffectHandler",
    "SideEffectTable",
    "default_side_effects",
]
