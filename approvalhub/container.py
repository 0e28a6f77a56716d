"""Wiring: builds every long-lived component once per application."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from approvalhub.core.config import Settings
from approvalhub.providers.registry import ProviderRegistry, build_provider_registry
from approvalhub.services.approvals import ApprovalWorkflowEngine
from approvalhub.services.ct_numbers import CTNumberService
from approvalhub.services.dispatcher import MessageDispatcher
from approvalhub.services.recipients import RecipientDirectory, StaticRecipientDirectory
from approvalhub.services.responses import ResponseProcessor
from approvalhub.services.routing import (
    DailySendCounter,
    ProviderConfigHolder,
    RoutingPolicy,
    load_provider_config,
)
from approvalhub.services.side_effects import LoggingOrderActions, OrderActions, default_side_effects
from approvalhub.services.sweeper import ExpirySweeper
from approvalhub.services.workers import ResponseQueue, ResponseWorker
from approvalhub.storage import ApprovalStore, build_store

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    registry: ProviderRegistry
    routing: RoutingPolicy
    store: ApprovalStore
    dispatcher: MessageDispatcher
    engine: ApprovalWorkflowEngine
    processor: ResponseProcessor
    queue: ResponseQueue
    worker: ResponseWorker
    sweeper: ExpirySweeper
    ct_numbers: CTNumberService

    def start(self) -> None:
        self.worker.start()
        self.sweeper.start()

    async def aclose(self) -> None:
        await self.worker.stop()
        await self.sweeper.stop()
        await self.registry.aclose()
        await self.store.close()
        logger.info("Services stopped")


def build_services(
    settings: Settings,
    *,
    registry: ProviderRegistry | None = None,
    store: ApprovalStore | None = None,
    recipients: RecipientDirectory | None = None,
    order_actions: OrderActions | None = None,
    clock: Callable[[], datetime] | None = None,
) -> Services:
    """Build the component graph; any part can be supplied for tests."""
    registry = registry if registry is not None else build_provider_registry(settings)
    store = store if store is not None else build_store(settings)
    routing = RoutingPolicy(
        registry,
        ProviderConfigHolder(load_provider_config(settings)),
        DailySendCounter(clock),
    )
    dispatcher = MessageDispatcher(
        routing,
        store,
        send_timeout=settings.provider_timeout_seconds * 2,
        clock=clock,
    )
    engine = ApprovalWorkflowEngine(
        store,
        dispatcher,
        recipients or StaticRecipientDirectory(settings.recipient_groups),
        default_side_effects(order_actions or LoggingOrderActions()),
        default_ttl=timedelta(hours=settings.workflow_ttl_hours),
        clock=clock,
    )
    processor = ResponseProcessor(engine)
    queue = ResponseQueue(settings.response_queue_size)
    return Services(
        settings=settings,
        registry=registry,
        routing=routing,
        store=store,
        dispatcher=dispatcher,
        engine=engine,
        processor=processor,
        queue=queue,
        worker=ResponseWorker(queue, processor),
        sweeper=ExpirySweeper(
            store, interval_seconds=settings.sweep_interval_seconds, clock=clock
        ),
        ct_numbers=CTNumberService(store, engine),
    )


__all__ = ["Services", "build_services"]
