"""Version 1 of the HTTP API, mounted under /api/v1."""

from fastapi import APIRouter

from approvalhub.api.v1.endpoints import ct_numbers, health, messages, providers, webhooks, workflows

router = APIRouter(prefix="/api/v1")
router.include_router(health.router)
router.include_router(messages.router)
router.include_router(workflows.router)
router.include_router(ct_numbers.router)
router.include_router(providers.router)
router.include_router(webhooks.router)

__all__ = ["router"]
