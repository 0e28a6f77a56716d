"""Inbound webhooks from the messaging channels.

Bodies are queued for the response worker and acknowledged at once; a full
queue answers 503 so the channel redelivers later.
"""

import hashlib
import hmac
import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
import structlog

from approvalhub.api.v1.deps import get_services
from approvalhub.container import Services

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

SIGNATURE_HEADER = "X-Hub-Signature-256"


def _verify_signature(secret: str, body: bytes, header: str | None) -> bool:
    if not header or not header.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, header.removeprefix("sha256="))


def _parse_json(body: bytes, source: str) -> Any:
    try:
        return json.loads(body)
    except ValueError as e:
        logger.warning("Webhook body is not JSON", source=source, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_json", "message": "Webhook body must be JSON"},
        ) from e


def _enqueue(services: Services, payload: Any, source: str) -> JSONResponse:
    if not services.queue.offer(payload):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "busy"},
            headers={"Retry-After": "5"},
        )
    logger.debug("Webhook queued", source=source, queued=services.queue.qsize())
    return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "accepted"})


@router.get(
    "/meta",
    response_class=PlainTextResponse,
    summary="Meta Webhook Verification",
    description="Echo `hub.challenge` when `hub.verify_token` matches the configured token.",
)
async def verify_meta_webhook(
    mode: str = Query(default="", alias="hub.mode"),
    verify_token: str = Query(default="", alias="hub.verify_token"),
    challenge: str = Query(default="", alias="hub.challenge"),
    services: Services = Depends(get_services),
) -> PlainTextResponse:
    expected = services.settings.meta_webhook_verify_token.get_secret_value()
    if mode == "subscribe" and expected and hmac.compare_digest(verify_token, expected):
        logger.info("Meta webhook verified")
        return PlainTextResponse(challenge)
    logger.warning("Meta webhook verification rejected", mode=mode)
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"error": "verification_failed", "message": "Verify token mismatch"},
    )


@router.post(
    "/meta",
    summary="Meta Webhook",
    responses={
        200: {"description": "Queued for processing"},
        401: {"description": "Signature check failed"},
        503: {"description": "Queue full, retry later"},
    },
)
async def receive_meta_webhook(
    request: Request,
    services: Services = Depends(get_services),
) -> JSONResponse:
    body = await request.body()
    secret = services.settings.meta_app_secret.get_secret_value()
    if secret and not _verify_signature(secret, body, request.headers.get(SIGNATURE_HEADER)):
        logger.warning("Meta webhook signature mismatch")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "invalid_signature", "message": "Signature check failed"},
        )
    return _enqueue(services, _parse_json(body, "meta"), "meta")


@router.post(
    "/n8n",
    summary="n8n/Evolution Webhook",
    responses={
        200: {"description": "Queued for processing"},
        503: {"description": "Queue full, retry later"},
    },
)
async def receive_n8n_webhook(
    request: Request,
    services: Services = Depends(get_services),
) -> JSONResponse:
    return _enqueue(services, _parse_json(await request.body(), "n8n"), "n8n")
