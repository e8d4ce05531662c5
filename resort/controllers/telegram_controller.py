"""Inbound Telegram webhook.

Telegram retries any non-200 answer, so everything past the shared-secret
check is acknowledged with 200 and failures are only logged.
"""

from __future__ import annotations

import secrets
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from resort.controllers.dependencies import get_app_settings, get_event_router, get_repository
from resort.domain.errors import StoreUnavailableError
from resort.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])

SECRET_HEADER = "x-telegram-bot-api-secret-token"


def _expected_secret(request: Request) -> Optional[str]:
    repository = get_repository(request)
    resort = repository.get_resort_settings()
    if resort is not None and resort.telegram.webhook_secret:
        return resort.telegram.webhook_secret
    return get_app_settings(request).telegram_webhook_secret


def _dispatch(request: Request, payload: Any) -> None:
    event_router = get_event_router(request)
    if event_router is None:
        logger.info("Telegram bot inactive; update acknowledged without processing")
        return
    event_router.handle(payload)


@router.post("/webhook", status_code=status.HTTP_200_OK)
async def telegram_webhook(request: Request) -> dict[str, bool]:
    try:
        expected = await run_in_threadpool(_expected_secret, request)
    except StoreUnavailableError:
        logger.exception("Settings unavailable; update acknowledged without processing")
        return {"ok": True}

    if expected:
        provided = request.headers.get(SECRET_HEADER, "")
        if not secrets.compare_digest(provided.encode(), expected.encode()):
            logger.warning("Webhook call rejected: secret token mismatch")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Webhook body is not valid JSON; ignoring")
        return {"ok": True}

    try:
        await run_in_threadpool(_dispatch, request, payload)
    except Exception:
        logger.exception("Webhook processing failed; acknowledging to stop retries")
    return {"ok": True}


@router.get("/webhook", status_code=status.HTTP_200_OK)
def telegram_webhook_status(request: Request) -> dict[str, Any]:
    try:
        resort = get_repository(request).get_resort_settings()
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    active = bool(resort and resort.telegram.is_active and resort.telegram.bot_token)
    return {"ok": True, "active": active}
