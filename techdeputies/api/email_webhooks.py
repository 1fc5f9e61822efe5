"""
Mailgun event webhooks (delivery, engagement and failure tracking).
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from starlette.responses import JSONResponse

from techdeputies.services.email_queue import get_enhanced_email_service
from techdeputies.services.email_webhooks import MailgunWebhookHandler, WebhookError
from techdeputies.utils.client_info import client_ip

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/email/webhooks", tags=["email"])


def get_webhook_handler() -> MailgunWebhookHandler:
    return MailgunWebhookHandler(get_enhanced_email_service())


@router.post("/mailgun")
async def mailgun_webhook(
    request: Request,
    handler: MailgunWebhookHandler = Depends(get_webhook_handler),
):
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse({"success": False, "error": "Invalid JSON payload"}, status_code=400)
    if not isinstance(payload, dict):
        return JSONResponse({"success": False, "error": "Invalid JSON payload"}, status_code=400)

    try:
        return handler.handle(payload, client_ip(request), dict(request.headers))
    except WebhookError as e:
        logger.warning("mailgun_webhook_rejected status=%s reason=%s", e.status_code, e.message)
        return JSONResponse({"success": False, "error": e.message}, status_code=e.status_code)
