"""Commerce platform webhook endpoint"""
from fastapi import APIRouter, BackgroundTasks, Request

from reviewloop.api.errors import to_http_exception
from reviewloop.core.exceptions import ValidationError, WebhookSignatureError
from reviewloop.core.logging import webhook_logger
from reviewloop.core.metrics import webhook_events_counter
from reviewloop.services.webhook_service import (
    is_payment_succeeded, parse_webhook_event, process_webhook_event_safely, verify_platform_webhook
)

router = APIRouter(prefix="/api", tags=["webhooks"])


@router.post("/webhooks")
async def platform_webhook(request: Request, background_tasks: BackgroundTasks):
    """Acknowledge a platform event and process it after the response.

    Malformed or unsigned bodies get a 400 (the platform retries) and cause
    no side effects. Anything well formed gets a 200 straight away.
    """
    # Raw bytes: the signature covers the exact body
    payload = await request.body()

    try:
        verify_platform_webhook(payload, request.headers)
        event = parse_webhook_event(payload)
    except (ValidationError, WebhookSignatureError) as e:
        webhook_logger.warning(f"Rejected webhook: {e}")
        webhook_events_counter.labels(event_type="unknown", outcome="rejected").inc()
        raise to_http_exception(e)

    if is_payment_succeeded(event):
        background_tasks.add_task(process_webhook_event_safely, event.model_dump())
        webhook_logger.info(f"Accepted webhook {event.id} ({event.type})")
    else:
        webhook_events_counter.labels(event_type=event.type, outcome="ignored").inc()
        webhook_logger.info(f"Ignoring webhook {event.id} of type {event.type}")

    return {"status": "ok"}
