"""POST /v1/users/{user_id}/webhook - aggregator change notifications"""

import logging
from fastapi import APIRouter, Depends, Request

from bank_sync.api.v1.schemas import WebhookRequest, WebhookResponse
from bank_sync.api.dependencies import get_notification_source, get_registry, get_request_id
from bank_sync.infrastructure.clients.notifications import LocalNotificationSource
from bank_sync.services.registry import OrchestratorRegistry

router = APIRouter()


@router.post("/users/{user_id}/webhook", response_model=WebhookResponse, status_code=202)
async def receive_webhook(
    user_id: str,
    body: WebhookRequest,
    request: Request,
    registry: OrchestratorRegistry = Depends(get_registry),
    source: LocalNotificationSource = Depends(get_notification_source),
):
    """
    Publish a "new data may be available" signal for the user.

    Only users with a live context (registered by any other user endpoint)
    receive the signal; unknown ids are acknowledged with zero deliveries so
    the registry never grows from webhook traffic. The listener debounces
    bursts into a single refresh; nothing is fetched inline here.
    """
    delivered = source.publish(user_id, body.model_dump()) if user_id in registry else 0

    logging.info(
        "Webhook received",
        extra={
            "request_id": get_request_id(request),
            "user_id": user_id,
            "webhook_type": body.webhook_type,
            "webhook_code": body.webhook_code,
            "delivered": delivered,
        },
    )
    return WebhookResponse(delivered=delivered)
