"""Asaas webhook handler for payment events."""
import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from credit_ledger.api.deps import get_analytics_forwarder, get_db
from credit_ledger.config import settings
from credit_ledger.integrations.analytics_forwarder import AnalyticsForwarder
from credit_ledger.schemas.gateway_event import SETTLED_EVENTS, GatewayWebhook, classify_event
from credit_ledger.services.reconciliation_service import ReconciliationService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks/asaas", tags=["webhooks"])


@router.post("")
async def handle_asaas_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    forwarder: AnalyticsForwarder = Depends(get_analytics_forwarder),
):
    """
    Handle incoming Asaas webhook events.

    Answers 200 {received: true} for every event that was applied, was a
    duplicate, could not be matched or is of a kind we ignore, so Asaas
    stops redelivering it. Only unexpected failures answer 500 to trigger
    a retry.

    Raises:
        HTTPException: 401 if the shared webhook token does not match
    """
    if settings.asaas_webhook_token and request.headers.get("asaas-access-token") != settings.asaas_webhook_token:
        logger.warning("asaas_webhook_invalid_token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook token")

    try:
        body = await request.json()
        webhook = GatewayWebhook.model_validate(body)
    except (ValueError, ValidationError) as e:
        # Malformed payloads can never succeed on redelivery
        logger.error("asaas_webhook_invalid_payload", error=str(e))
        return {"received": True}

    payment = webhook.payment
    logger.info(
        "webhook_event_received",
        gateway_event=webhook.event,
        payment_id=payment.id if payment else None,
        external_reference=payment.external_reference if payment else None,
    )

    try:
        outcome = await ReconciliationService(db).process(classify_event(webhook))
    except Exception as e:
        await db.rollback()
        logger.exception("webhook_processing_failed", gateway_event=webhook.event, exc_info=e)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal error processing webhook"},
        )

    logger.info("webhook_event_processed", gateway_event=webhook.event, outcome=outcome.value)

    if webhook.event in SETTLED_EVENTS and payment is not None and forwarder.enabled:
        background_tasks.add_task(forwarder.forward, webhook.event, body.get("payment", {}))

    return {"received": True}
