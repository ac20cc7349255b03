"""Forward settled payments to the analytics collaborator."""
from datetime import datetime
from typing import Any

import httpx
import structlog

from credit_ledger.config import Settings, settings as default_settings

logger = structlog.get_logger(__name__)


class AnalyticsForwarder:
    """
    Fire-and-forget delivery of settled payment events.

    Runs as a background task after the webhook has been acknowledged.
    Failures are logged here and never reach the caller.
    """

    DELIVERY_TIMEOUT_SECONDS = 10

    def __init__(self, config: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config or default_settings
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.config.analytics_webhook_url)

    async def forward(self, event: str, payment: dict[str, Any]) -> bool:
        """
        Post the raw gateway event to the analytics webhook.

        Args:
            event: Gateway event kind
            payment: Raw payment object as received

        Returns:
            True if the collaborator accepted the event
        """
        if not self.enabled:
            return False

        try:
            async with httpx.AsyncClient(timeout=self.DELIVERY_TIMEOUT_SECONDS, transport=self._transport) as client:
                response = await client.post(
                    self.config.analytics_webhook_url,
                    json={
                        "event": event,
                        "payment": payment,
                        "forwarded_at": datetime.utcnow().isoformat(),
                    },
                    headers={"User-Agent": "CreditLedger-Webhooks/1.0"},
                )
        except httpx.HTTPError as e:
            logger.warning(
                "analytics_forward_failed", gateway_event=event, payment_id=payment.get("id"), error=str(e)
            )
            return False

        if response.status_code >= 400:
            logger.warning(
                "analytics_forward_rejected",
                gateway_event=event,
                payment_id=payment.get("id"),
                status_code=response.status_code,
            )
            return False

        logger.info("analytics_forwarded", gateway_event=event, payment_id=payment.get("id"))
        return True
