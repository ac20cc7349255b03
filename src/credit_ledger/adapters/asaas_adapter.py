"""Asaas payment gateway adapter."""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

import httpx
import structlog

from credit_ledger.config import Settings, settings as default_settings
from credit_ledger.exceptions import GatewayError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    """Charge created on the gateway."""

    id: str
    invoice_url: str | None
    status: str | None = None


@dataclass(frozen=True)
class PixQrCode:
    """PIX QR code for an instant payment charge."""

    encoded_image: str
    payload: str


class AsaasAdapter:
    """
    Adapter for the Asaas REST API.

    Stateless request/response wrapper. Every non-2xx answer or transport
    failure is raised as GatewayError carrying the first error description
    Asaas returned.
    """

    def __init__(self, config: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize the adapter.

        Args:
            config: Settings with the API URL, key and timeout
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.config = config or default_settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.asaas_api_url,
            headers={
                "access_token": self.config.asaas_api_key,
                "Content-Type": "application/json",
                "User-Agent": "CreditLedger/1.0",
            },
            timeout=self.config.gateway_timeout_seconds,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error("asaas_request_failed", method=method, path=path, error=str(e))
            raise GatewayError(f"Payment gateway unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            errors = body.get("errors") or []
            description = errors[0].get("description") if errors else None
            logger.warning(
                "asaas_request_rejected",
                method=method,
                path=path,
                status_code=response.status_code,
                errors=errors,
            )
            raise GatewayError(
                description or f"Payment gateway error (HTTP {response.status_code})",
                status_code=response.status_code,
                errors=errors,
            )

        return body

    async def create_customer(self, name: str, email: str, tax_id: str) -> str:
        """
        Create an Asaas customer.

        Args:
            name: Customer (team) name
            email: Billing email
            tax_id: CPF or CNPJ

        Returns:
            Asaas customer ID
        """
        body = await self._request(
            "POST",
            "/customers",
            json={"name": name, "email": email, "cpfCnpj": tax_id},
        )
        if not body.get("id"):
            raise GatewayError("Payment gateway did not return a customer id", errors=body.get("errors"))

        logger.info("asaas_customer_created", customer_id=body["id"])
        return body["id"]

    async def find_customer_by_email(self, email: str) -> str | None:
        """
        Look up an existing customer by email.

        Returns:
            Asaas customer ID of the first match, or None
        """
        body = await self._request("GET", "/customers", params={"email": email})
        data = body.get("data") or []
        return data[0]["id"] if data else None

    async def create_charge(
        self,
        customer_id: str,
        billing_type: str,
        value: Decimal,
        due_date: date,
        description: str,
        external_reference: str,
        card_token: str | None = None,
    ) -> ChargeResult:
        """
        Create a one-off charge.

        Args:
            customer_id: Asaas customer ID
            billing_type: PIX or CREDIT_CARD
            value: Charge amount
            due_date: Due date
            description: Description shown on the invoice
            external_reference: Correlation reference echoed back in webhooks
            card_token: Tokenized card (CREDIT_CARD only)

        Returns:
            Created charge with its invoice URL
        """
        payload: dict[str, Any] = {
            "customer": customer_id,
            "billingType": billing_type,
            "value": float(value),
            "dueDate": due_date.isoformat(),
            "description": description,
            "externalReference": external_reference,
        }
        if billing_type == "CREDIT_CARD" and card_token:
            payload["creditCardToken"] = card_token

        body = await self._request("POST", "/payments", json=payload)
        if not body.get("id"):
            raise GatewayError("Payment gateway did not return a charge id", errors=body.get("errors"))

        return ChargeResult(id=body["id"], invoice_url=body.get("invoiceUrl"), status=body.get("status"))

    async def get_pix_qr_code(self, charge_id: str) -> PixQrCode:
        """
        Retrieve the PIX QR code of a charge.

        Returns:
            Base64 QR image and copy-and-paste payload
        """
        body = await self._request("GET", f"/payments/{charge_id}/pixQrCode")
        return PixQrCode(encoded_image=body.get("encodedImage", ""), payload=body.get("payload", ""))

    async def create_subscription(
        self,
        customer_id: str,
        billing_type: str,
        value: Decimal,
        next_due_date: date,
        description: str,
        external_reference: str,
        card_token: str | None = None,
        card_holder_info: dict[str, Any] | None = None,
        cycle: str = "MONTHLY",
    ) -> str:
        """
        Create a recurring subscription.

        Returns:
            Asaas subscription ID
        """
        payload: dict[str, Any] = {
            "customer": customer_id,
            "billingType": billing_type,
            "value": float(value),
            "nextDueDate": next_due_date.isoformat(),
            "cycle": cycle,
            "description": description,
            "externalReference": external_reference,
        }
        if card_token:
            payload["creditCardToken"] = card_token
        if card_holder_info:
            payload["creditCardHolderInfo"] = card_holder_info

        body = await self._request("POST", "/subscriptions", json=payload)
        if not body.get("id"):
            raise GatewayError("Payment gateway did not return a subscription id", errors=body.get("errors"))

        logger.info("asaas_subscription_created", subscription_id=body["id"])
        return body["id"]

    async def get_latest_subscription_charge(self, subscription_id: str) -> dict[str, Any] | None:
        """
        Latest charge generated for a subscription.

        Returns:
            Raw charge object, or None if the gateway has not generated one yet
        """
        body = await self._request("GET", f"/subscriptions/{subscription_id}/payments", params={"limit": 1})
        data = body.get("data") or []
        return data[0] if data else None

    async def update_subscription(
        self,
        subscription_id: str,
        value: Decimal,
        description: str,
        update_pending_payments: bool = True,
    ) -> None:
        """
        Update the recurring amount and description of a subscription.

        Args:
            subscription_id: Asaas subscription ID
            value: New recurring amount
            description: New charge description
            update_pending_payments: Also reprice charges of the current cycle not yet paid
        """
        await self._request(
            "POST",
            f"/subscriptions/{subscription_id}",
            json={
                "value": float(value),
                "description": description,
                "updatePendingPayments": update_pending_payments,
            },
        )
        logger.info("asaas_subscription_updated", subscription_id=subscription_id, value=str(value))
