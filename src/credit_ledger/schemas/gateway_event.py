"""Gateway webhook payloads and their tagged variants."""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from credit_ledger.utils.pricing import (
    SUBSCRIPTION_PREFIX,
    is_credit_purchase_reference,
    parse_credit_purchase_reference,
    parse_subscription_reference,
)

SETTLED_EVENTS = frozenset({"PAYMENT_CONFIRMED", "PAYMENT_RECEIVED"})
OVERDUE_EVENT = "PAYMENT_OVERDUE"


class GatewayPayment(BaseModel):
    """Charge object embedded in a gateway webhook."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    value: Optional[Decimal] = None
    net_value: Optional[Decimal] = Field(None, alias="netValue")
    customer: Optional[str] = None
    billing_type: Optional[str] = Field(None, alias="billingType")
    payment_date: Optional[date] = Field(None, alias="paymentDate")
    description: Optional[str] = None
    invoice_url: Optional[str] = Field(None, alias="invoiceUrl")
    external_reference: Optional[str] = Field(None, alias="externalReference")
    subscription: Optional[str] = None


class GatewayWebhook(BaseModel):
    """Raw webhook body: {event, payment}."""

    model_config = ConfigDict(extra="ignore")

    event: str = Field(..., min_length=1)
    payment: Optional[GatewayPayment] = None


@dataclass(frozen=True)
class CreditPurchaseSettled:
    """Confirmed payment for a credit purchase transaction."""

    event: str
    payment: GatewayPayment
    transaction_id: UUID


@dataclass(frozen=True)
class SubscriptionPaymentSettled:
    """Confirmed payment for a recurring subscription charge."""

    event: str
    payment: GatewayPayment
    customer_id: str
    reference_team_id: Optional[UUID] = None
    reference_plan_id: Optional[UUID] = None


@dataclass(frozen=True)
class SubscriptionOverdue:
    event: str
    payment: GatewayPayment
    customer_id: str


@dataclass(frozen=True)
class UnresolvableEvent:
    """Event that should change state but cannot be matched to anything."""

    event: str
    payment: Optional[GatewayPayment]
    reason: str


@dataclass(frozen=True)
class IgnoredEvent:
    event: str


GatewayEvent = Union[
    CreditPurchaseSettled,
    SubscriptionPaymentSettled,
    SubscriptionOverdue,
    UnresolvableEvent,
    IgnoredEvent,
]


def _is_subscription_charge(payment: GatewayPayment) -> bool:
    reference = payment.external_reference or ""
    return bool(payment.subscription) or reference.startswith(SUBSCRIPTION_PREFIX)


def classify_event(webhook: GatewayWebhook) -> GatewayEvent:
    """
    Turn a raw webhook into exactly one tagged variant.

    Only settled kinds (PAYMENT_CONFIRMED, PAYMENT_RECEIVED) can move money.
    PAYMENT_OVERDUE on a subscription charge is a status-only change.
    Everything else is ignored.

    Args:
        webhook: Validated webhook body

    Returns:
        Variant the reconciliation processor dispatches on
    """
    event = webhook.event
    payment = webhook.payment

    if event in SETTLED_EVENTS:
        if payment is None:
            return UnresolvableEvent(event=event, payment=None, reason="missing_payment")

        if is_credit_purchase_reference(payment.external_reference):
            transaction_id = parse_credit_purchase_reference(payment.external_reference)
            if transaction_id is None:
                return UnresolvableEvent(event=event, payment=payment, reason="malformed_credit_reference")
            return CreditPurchaseSettled(event=event, payment=payment, transaction_id=transaction_id)

        if _is_subscription_charge(payment):
            if not payment.customer:
                return UnresolvableEvent(event=event, payment=payment, reason="missing_customer")
            parsed = parse_subscription_reference(payment.external_reference)
            return SubscriptionPaymentSettled(
                event=event,
                payment=payment,
                customer_id=payment.customer,
                reference_team_id=parsed[0] if parsed else None,
                reference_plan_id=parsed[1] if parsed else None,
            )

        return UnresolvableEvent(event=event, payment=payment, reason="unknown_reference")

    if event == OVERDUE_EVENT and payment is not None and _is_subscription_charge(payment):
        if not payment.customer:
            return UnresolvableEvent(event=event, payment=payment, reason="missing_customer")
        return SubscriptionOverdue(event=event, payment=payment, customer_id=payment.customer)

    return IgnoredEvent(event=event)
