"""Pydantic schemas for API request/response validation."""

from credit_ledger.schemas.error import (
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
)
from credit_ledger.schemas.gateway_event import (
    CreditPurchaseSettled,
    GatewayEvent,
    GatewayPayment,
    GatewayWebhook,
    IgnoredEvent,
    SubscriptionOverdue,
    SubscriptionPaymentSettled,
    UnresolvableEvent,
    classify_event,
)
from credit_ledger.schemas.purchase import (
    CreditCardHolderInfo,
    CreditPurchaseRequest,
    CreditPurchaseResponse,
    SubscriptionRequest,
    SubscriptionResponse,
)

__all__ = [
    # Error schemas
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    # Gateway event schemas
    "GatewayEvent",
    "GatewayPayment",
    "GatewayWebhook",
    "CreditPurchaseSettled",
    "SubscriptionPaymentSettled",
    "SubscriptionOverdue",
    "UnresolvableEvent",
    "IgnoredEvent",
    "classify_event",
    # Purchase schemas
    "CreditPurchaseRequest",
    "CreditPurchaseResponse",
    "CreditCardHolderInfo",
    "SubscriptionRequest",
    "SubscriptionResponse",
]
