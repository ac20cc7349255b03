"""Pydantic schemas for credit purchases and plan subscriptions."""
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CreditPurchaseRequest(BaseModel):
    """Schema for buying extra credits."""

    model_config = ConfigDict(populate_by_name=True)

    amount: Optional[Decimal] = Field(None, description="Amount shown to the user; must match the computed price")
    payment_method: Literal["PIX", "CREDIT_CARD"] = Field(..., alias="paymentMethod")
    credits: int = Field(..., gt=0, description="Credits to buy")
    credit_card_token: Optional[str] = Field(None, alias="creditCardToken")


class CreditPurchaseResponse(BaseModel):
    """Payment instructions for a credit purchase."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    payment_id: str = Field(..., alias="paymentId")
    invoice_url: Optional[str] = Field(None, alias="invoiceUrl")
    transaction_id: UUID = Field(..., alias="transactionId")
    pix_qr_code: Optional[str] = Field(None, alias="pixQrCode", description="Base64 PNG")
    pix_copy_paste: Optional[str] = Field(None, alias="pixCopyPaste")


class CreditCardHolderInfo(BaseModel):
    """Card holder data the gateway requires for card subscriptions."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: str
    cpf_cnpj: str = Field(..., alias="cpfCnpj")
    postal_code: str = Field(..., alias="postalCode")
    address_number: str = Field(..., alias="addressNumber")
    phone: Optional[str] = None


class SubscriptionRequest(BaseModel):
    """Schema for subscribing to (or upgrading) a plan."""

    model_config = ConfigDict(populate_by_name=True)

    plan_id: UUID = Field(..., alias="planoId")
    credit_card_token: Optional[str] = Field(None, alias="creditCardToken")
    credit_card_holder_info: Optional[CreditCardHolderInfo] = Field(None, alias="creditCardHolderInfo")


class SubscriptionResponse(BaseModel):
    """Outcome of a subscription request."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    subscription_id: str = Field(..., alias="subscriptionId")
    status: str
    invoice_url: str = Field(..., alias="invoiceUrl")
