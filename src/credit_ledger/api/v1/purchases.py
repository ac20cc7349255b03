"""Credit purchase and plan subscription API endpoints."""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from credit_ledger.adapters.asaas_adapter import AsaasAdapter
from credit_ledger.api.deps import get_current_identity, get_db, get_gateway
from credit_ledger.auth.jwt import Identity
from credit_ledger.schemas.purchase import (
    CreditPurchaseRequest,
    CreditPurchaseResponse,
    SubscriptionRequest,
    SubscriptionResponse,
)
from credit_ledger.services.purchase_service import PurchaseService

router = APIRouter(tags=["purchases"])


@router.post("/credits/purchase", response_model=CreditPurchaseResponse, status_code=status.HTTP_201_CREATED)
async def purchase_credits(
    purchase: CreditPurchaseRequest,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    gateway: AsaasAdapter = Depends(get_gateway),
) -> CreditPurchaseResponse:
    """
    Buy extra credits for the caller's team.

    Opens a pending transaction and returns payment instructions. Credits
    are granted when the gateway confirms the payment.
    """
    service = PurchaseService(db, gateway)
    return await service.initiate_credit_purchase(
        team_id=identity.team_id,
        credits=purchase.credits,
        payment_method=purchase.payment_method,
        card_token=purchase.credit_card_token,
        declared_amount=purchase.amount,
    )


@router.post("/subscriptions", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def subscribe_to_plan(
    subscription: SubscriptionRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    gateway: AsaasAdapter = Depends(get_gateway),
) -> SubscriptionResponse:
    """
    Subscribe the caller's team to a plan (or upgrade it).

    Waits for the gateway to generate the first invoice. Responds 504 when
    it does not appear in time; the invoice is still e-mailed by the gateway.
    """
    holder_info = (
        subscription.credit_card_holder_info.model_dump(by_alias=True, exclude_none=True)
        if subscription.credit_card_holder_info
        else None
    )
    service = PurchaseService(db, gateway)
    return await service.initiate_plan_subscription(
        team_id=identity.team_id,
        plan_id=subscription.plan_id,
        card_token=subscription.credit_card_token,
        card_holder_info=holder_info,
        is_cancelled=request.is_disconnected,
    )
