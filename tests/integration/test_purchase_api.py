"""Integration tests for the purchase and subscription endpoints."""
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession


@pytest.mark.asyncio
async def test_purchase_credits_with_pix(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/v1/credits/purchase",
        json={"amount": 80, "paymentMethod": "PIX", "credits": 1000},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["paymentId"].startswith("pay_")
    assert data["invoiceUrl"].startswith("https://sandbox.asaas.com/i/")
    assert data["pixQrCode"]
    assert data["pixCopyPaste"]
    assert data["transactionId"]


@pytest.mark.asyncio
async def test_purchase_rejects_unknown_payment_method(async_client: AsyncClient, gateway) -> None:
    response = await async_client.post("/v1/credits/purchase", json={"paymentMethod": "BOLETO", "credits": 500})

    assert response.status_code == 422
    assert response.json()["details"][0]["code"] == "invalid_enum_value"
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_purchase_rejects_mismatched_amount(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/v1/credits/purchase",
        json={"amount": 50, "paymentMethod": "PIX", "credits": 1000},
    )

    assert response.status_code == 400
    assert response.json()["details"][0]["code"] == "invalid_amount"


@pytest.mark.asyncio
async def test_purchase_requires_tax_id(async_client: AsyncClient, db_session: AsyncSession, test_team) -> None:
    test_team.tax_id = None
    await db_session.commit()

    response = await async_client.post("/v1/credits/purchase", json={"paymentMethod": "PIX", "credits": 500})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "ValidationError"
    assert body["details"][0]["code"] == "missing_tax_id"


@pytest.mark.asyncio
async def test_gateway_rejection_maps_to_502(async_client: AsyncClient, gateway) -> None:
    gateway.fail_charge = True

    response = await async_client.post(
        "/v1/credits/purchase",
        json={"paymentMethod": "CREDIT_CARD", "credits": 500, "creditCardToken": "tok_1"},
    )

    assert response.status_code == 502
    assert response.json()["message"] == "Cartão de crédito recusado"


@pytest.mark.asyncio
async def test_subscribe_to_plan(async_client: AsyncClient, test_plan, monkeypatch) -> None:
    from credit_ledger.config import settings

    monkeypatch.setattr(settings, "invoice_poll_interval_seconds", 0)

    response = await async_client.post("/v1/subscriptions", json={"planoId": str(test_plan.id)})

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "pending_payment"
    assert data["invoiceUrl"] == f"https://sandbox.asaas.com/i/{data['subscriptionId']}"


@pytest.mark.asyncio
async def test_subscribe_times_out_with_504(async_client: AsyncClient, test_plan, gateway, monkeypatch) -> None:
    from credit_ledger.config import settings

    monkeypatch.setattr(settings, "invoice_poll_interval_seconds", 0)
    monkeypatch.setattr(settings, "invoice_poll_max_attempts", 2)
    gateway.polls_before_invoice = None

    response = await async_client.post("/v1/subscriptions", json={"planoId": str(test_plan.id)})

    assert response.status_code == 504
    assert response.json()["error"] == "GatewayTimeout"
