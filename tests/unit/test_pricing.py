"""Unit tests for credit pricing and correlation references."""
from decimal import Decimal
from uuid import uuid4

from credit_ledger.utils.pricing import (
    credit_price,
    credit_purchase_reference,
    is_credit_purchase_reference,
    parse_credit_purchase_reference,
    parse_subscription_reference,
    subscription_reference,
)


def test_credit_price_is_linear_per_unit() -> None:
    """2500 credits at 40.00 per 500 credits costs 200.00."""
    assert credit_price(2500, 500, Decimal("40.00")) == Decimal("200.00")
    assert credit_price(1000, 500, Decimal("40.00")) == Decimal("80.00")


def test_credit_price_rounds_partial_units_to_cents() -> None:
    assert credit_price(1, 500, Decimal("40.00")) == Decimal("0.08")
    assert credit_price(333, 500, Decimal("40.00")) == Decimal("26.64")


def test_credit_purchase_reference_round_trip() -> None:
    transaction_id = uuid4()
    reference = credit_purchase_reference(transaction_id)

    assert reference == f"credits_{transaction_id}"
    assert is_credit_purchase_reference(reference)
    assert parse_credit_purchase_reference(reference) == transaction_id


def test_parse_credit_purchase_reference_rejects_garbage() -> None:
    assert parse_credit_purchase_reference("credits_unknown-id") is None
    assert parse_credit_purchase_reference("sub_abc_def") is None
    assert parse_credit_purchase_reference(None) is None
    assert is_credit_purchase_reference("credits_unknown-id")
    assert not is_credit_purchase_reference("")


def test_subscription_reference_embeds_team_and_plan() -> None:
    team_id, plan_id = uuid4(), uuid4()
    reference = subscription_reference(team_id, plan_id)

    assert reference == f"sub_{team_id}_{plan_id}"
    assert parse_subscription_reference(reference) == (team_id, plan_id)


def test_parse_subscription_reference_rejects_malformed() -> None:
    assert parse_subscription_reference("sub_only-one-part") is None
    assert parse_subscription_reference(f"sub_{uuid4()}_not-a-uuid") is None
    assert parse_subscription_reference(f"credits_{uuid4()}") is None
