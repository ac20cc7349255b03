"""Credit pricing and correlation reference helpers."""
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

CREDIT_PURCHASE_PREFIX = "credits_"
SUBSCRIPTION_PREFIX = "sub_"

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round a monetary value to cents."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def credit_price(credits: int, unit_size: int, unit_price: Decimal) -> Decimal:
    """
    Price of a credit purchase.

    Linear pricing: (credits / unit_size) * unit_price, rounded to cents.

    Args:
        credits: Number of credits requested
        unit_size: Credits per pricing unit (e.g., 500)
        unit_price: Price of one unit (e.g., 40.00)

    Returns:
        Declared amount for the purchase

    Example:
        >>> credit_price(2500, 500, Decimal("40"))
        Decimal('200.00')
    """
    return to_money(Decimal(credits) / Decimal(unit_size) * Decimal(unit_price))


def credit_purchase_reference(transaction_id: UUID) -> str:
    """Correlation reference for a credit purchase charge."""
    return f"{CREDIT_PURCHASE_PREFIX}{transaction_id}"


def parse_credit_purchase_reference(reference: str | None) -> UUID | None:
    """
    Extract the transaction id from a credit purchase reference.

    Returns:
        Transaction UUID, or None when the reference is not a credit
        purchase or the embedded id is malformed
    """
    if not reference or not reference.startswith(CREDIT_PURCHASE_PREFIX):
        return None
    try:
        return UUID(reference[len(CREDIT_PURCHASE_PREFIX):])
    except ValueError:
        return None


def is_credit_purchase_reference(reference: str | None) -> bool:
    return bool(reference) and reference.startswith(CREDIT_PURCHASE_PREFIX)


def subscription_reference(team_id: UUID, plan_id: UUID) -> str:
    """Correlation reference for a plan subscription."""
    return f"{SUBSCRIPTION_PREFIX}{team_id}_{plan_id}"


def parse_subscription_reference(reference: str | None) -> tuple[UUID, UUID] | None:
    """
    Extract (team_id, plan_id) from a subscription reference.

    Returns:
        Tuple of UUIDs, or None if the reference does not match sub_<team>_<plan>
    """
    if not reference or not reference.startswith(SUBSCRIPTION_PREFIX):
        return None
    parts = reference.split("_")
    if len(parts) != 3:
        return None
    try:
        return UUID(parts[1]), UUID(parts[2])
    except ValueError:
        return None
