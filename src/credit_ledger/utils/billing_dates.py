"""Billing calendar helpers."""
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


def first_day_of_next_month(today: date) -> date:
    """
    First calendar day of the month after `today`.

    Example:
        >>> first_day_of_next_month(date(2025, 12, 15))
        datetime.date(2026, 1, 1)
    """
    if today.month == 12:
        return date(today.year + 1, 1, 1)
    return date(today.year, today.month + 1, 1)


def billing_period(day: date) -> str:
    """Period key (YYYY-MM) a given day belongs to."""
    return f"{day.year}-{day.month:02d}"


def today_in(timezone_name: str) -> date:
    """Current date in the billing timezone."""
    return datetime.now(ZoneInfo(timezone_name)).date()


def charge_due_date(today: date, days: int = 1) -> date:
    """Due date for a one-off charge (tomorrow by default)."""
    return today + timedelta(days=days)
