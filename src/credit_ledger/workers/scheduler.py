"""ARQ worker schedule for the periodic billing jobs.

Usage:
    arq credit_ledger.workers.scheduler.WorkerSettings
"""
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from credit_ledger.config import settings
from credit_ledger.middleware.logging import setup_logging
from credit_ledger.workers.billing_cycle import process_billing_cycle
from credit_ledger.workers.low_balance import check_low_balances


async def run_billing_cycle(ctx: dict[str, Any]) -> dict[str, Any]:
    """Daily at 03:00; only does work on day 1 of the month."""
    return await process_billing_cycle()


async def run_low_balance_check(ctx: dict[str, Any]) -> dict[str, int]:
    return await check_low_balances()


async def startup(ctx: dict[str, Any]) -> None:
    setup_logging()


class WorkerSettings:
    """
    ARQ worker settings.

    Schedule:
    - Billing cycle rollover: daily at 03:00 (no-op except on day 1)
    - Low-balance monitor: every hour at minute 0
    """

    functions = [run_billing_cycle, run_low_balance_check]

    cron_jobs = [
        cron(run_billing_cycle, hour={3}, minute={0}, timeout=1800, unique=True),
        cron(run_low_balance_check, minute={0}, timeout=600, unique=True),
    ]

    redis_settings = RedisSettings.from_dsn(str(settings.redis_url))
    on_startup = startup

    keep_result = 86400
    max_jobs = 10
    job_timeout = 600
