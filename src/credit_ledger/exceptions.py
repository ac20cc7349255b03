"""Domain exceptions raised by the purchase and reconciliation services."""
from credit_ledger.schemas.error import ErrorCode


class CreditLedgerError(Exception):
    """Base class for errors surfaced to API callers."""

    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class PurchaseValidationError(CreditLedgerError, ValueError):
    """Request rejected before any external call was made."""

    code = ErrorCode.MISSING_REQUIRED_FIELD


class TeamNotFoundError(CreditLedgerError):
    code = ErrorCode.TEAM_NOT_FOUND


class PlanNotFoundError(CreditLedgerError):
    code = ErrorCode.PLAN_NOT_FOUND


class GatewayError(CreditLedgerError):
    """Payment gateway answered with a non-2xx status or could not be reached."""

    code = ErrorCode.GATEWAY_API_ERROR

    def __init__(self, message: str, status_code: int | None = None, errors: list | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class InvoiceUrlTimeoutError(CreditLedgerError):
    """Gateway did not generate the first subscription charge within the polling budget."""

    code = ErrorCode.GATEWAY_TIMEOUT


class PollingCancelledError(CreditLedgerError):
    """Caller went away while we were waiting on the gateway."""


class AgentPlatformError(CreditLedgerError):
    """Channel-status or usage-reporting lookup failed."""

    code = ErrorCode.INTERNAL_ERROR
