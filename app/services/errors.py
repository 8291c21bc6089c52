"""Exception taxonomy for wallet operations."""

from app.services.result import ErrorCode


class WalletError(Exception):
    code = ErrorCode.UNKNOWN

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(WalletError):
    """Malformed phone, amount or payload. Rejected before any side effect."""

    code = ErrorCode.VALIDATION_ERROR


class NotRegisteredError(WalletError):
    code = ErrorCode.NOT_REGISTERED


class InsufficientFundsError(WalletError):
    code = ErrorCode.INSUFFICIENT_FUNDS

    def __init__(self, balance_minor: int, requested_minor: int):
        self.balance_minor = balance_minor
        self.requested_minor = requested_minor
        super().__init__(f"Insufficient funds: balance={balance_minor} requested={requested_minor}")


class DuplicateOperationError(WalletError):
    """Idempotency key already applied. Callers treat it as success."""

    code = ErrorCode.DUPLICATE_OPERATION

    def __init__(self, idempotency_key: str):
        self.idempotency_key = idempotency_key
        super().__init__(f"Operation already applied: {idempotency_key}")


class UpstreamUnavailableError(WalletError):
    """Ledger or messaging channel timed out or answered 5xx.

    `ambiguous` is set for writes whose effect may have happened.
    """

    code = ErrorCode.LEDGER_UNAVAILABLE

    def __init__(self, message: str, *, ambiguous: bool = False):
        self.ambiguous = ambiguous
        super().__init__(message)


class LedgerRejectedError(WalletError):
    """Ledger answered with a definite 4xx refusal."""

    def __init__(self, message: str, status_code: int, code: ErrorCode = ErrorCode.UNKNOWN):
        self.status_code = status_code
        self.code = code
        super().__init__(message)
