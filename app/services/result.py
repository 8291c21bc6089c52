from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "validation_error"
    NOT_REGISTERED = "not_registered"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    USER_OR_WALLET_NOT_FOUND = "user_or_wallet_not_found"
    DUPLICATE_OPERATION = "duplicate_operation"
    LEDGER_UNAVAILABLE = "ledger_unavailable"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: ErrorCode | str = ErrorCode.UNKNOWN) -> "Result[T]":
        code_value = code.value if isinstance(code, ErrorCode) else code
        return Result(ok=False, error=error, error_code=code_value)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default

    def has_code(self, code: ErrorCode) -> bool:
        return not self.ok and self.error_code == code.value
