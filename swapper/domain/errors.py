from enum import Enum
from typing import Any, Dict


class ErrorKind(str, Enum):
    INVALID_INPUT = "InvalidInput"
    POOL_NOT_FOUND = "PoolNotFound"
    POOL_QUERY_FAILED = "PoolQueryFailed"
    TOKEN_NOT_IN_POOL = "TokenNotInPool"
    ESTIMATION_FAILED = "EstimationFailed"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    CONVERSION_INCOMPLETE = "ConversionIncomplete"
    APPROVAL_NOT_EFFECTIVE = "ApprovalNotEffective"
    SWAP_REJECTED = "SwapRejected"
    UNKNOWN = "Unknown"


# kinds raised after something was (or could have been) broadcast
TRANSACTION_KINDS = {
    ErrorKind.CONVERSION_INCOMPLETE,
    ErrorKind.APPROVAL_NOT_EFFECTIVE,
    ErrorKind.SWAP_REJECTED,
}


class SwapError(Exception):
    """
    Base of every categorized swap failure.
    `msg` is user-facing; `details` carries raw values for logs and API payloads.
    """
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, msg: str, **details: Any):
        super().__init__(msg)
        self.msg = msg
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error_type": self.kind.value,
            "error_msg": self.msg,
            "details": self.details,
        }


class InvalidInputError(SwapError):
    kind = ErrorKind.INVALID_INPUT


class PoolNotFoundError(SwapError):
    kind = ErrorKind.POOL_NOT_FOUND


class PoolQueryFailedError(SwapError):
    kind = ErrorKind.POOL_QUERY_FAILED


class TokenNotInPoolError(SwapError):
    kind = ErrorKind.TOKEN_NOT_IN_POOL


class EstimationFailedError(SwapError):
    kind = ErrorKind.ESTIMATION_FAILED


class InsufficientBalanceError(SwapError):
    kind = ErrorKind.INSUFFICIENT_BALANCE


class ConversionIncompleteError(SwapError):
    """Raised when the W balance is still short after converting A."""
    kind = ErrorKind.CONVERSION_INCOMPLETE


class ApprovalNotEffectiveError(SwapError):
    """Raised when the allowance is still short after the approve tx was mined."""
    kind = ErrorKind.APPROVAL_NOT_EFFECTIVE


class SwapRejectedError(SwapError):
    kind = ErrorKind.SWAP_REJECTED


class UnknownSwapError(SwapError):
    kind = ErrorKind.UNKNOWN
