"""
Error Taxonomy Module

Every ledger operation reports its outcome to the immediate caller as an
explicit result value. Failed results carry an error code; callers that
prefer exceptions call raise_for_error() to get the matching exception.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional, Type

if TYPE_CHECKING:
    from .transactions import TransactionRecord


class LedgerErrorCode(Enum):
    """Reasons a ledger operation can fail"""
    INVALID_AMOUNT = "invalid_amount"            # Zero or negative amount (caller bug)
    INSUFFICIENT_FUNDS = "insufficient_funds"    # Debit would breach the overdraft floor
    SAME_ACCOUNT = "same_account"                # Transfer source equals destination
    OPERATION_TIMED_OUT = "operation_timed_out"  # Lock wait exceeded, retryable
    OPERATION_CANCELLED = "operation_cancelled"  # Cancelled before the debit committed
    ACCOUNT_NOT_ACTIVE = "account_not_active"    # Frozen (debits) or closed account
    ACCOUNT_NOT_FOUND = "account_not_found"      # Registry lookup failed
    CASH_UNAVAILABLE = "cash_unavailable"        # ATM cannot cover the withdrawal


class LedgerError(Exception):
    """Base class for ledger exceptions"""

    code: Optional[LedgerErrorCode] = None

    def __init__(self, message: str = "", account_id: Optional[str] = None):
        super().__init__(message or (self.code.value if self.code else ""))
        self.message = message
        self.account_id = account_id


class InvalidAmount(LedgerError, ValueError):
    code = LedgerErrorCode.INVALID_AMOUNT


class InsufficientFunds(LedgerError):
    code = LedgerErrorCode.INSUFFICIENT_FUNDS


class SameAccount(LedgerError, ValueError):
    code = LedgerErrorCode.SAME_ACCOUNT


class OperationTimedOut(LedgerError, TimeoutError):
    code = LedgerErrorCode.OPERATION_TIMED_OUT


class OperationCancelled(LedgerError):
    code = LedgerErrorCode.OPERATION_CANCELLED


class AccountNotActive(LedgerError):
    code = LedgerErrorCode.ACCOUNT_NOT_ACTIVE


class AccountNotFound(LedgerError, KeyError):
    code = LedgerErrorCode.ACCOUNT_NOT_FOUND

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class CashUnavailable(LedgerError):
    code = LedgerErrorCode.CASH_UNAVAILABLE


ERROR_CLASSES: Dict[LedgerErrorCode, Type[LedgerError]] = {
    cls.code: cls for cls in (
        InvalidAmount, InsufficientFunds, SameAccount, OperationTimedOut,
        OperationCancelled, AccountNotActive, AccountNotFound, CashUnavailable
    )
}


def error_for(code: LedgerErrorCode, message: str = "",
              account_id: Optional[str] = None) -> LedgerError:
    """Build the exception matching an error code"""
    return ERROR_CLASSES[code](message, account_id=account_id)


@dataclass(frozen=True)
class LedgerResult:
    """
    Outcome of a single-account operation
    On success `record` holds the appended transaction record
    """
    account_id: Optional[str]
    error: Optional[LedgerErrorCode] = None
    message: str = ""
    record: Optional['TransactionRecord'] = None

    @classmethod
    def success(cls, account_id: str, record: 'TransactionRecord') -> 'LedgerResult':
        return cls(account_id=account_id, record=record)

    @classmethod
    def failure(cls, account_id: Optional[str], error: LedgerErrorCode,
                message: str) -> 'LedgerResult':
        return cls(account_id=account_id, error=error, message=message)

    @property
    def ok(self) -> bool:
        """Check if the operation succeeded"""
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    def raise_for_error(self) -> 'LedgerResult':
        """Raise the matching LedgerError if the operation failed"""
        if self.error is not None:
            raise error_for(self.error, self.message, self.account_id)
        return self
