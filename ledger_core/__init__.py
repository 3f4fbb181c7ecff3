"""
Ledger Core

Guarded balance-mutation ledger: accounts whose Decimal balances change only
through recorded credit/debit operations, atomic two-account transfers, and
the bank/ATM collaborators built on top of them.
"""

__version__ = "1.0.0"

from .errors import (
    LedgerError, LedgerErrorCode, LedgerResult, InvalidAmount,
    InsufficientFunds, SameAccount, OperationTimedOut, OperationCancelled,
    AccountNotActive, AccountNotFound, CashUnavailable
)
from .transactions import TransactionKind, TransactionRecord
from .policies import OverdraftPolicy, ProductType, NO_OVERDRAFT
from .accounts import LedgerAccount, AccountState
from .transfers import transfer, TransferResult
from .bank import Bank
from .atm import ATM
from .audit import AuditTrail, AuditEntry
from .events import EventDispatcher, EventPayload, LedgerEvent
from .providers import ManualClock, SequentialIdGenerator, SystemClock, UuidIdGenerator
from .reporting import build_statement, verify_balance

__all__ = [
    "LedgerError", "LedgerErrorCode", "LedgerResult", "InvalidAmount",
    "InsufficientFunds", "SameAccount", "OperationTimedOut",
    "OperationCancelled", "AccountNotActive", "AccountNotFound",
    "CashUnavailable", "TransactionKind", "TransactionRecord",
    "OverdraftPolicy", "ProductType", "NO_OVERDRAFT", "LedgerAccount",
    "AccountState", "transfer", "TransferResult", "Bank", "ATM",
    "AuditTrail", "AuditEntry", "EventDispatcher", "EventPayload",
    "LedgerEvent", "ManualClock", "SequentialIdGenerator", "SystemClock",
    "UuidIdGenerator", "build_statement", "verify_balance",
]
