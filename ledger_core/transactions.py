"""
Transaction Record Module

Immutable audit-trail entries describing one balance mutation each. Records
are created only by LedgerAccount at the moment a mutation commits; there is
no public path for appending an ad-hoc record to an account's history.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Any, Dict, Optional
from enum import Enum


class TransactionKind(Enum):
    """Kinds of balance mutation"""
    DEPOSIT = "deposit"            # Credit from outside the ledger
    WITHDRAWAL = "withdrawal"      # Debit to outside the ledger
    TRANSFER_IN = "transfer_in"    # Credit leg of a transfer
    TRANSFER_OUT = "transfer_out"  # Debit leg of a transfer
    INTEREST = "interest"          # Interest credited on demand
    FEE = "fee"                    # Service or overdraft fee

    @property
    def is_credit(self) -> bool:
        """Check if this kind increases the balance"""
        return self in CREDIT_KINDS

    @property
    def is_debit(self) -> bool:
        """Check if this kind decreases the balance"""
        return not self.is_credit


CREDIT_KINDS = frozenset({
    TransactionKind.DEPOSIT, TransactionKind.TRANSFER_IN, TransactionKind.INTEREST
})


@dataclass(frozen=True)
class TransactionRecord:
    """
    One committed balance mutation
    account_id is a back-reference only; the account owns the record
    """
    id: str
    account_id: str
    kind: TransactionKind
    amount: Decimal
    timestamp: datetime
    balance_after: Decimal
    description: str = ""
    reference: Optional[str] = None                # Shared by both legs of a transfer
    counterparty_account_id: Optional[str] = None  # Other account of a transfer

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            raise ValueError("Transaction amount must be a Decimal")
        if self.amount <= Decimal('0'):
            raise ValueError("Transaction amount must be positive")

    @property
    def is_credit(self) -> bool:
        return self.kind.is_credit

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign of its effect on the balance"""
        return self.amount if self.kind.is_credit else -self.amount

    @property
    def is_transfer_leg(self) -> bool:
        return self.kind in (TransactionKind.TRANSFER_IN, TransactionKind.TRANSFER_OUT)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary"""
        return {
            'id': self.id,
            'account_id': self.account_id,
            'kind': self.kind.value,
            'amount': str(self.amount),
            'timestamp': self.timestamp.isoformat(),
            'balance_after': str(self.balance_after),
            'description': self.description,
            'reference': self.reference,
            'counterparty_account_id': self.counterparty_account_id,
        }
