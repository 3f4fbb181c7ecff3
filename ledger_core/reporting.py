"""
Reporting Module

Account statements built from history snapshots. Reports read only the
immutable records, so they never block or disturb concurrent posting.
"""

from decimal import Decimal
from datetime import datetime
from typing import Any, Dict, Optional

from .accounts import LedgerAccount
from .amounts import ZERO
from .transactions import TransactionKind


def build_statement(
    account: LedgerAccount,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Generate a statement for an account over a period

    Args:
        account: Account to report on
        start: Include records at or after this time (inclusive)
        end: Include records at or before this time (inclusive)

    Returns:
        Dictionary with balances for the period, per-kind totals and the
        records themselves as dictionaries
    """
    history = account.history()

    opening = account.opening_balance
    records = []
    for record in history:
        if start is not None and record.timestamp < start:
            opening = record.balance_after
            continue
        if end is not None and record.timestamp > end:
            break
        records.append(record)

    closing = records[-1].balance_after if records else opening

    totals: Dict[str, Decimal] = {kind.value: ZERO for kind in TransactionKind}
    credits = ZERO
    debits = ZERO
    for record in records:
        totals[record.kind.value] += record.amount
        if record.is_credit:
            credits += record.amount
        else:
            debits += record.amount

    return {
        'account_id': account.id,
        'product_type': account.product_type.value,
        'owner': account.owner,
        'state': account.state.value,
        'period_start': start.isoformat() if start else None,
        'period_end': end.isoformat() if end else None,
        'opening_balance': opening,
        'closing_balance': closing,
        'total_credits': credits,
        'total_debits': debits,
        'totals_by_kind': totals,
        'transaction_count': len(records),
        'transactions': [record.to_dict() for record in records]
    }


def verify_balance(account: LedgerAccount) -> bool:
    """
    Check that the balance equals the opening balance plus all signed
    record amounts, and that each record's balance_after follows from the
    one before it
    """
    balance, history = account.snapshot()

    running = account.opening_balance
    for record in history:
        running += record.signed_amount
        if running != record.balance_after:
            return False
    return running == balance
