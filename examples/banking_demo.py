#!/usr/bin/env python3
"""
Example: Bank, ATM and transfers on the ledger core

Walks through opening accounts, ATM withdrawals and deposits, a transfer,
interest posting and an overdraft refusal, then prints a statement and
checks the audit chain.
"""

import os
import sys
from decimal import Decimal

# Add the ledger core package to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ledger_core.atm import ATM
from ledger_core.bank import Bank
from ledger_core.config import get_config
from ledger_core.events import EventDispatcher
from ledger_core.logging_config import setup_logging
from ledger_core.policies import ProductType
from ledger_core.reporting import build_statement, verify_balance


def main():
    print("Ledger Core - Banking Walkthrough")
    print("=" * 60)

    # 1. Configuration and logging
    print("\n1. Configuration")
    config = get_config()
    setup_logging(level="WARNING", log_format="text")
    print(f"   Lock timeout: {config.transfer_lock_timeout_seconds}s")
    print(f"   Audit trail: {'on' if config.enable_audit_logging else 'off'}")

    # 2. Bank and accounts
    print("\n2. Opening accounts")
    bank = Bank("MyBank Corp", dispatcher=EventDispatcher())
    alice_savings = bank.open_account(ProductType.SAVINGS, opening_balance="1000.00", owner="alice")
    alice_checking = bank.open_account(ProductType.CHECKING, opening_balance="500.00",
                                       overdraft_limit="200.00", owner="alice")
    bob_savings = bank.open_account(ProductType.SAVINGS, opening_balance="2500.00", owner="bob")
    for account in bank.accounts():
        print(f"   {account.id} {account.product_type.value:<9} {account.owner:<6} "
              f"balance {account.balance()} overdraft {account.overdraft_limit}")

    # 3. ATM operations
    print("\n3. Alice at the ATM")
    atm = ATM("ATM001", bank, location="Downtown Plaza")
    atm.dispense_cash(alice_checking.id, "150.00")
    atm.accept_deposit(alice_savings.id, "200.00")
    print(f"   Checking: {atm.check_balance(alice_checking.id)}")
    print(f"   Savings:  {atm.check_balance(alice_savings.id)}")

    print("\n4. Alice transfers 100.00 from checking to savings")
    result = atm.transfer_funds(alice_checking.id, alice_savings.id, "100.00")
    print(f"   Transfer {result.transfer_id}: {'completed' if result else result.message}")

    print("\n5. Bob at the ATM")
    result = atm.dispense_cash(bob_savings.id, "3000.00")
    print(f"   Withdraw 3000.00: {result.error.value if result.error else 'ok'}")
    result = atm.dispense_cash(bob_savings.id, "500.00")
    print(f"   Withdraw 500.00: {result.error.value if result.error else 'ok'}")
    print(f"   ATM cash on hand: {atm.cash_on_hand}")

    # 6. Interest and overdraft
    print("\n6. Interest and overdraft")
    for account, rate in ((alice_savings, Decimal('0.015')), (bob_savings, Decimal('0.018'))):
        account.apply_interest(rate)
        print(f"   {account.id} after interest: {account.balance()}")

    alice_checking.debit("400.00")
    refused = alice_checking.debit("400.00")
    print(f"   Checking after overdraft: {alice_checking.balance()} "
          f"(second debit: {refused.error.value})")

    # 7. Statement and checks
    print("\n7. Statement for Alice's savings")
    statement = build_statement(alice_savings)
    for row in statement['transactions']:
        print(f"   {row['timestamp'][:19]} {row['kind']:<12} {row['amount']:>10} -> {row['balance_after']}")
    print(f"   Reconciled: {verify_balance(alice_savings)}")
    print(f"   Audit chain valid: {bank.audit_trail.verify_integrity()['valid']} "
          f"({len(bank.audit_trail)} entries)")


if __name__ == "__main__":
    main()
