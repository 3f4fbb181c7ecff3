"""
ATM Facade Module

Cash machine in front of a bank registry. The machine keeps its own cash
reserve; account balances only ever change through the accounts' guarded
credit/debit operations.
"""

from decimal import Decimal
from typing import List, Optional
import threading

from .amounts import AmountLike, ZERO, to_amount, format_amount
from .bank import Bank
from .errors import LedgerErrorCode, LedgerResult
from .events import LedgerEvent
from .logging_config import get_logger, log_action
from .transactions import TransactionRecord
from .transfers import TransferResult


class ATM:
    """Automated teller machine attached to one bank"""

    def __init__(
        self,
        atm_id: str,
        bank: Bank,
        cash_on_hand: Optional[AmountLike] = None,
        location: str = ""
    ):
        if cash_on_hand is None:
            cash_on_hand = bank.config.atm_default_cash
        cash = to_amount(cash_on_hand)
        if cash < ZERO:
            raise ValueError("ATM cash on hand cannot be negative")

        self.atm_id = atm_id
        self.bank = bank
        self.location = location
        self._cash = cash
        # Serialises cash-reserve checks with the account debit they guard
        self._lock = threading.Lock()
        self.logger = get_logger("ledger_core.atm")

    @property
    def cash_on_hand(self) -> Decimal:
        with self._lock:
            return self._cash

    def dispense_cash(self, account_id: str, amount: AmountLike) -> LedgerResult:
        """
        Withdraw cash from an account

        Args:
            account_id: Account to debit
            amount: Positive amount

        Returns:
            LedgerResult; fails with INVALID_AMOUNT, ACCOUNT_NOT_FOUND,
            CASH_UNAVAILABLE (account untouched) or the account's debit error
        """
        try:
            value = to_amount(amount)
        except ValueError as e:
            return self._fail(account_id, LedgerErrorCode.INVALID_AMOUNT, str(e))
        if value <= ZERO:
            return self._fail(account_id, LedgerErrorCode.INVALID_AMOUNT,
                              "Withdrawal amount must be positive")

        account = self.bank.find_account(account_id)
        if account is None:
            return self._fail(account_id, LedgerErrorCode.ACCOUNT_NOT_FOUND,
                              f"Account {account_id} not found")

        with self._lock:
            if self._cash < value:
                return self._fail(
                    account_id, LedgerErrorCode.CASH_UNAVAILABLE,
                    f"ATM {self.atm_id} holds {format_amount(self._cash)}, "
                    f"requested {format_amount(value)}"
                )
            result = account.debit(value, description=f"ATM {self.atm_id} withdrawal")
            if result.ok:
                self._cash -= value

        if result.ok:
            log_action(
                self.logger, "info",
                f"ATM {self.atm_id} dispensed {format_amount(value)} from {account_id}",
                account_id=account_id, action="dispense_cash", resource=f"atm:{self.atm_id}",
                extra={"cash_on_hand": str(self.cash_on_hand)}
            )
            self._publish(LedgerEvent.ATM_CASH_DISPENSED, account_id, value)
        return result

    def accept_deposit(self, account_id: str, amount: AmountLike) -> LedgerResult:
        """Credit an account and add the notes to the cash reserve"""
        account = self.bank.find_account(account_id)
        if account is None:
            return self._fail(account_id, LedgerErrorCode.ACCOUNT_NOT_FOUND,
                              f"Account {account_id} not found")

        result = account.credit(amount, description=f"ATM {self.atm_id} deposit")
        if result.ok:
            with self._lock:
                self._cash += result.record.amount
            log_action(
                self.logger, "info",
                f"ATM {self.atm_id} accepted deposit of {format_amount(result.record.amount)} "
                f"to {account_id}",
                account_id=account_id, action="accept_deposit", resource=f"atm:{self.atm_id}"
            )
            self._publish(LedgerEvent.ATM_DEPOSIT_ACCEPTED, account_id, result.record.amount)
        return result

    def check_balance(self, account_id: str) -> Decimal:
        """
        Balance inquiry

        Raises:
            AccountNotFound: If the account is not registered
        """
        return self.bank.get_account(account_id).balance()

    def transfer_funds(self, from_account_id: str, to_account_id: str,
                       amount: AmountLike) -> TransferResult:
        return self.bank.transfer(
            from_account_id, to_account_id, amount,
            description=f"ATM {self.atm_id} transfer"
        )

    def mini_statement(self, account_id: str, limit: int = 5) -> List[TransactionRecord]:
        """Most recent records, newest first"""
        history = self.bank.get_account(account_id).history()
        return list(reversed(history[-limit:])) if limit > 0 else []

    def refill(self, amount: AmountLike) -> Decimal:
        """Add cash to the machine and return the new reserve"""
        value = to_amount(amount)
        if value <= ZERO:
            raise ValueError("Refill amount must be positive")
        with self._lock:
            self._cash += value
            return self._cash

    def _fail(self, account_id: str, code: LedgerErrorCode, message: str) -> LedgerResult:
        log_action(
            self.logger, "warning", f"ATM {self.atm_id}: {message}",
            account_id=account_id, action="atm_request", resource=f"atm:{self.atm_id}",
            extra={"error": code.value}
        )
        return LedgerResult.failure(account_id, code, message)

    def _publish(self, event_type: LedgerEvent, account_id: str, amount: Decimal) -> None:
        if self.bank.dispatcher:
            self.bank.dispatcher.emit(event_type, "atm", self.atm_id, {
                "account_id": account_id,
                "amount": str(amount),
                "location": self.location
            }, timestamp=self.bank.clock.now())
