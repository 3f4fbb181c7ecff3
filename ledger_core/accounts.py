"""
Ledger Account Module

An account holds a Decimal balance and an append-only history of transaction
records. The balance changes only inside the account's lock, through the one
posting routine that also appends the record, and every debit passes the
overdraft policy guard first.
"""

from decimal import Decimal, InvalidOperation
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from enum import Enum
import threading

from .amounts import AmountLike, ZERO, checked_sum, to_amount, format_amount
from .config import LedgerConfig, get_config
from .errors import LedgerErrorCode, LedgerResult
from .events import EventDispatcher, LedgerEvent
from .logging_config import get_logger, log_action
from .policies import OverdraftPolicy, ProductType, default_policy_for
from .providers import Clock, IdGenerator, SystemClock, UuidIdGenerator
from .transactions import TransactionKind, TransactionRecord


class AccountState(Enum):
    """Account lifecycle states"""
    ACTIVE = "active"  # Normal operation
    FROZEN = "frozen"  # Credits accepted, debits refused
    CLOSED = "closed"  # No further mutations; history kept


class LedgerAccount:
    """
    Balance plus ordered transaction history under guarded mutation

    Invariant: balance() >= -overdraft_limit after every operation, including
    concurrently interleaved ones.
    """

    def __init__(
        self,
        account_id: str,
        opening_balance: AmountLike = ZERO,
        overdraft_policy: Optional[OverdraftPolicy] = None,
        product_type: ProductType = ProductType.SAVINGS,
        owner: Optional[str] = None,
        clock: Optional[Clock] = None,
        id_generator: Optional[IdGenerator] = None,
        dispatcher: Optional[EventDispatcher] = None,
        config: Optional[LedgerConfig] = None
    ):
        """
        Open an account

        Args:
            account_id: Unique account id, supplied by the caller
            opening_balance: Initial balance; recorded as opening_balance, not as a transaction
            overdraft_policy: Debit guard; defaults to the product's policy
            product_type: Product label
            owner: Optional owner/customer reference
            clock: Timestamp source for transaction records
            id_generator: Id source for transaction records
            dispatcher: Optional event sink
            config: Settings (defaults to the global config)

        Raises:
            ValueError: If the id is empty or the opening balance is below the overdraft floor
        """
        if not account_id:
            raise ValueError("Account id must be a non-empty string")

        settings = config or get_config()
        policy = overdraft_policy or default_policy_for(product_type, settings)
        opening = to_amount(opening_balance)

        if not policy.permits_balance(opening):
            raise ValueError(
                f"Opening balance {format_amount(opening)} is below the overdraft floor "
                f"{format_amount(policy.floor)}"
            )

        self.id = account_id
        self.owner = owner
        self.product_type = product_type
        self._policy = policy
        self._opening_balance = opening
        self._balance = opening
        self._records: List[TransactionRecord] = []
        self._state = AccountState.ACTIVE
        self._lock = threading.RLock()
        self._clock = clock or SystemClock()
        self._ids = id_generator or UuidIdGenerator(settings.transaction_id_prefix)
        self._dispatcher = dispatcher
        self.opened_at: datetime = self._clock.now()
        self.logger = get_logger("ledger_core.accounts")

    def __repr__(self) -> str:
        return (f"LedgerAccount(id={self.id!r}, product_type={self.product_type.value}, "
                f"balance={self._balance}, state={self._state.value})")

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def balance(self) -> Decimal:
        """Current balance"""
        with self._lock:
            return self._balance

    @property
    def opening_balance(self) -> Decimal:
        return self._opening_balance

    @property
    def overdraft_policy(self) -> OverdraftPolicy:
        return self._policy

    @property
    def overdraft_limit(self) -> Decimal:
        return self._policy.limit

    @property
    def state(self) -> AccountState:
        return self._state

    @property
    def is_overdrawn(self) -> bool:
        return self.balance() < ZERO

    def available_funds(self) -> Decimal:
        """Balance plus unused overdraft"""
        with self._lock:
            return self._policy.headroom(self._balance)

    def history(self) -> Tuple[TransactionRecord, ...]:
        """Immutable chronological snapshot of this account's records"""
        with self._lock:
            return tuple(self._records)

    def snapshot(self) -> Tuple[Decimal, Tuple[TransactionRecord, ...]]:
        """Balance and history read under one lock acquisition"""
        with self._lock:
            return self._balance, tuple(self._records)

    def can_credit(self) -> bool:
        """Check if account can receive credits"""
        return self._state in (AccountState.ACTIVE, AccountState.FROZEN)

    def can_debit(self) -> bool:
        """Check if account can be debited"""
        return self._state == AccountState.ACTIVE

    # ------------------------------------------------------------------
    # Guarded mutations
    # ------------------------------------------------------------------

    def credit(
        self,
        amount: AmountLike,
        kind: TransactionKind = TransactionKind.DEPOSIT,
        description: str = ""
    ) -> LedgerResult:
        """
        Increase the balance and append a credit record

        Args:
            amount: Positive amount
            kind: DEPOSIT or INTEREST (transfer legs are posted by transfers)
            description: Free text stored on the record

        Returns:
            LedgerResult; fails with INVALID_AMOUNT for amount <= 0 and
            ACCOUNT_NOT_ACTIVE for a closed account
        """
        if kind not in (TransactionKind.DEPOSIT, TransactionKind.INTEREST):
            raise ValueError(f"{kind.value} is not a credit kind accepted by credit()")
        return self._mutate(amount, kind, description)

    def debit(
        self,
        amount: AmountLike,
        kind: TransactionKind = TransactionKind.WITHDRAWAL,
        description: str = ""
    ) -> LedgerResult:
        """
        Decrease the balance and append a debit record

        Args:
            amount: Positive amount
            kind: WITHDRAWAL or FEE (transfer legs are posted by transfers)
            description: Free text stored on the record

        Returns:
            LedgerResult; fails with INVALID_AMOUNT for amount <= 0,
            INSUFFICIENT_FUNDS when balance - amount < -overdraft_limit and
            ACCOUNT_NOT_ACTIVE for a frozen or closed account. A failed debit
            leaves balance and history unchanged.
        """
        if kind not in (TransactionKind.WITHDRAWAL, TransactionKind.FEE):
            raise ValueError(f"{kind.value} is not a debit kind accepted by debit()")
        return self._mutate(amount, kind, description)

    def charge_fee(self, amount: AmountLike, description: str = "Service fee") -> LedgerResult:
        """Debit a fee; subject to the same overdraft guard as any debit"""
        return self.debit(amount, kind=TransactionKind.FEE, description=description)

    def apply_interest(self, rate: Any, description: str = "Interest applied") -> LedgerResult:
        """
        Credit interest on the current balance

        Interest is never accrued in the background; callers trigger it.

        Args:
            rate: Interest rate as a fraction for the period (0.015 = 1.5%)
            description: Free text stored on the record

        Returns:
            LedgerResult; fails with INVALID_AMOUNT when the computed
            interest is not positive (zero/negative balance or rate) or too
            large to represent
        """
        try:
            rate_value = rate if isinstance(rate, Decimal) else Decimal(str(rate))
        except InvalidOperation:
            rate_value = None
        if rate_value is None or not rate_value.is_finite():
            return self._reject(
                TransactionKind.INTEREST, None,
                LedgerErrorCode.INVALID_AMOUNT, f"Invalid interest rate: {rate!r}"
            )

        with self._lock:
            try:
                interest = to_amount(self._balance * rate_value)
            except ValueError as e:
                interest = None
                message = str(e)
            if interest is None:
                result = LedgerResult.failure(self.id, LedgerErrorCode.INVALID_AMOUNT, message)
            elif interest <= ZERO:
                result = LedgerResult.failure(
                    self.id, LedgerErrorCode.INVALID_AMOUNT,
                    f"Interest on balance {format_amount(self._balance)} at rate {rate_value} is not positive"
                )
            else:
                result = self._post(interest, TransactionKind.INTEREST, description)

        self._report(result, TransactionKind.INTEREST, interest)
        return result

    def _mutate(self, amount: AmountLike, kind: TransactionKind, description: str) -> LedgerResult:
        try:
            value = to_amount(amount)
        except ValueError as e:
            return self._reject(kind, None, LedgerErrorCode.INVALID_AMOUNT, str(e))

        if value <= ZERO:
            return self._reject(
                kind, value, LedgerErrorCode.INVALID_AMOUNT,
                f"{kind.value.capitalize()} amount must be positive"
            )

        with self._lock:
            result = self._post(value, kind, description)

        self._report(result, kind, value)
        return result

    def _post(
        self,
        amount: Decimal,
        kind: TransactionKind,
        description: str,
        reference: Optional[str] = None,
        counterparty_account_id: Optional[str] = None
    ) -> LedgerResult:
        """
        Check, write and append in one step. Caller must hold self._lock and
        pass a positive quantized amount. This is the only writer of _balance.
        """
        if kind.is_credit:
            if not self.can_credit():
                return LedgerResult.failure(
                    self.id, LedgerErrorCode.ACCOUNT_NOT_ACTIVE,
                    f"Account {self.id} is {self._state.value} and cannot be credited"
                )
            delta = amount
        else:
            if not self.can_debit():
                return LedgerResult.failure(
                    self.id, LedgerErrorCode.ACCOUNT_NOT_ACTIVE,
                    f"Account {self.id} is {self._state.value} and cannot be debited"
                )
            if not self._policy.allows(self._balance, amount):
                return LedgerResult.failure(
                    self.id, LedgerErrorCode.INSUFFICIENT_FUNDS,
                    f"Insufficient funds: available {format_amount(self._policy.headroom(self._balance))}, "
                    f"requested {format_amount(amount)}"
                )
            delta = -amount

        try:
            new_balance = checked_sum(self._balance, delta)
        except ValueError as e:
            return LedgerResult.failure(self.id, LedgerErrorCode.INVALID_AMOUNT, str(e))

        record = TransactionRecord(
            id=self._ids.next_id(),
            account_id=self.id,
            kind=kind,
            amount=amount,
            timestamp=self._clock.now(),
            balance_after=new_balance,
            description=description,
            reference=reference,
            counterparty_account_id=counterparty_account_id
        )
        self._records.append(record)
        self._balance = new_balance
        return LedgerResult.success(self.id, record)

    def _reject(self, kind: TransactionKind, amount: Optional[Decimal],
                code: LedgerErrorCode, message: str) -> LedgerResult:
        result = LedgerResult.failure(self.id, code, message)
        self._report(result, kind, amount)
        return result

    def _report(self, result: LedgerResult, kind: TransactionKind,
                amount: Optional[Decimal]) -> None:
        """Log and publish the outcome; called without the lock held"""
        if result.ok:
            record = result.record
            log_action(
                self.logger, "info",
                f"{kind.value} of {format_amount(record.amount)} posted to {self.id}",
                account_id=self.id, action=kind.value,
                resource=f"transaction:{record.id}",
                correlation_id=record.reference,
                extra={"amount": str(record.amount), "balance": str(record.balance_after)}
            )
            event_type = (LedgerEvent.ACCOUNT_CREDITED if kind.is_credit
                          else LedgerEvent.ACCOUNT_DEBITED)
            self._publish(event_type, record.to_dict())
        else:
            log_action(
                self.logger, "warning",
                f"{kind.value} rejected on {self.id}: {result.message}",
                account_id=self.id, action=kind.value,
                extra={"error": result.error.value,
                       "amount": str(amount) if amount is not None else None}
            )
            if kind.is_debit:
                self._publish(LedgerEvent.DEBIT_REJECTED, {
                    "kind": kind.value,
                    "error": result.error.value,
                    "amount": str(amount) if amount is not None else None,
                    "message": result.message
                })

    def _publish(self, event_type: LedgerEvent, data: Dict[str, Any]) -> None:
        if self._dispatcher:
            self._dispatcher.emit(event_type, "account", self.id, data,
                                  timestamp=self._clock.now())

    # ------------------------------------------------------------------
    # Lock access for compound operations (transfers)
    # ------------------------------------------------------------------

    def _try_lock(self, timeout: Optional[float]) -> bool:
        if timeout is None:
            return self._lock.acquire()
        return self._lock.acquire(timeout=max(timeout, 0))

    def _unlock(self) -> None:
        self._lock.release()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def change_overdraft_policy(self, policy: OverdraftPolicy) -> None:
        """
        Replace the overdraft policy

        Raises:
            ValueError: If the current balance would fall below the new floor
        """
        with self._lock:
            if not policy.permits_balance(self._balance):
                raise ValueError(
                    f"Balance {format_amount(self._balance)} is below the new overdraft floor "
                    f"{format_amount(policy.floor)}"
                )
            old_limit = self._policy.limit
            self._policy = policy

        log_action(
            self.logger, "info", f"Overdraft limit of {self.id} changed",
            account_id=self.id, action="change_overdraft_policy",
            extra={"old_limit": str(old_limit), "new_limit": str(policy.limit)}
        )

    def freeze(self, reason: str = "") -> None:
        """Stop debits; credits are still accepted"""
        self._change_state(AccountState.FROZEN, reason)

    def unfreeze(self, reason: str = "") -> None:
        self._change_state(AccountState.ACTIVE, reason)

    def close(self, reason: str = "", force: bool = False) -> Tuple[TransactionRecord, ...]:
        """
        Close the account; history is kept and returned for archiving

        Args:
            reason: Reason for closing
            force: Close even if the balance is not zero

        Returns:
            Snapshot of the account's history

        Raises:
            ValueError: If the balance is non-zero and force is not set
        """
        with self._lock:
            if self._balance != ZERO and not force:
                raise ValueError(
                    f"Cannot close account with non-zero balance: {format_amount(self._balance)}"
                )
            old_state = self._set_state(AccountState.CLOSED)
            final_balance = self._balance
            snapshot = tuple(self._records)

        self._announce_state(old_state, AccountState.CLOSED, reason)
        self._publish(LedgerEvent.ACCOUNT_CLOSED, {
            "reason": reason,
            "final_balance": str(final_balance),
            "record_count": len(snapshot)
        })
        return snapshot

    def _change_state(self, new_state: AccountState, reason: str) -> None:
        with self._lock:
            old_state = self._set_state(new_state)
        self._announce_state(old_state, new_state, reason)

    def _set_state(self, new_state: AccountState) -> AccountState:
        # Caller holds self._lock
        old_state = self._state
        if old_state == AccountState.CLOSED:
            raise ValueError(f"Account {self.id} is closed")
        self._state = new_state
        return old_state

    def _announce_state(self, old_state: AccountState, new_state: AccountState,
                        reason: str) -> None:
        log_action(
            self.logger, "info",
            f"Account {self.id} state changed: {old_state.value} -> {new_state.value}",
            account_id=self.id, action="change_state",
            extra={"old_state": old_state.value, "new_state": new_state.value, "reason": reason}
        )
        self._publish(LedgerEvent.ACCOUNT_STATE_CHANGED, {
            "old_state": old_state.value,
            "new_state": new_state.value,
            "reason": reason
        })
