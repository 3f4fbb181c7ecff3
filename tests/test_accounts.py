"""
Test suite for accounts module

Tests guarded credit/debit, the overdraft floor, history snapshots, interest,
fees, lifecycle states and concurrent debits against a single account.
"""

import pytest
import threading
from decimal import Decimal

from ledger_core.accounts import AccountState, LedgerAccount
from ledger_core.errors import InsufficientFunds, LedgerErrorCode
from ledger_core.events import EventDispatcher, LedgerEvent
from ledger_core.policies import NO_OVERDRAFT, OverdraftPolicy, ProductType
from ledger_core.providers import ManualClock, SequentialIdGenerator
from ledger_core.transactions import TransactionKind


def make_account(account_id="ACC-000001", opening_balance="0", limit=None, **kwargs):
    policy = OverdraftPolicy.with_limit(limit) if limit is not None else NO_OVERDRAFT
    kwargs.setdefault("clock", ManualClock())
    kwargs.setdefault("id_generator", SequentialIdGenerator("TXN-"))
    return LedgerAccount(account_id, opening_balance=opening_balance,
                         overdraft_policy=policy, **kwargs)


class TestAccountScenarios:
    """Worked examples of the debit guard"""

    def test_debit_then_rejected_debit(self):
        """Test opening 1000, debit 200 succeeds, debit 1000 fails untouched"""
        account = make_account(opening_balance="1000")

        result = account.debit(Decimal('200'))
        assert result.ok
        assert account.balance() == Decimal('800.00')
        assert len(account.history()) == 1

        result = account.debit(Decimal('1000'))
        assert not result.ok
        assert result.error == LedgerErrorCode.INSUFFICIENT_FUNDS
        assert account.balance() == Decimal('800.00')
        assert len(account.history()) == 1

    def test_overdraft_down_to_limit(self):
        """Test balance 0 with overdraft 500: -300 allowed, -600 refused"""
        account = make_account(opening_balance="0", limit="500")

        assert account.debit(300).ok
        assert account.balance() == Decimal('-300.00')
        assert account.is_overdrawn

        result = account.debit(300)
        assert result.error == LedgerErrorCode.INSUFFICIENT_FUNDS
        assert account.balance() == Decimal('-300.00')

    def test_debit_to_exact_floor(self):
        """Test a debit landing exactly on -limit is allowed"""
        account = make_account(opening_balance="100", limit="50")
        assert account.debit("150").ok
        assert account.balance() == Decimal('-50.00')
        assert account.available_funds() == Decimal('0')


class TestLedgerAccount:
    """Test LedgerAccount mutations"""

    def setup_method(self):
        """Set up test fixtures"""
        self.clock = ManualClock()
        self.account = make_account(opening_balance="100.00", clock=self.clock)

    def test_new_account(self):
        """Test opening balance is not a transaction"""
        assert self.account.id == "ACC-000001"
        assert self.account.balance() == Decimal('100.00')
        assert self.account.opening_balance == Decimal('100.00')
        assert self.account.history() == ()
        assert self.account.state == AccountState.ACTIVE
        assert self.account.opened_at == self.clock.now()

    def test_credit(self):
        """Test a deposit appends a record with the new balance"""
        result = self.account.credit(Decimal('50.25'), description="Salary")

        assert result.ok
        record = result.record
        assert record.id == "TXN-000001"
        assert record.kind == TransactionKind.DEPOSIT
        assert record.amount == Decimal('50.25')
        assert record.balance_after == Decimal('150.25')
        assert record.description == "Salary"
        assert record.account_id == self.account.id
        assert record.timestamp == self.clock.now()
        assert self.account.balance() == Decimal('150.25')

    def test_records_are_chronological(self):
        """Test history order follows the clock"""
        self.account.credit(10)
        self.clock.advance(60)
        self.account.debit(5)

        first, second = self.account.history()
        assert first.timestamp < second.timestamp
        assert first.kind == TransactionKind.DEPOSIT
        assert second.kind == TransactionKind.WITHDRAWAL
        assert second.balance_after == Decimal('105.00')

    def test_invalid_amounts(self):
        """Test zero, negative and garbage amounts leave the account untouched"""
        for amount in (0, Decimal('-5'), "abc", "0.001"):
            assert self.account.credit(amount).error == LedgerErrorCode.INVALID_AMOUNT
            assert self.account.debit(amount).error == LedgerErrorCode.INVALID_AMOUNT

        assert self.account.balance() == Decimal('100.00')
        assert self.account.history() == ()

    def test_amounts_beyond_precision(self):
        """Test huge amounts come back as INVALID_AMOUNT instead of raising"""
        for amount in ("1e30", Decimal("-1E+40"), "9" * 40):
            assert self.account.credit(amount).error == LedgerErrorCode.INVALID_AMOUNT
            assert self.account.debit(amount).error == LedgerErrorCode.INVALID_AMOUNT
            assert self.account.charge_fee(amount).error == LedgerErrorCode.INVALID_AMOUNT

        assert self.account.balance() == Decimal('100.00')
        assert self.account.history() == ()

    def test_credit_that_would_round_the_balance(self):
        """Test a credit whose sum exceeds 28 digits is refused, not rounded"""
        account = make_account(account_id="ACC-000002", opening_balance="9" * 26 + ".99")

        result = account.credit("0.02")

        assert result.error == LedgerErrorCode.INVALID_AMOUNT
        assert account.balance() == Decimal("9" * 26 + ".99")
        assert account.history() == ()
        assert account.credit("0.01").ok

    def test_snapshot(self):
        self.account.credit(5)
        balance, history = self.account.snapshot()
        assert balance == Decimal('105.00')
        assert history == self.account.history()

    def test_insufficient_funds_raise_for_error(self):
        """Test callers can opt into exceptions"""
        result = self.account.debit(500)
        with pytest.raises(InsufficientFunds, match="requested 500.00"):
            result.raise_for_error()

    def test_history_is_a_snapshot(self):
        """Test later mutations do not change an earlier snapshot"""
        self.account.credit(1)
        snapshot = self.account.history()
        self.account.credit(2)

        assert len(snapshot) == 1
        assert len(self.account.history()) == 2
        assert isinstance(snapshot, tuple)

    def test_wrong_kind_rejected(self):
        """Test transfer legs cannot be posted through credit/debit"""
        with pytest.raises(ValueError):
            self.account.credit(10, kind=TransactionKind.TRANSFER_IN)
        with pytest.raises(ValueError):
            self.account.debit(10, kind=TransactionKind.TRANSFER_OUT)

    def test_charge_fee(self):
        result = self.account.charge_fee("2.50")
        assert result.ok
        assert result.record.kind == TransactionKind.FEE
        assert self.account.balance() == Decimal('97.50')

    def test_fee_obeys_overdraft_guard(self):
        """Test a fee cannot push the balance below the floor"""
        result = self.account.charge_fee("100.01")
        assert result.error == LedgerErrorCode.INSUFFICIENT_FUNDS
        assert self.account.balance() == Decimal('100.00')

    def test_apply_interest(self):
        """Test interest is credited on the current balance"""
        result = self.account.apply_interest(Decimal('0.015'))

        assert result.ok
        assert result.record.kind == TransactionKind.INTEREST
        assert result.record.amount == Decimal('1.50')
        assert self.account.balance() == Decimal('101.50')

    def test_apply_interest_not_positive(self):
        """Test zero rate, zero balance and bad rates are rejected"""
        assert self.account.apply_interest(0).error == LedgerErrorCode.INVALID_AMOUNT
        assert self.account.apply_interest("x").error == LedgerErrorCode.INVALID_AMOUNT
        assert self.account.apply_interest("NaN").error == LedgerErrorCode.INVALID_AMOUNT

        assert self.account.apply_interest("1e30").error == LedgerErrorCode.INVALID_AMOUNT
        assert self.account.balance() == Decimal('100.00')
        assert self.account.history() == ()

        empty = make_account(account_id="ACC-000002")
        assert empty.apply_interest("0.05").error == LedgerErrorCode.INVALID_AMOUNT
        assert empty.history() == ()

    def test_invalid_construction(self):
        """Test bad ids and opening balances below the floor"""
        with pytest.raises(ValueError):
            make_account(account_id="")
        with pytest.raises(ValueError, match="floor"):
            make_account(opening_balance="-10")
        assert make_account(opening_balance="-10", limit="10").balance() == Decimal('-10.00')

    def test_default_policy_from_product(self):
        account = LedgerAccount("ACC-9", product_type=ProductType.SAVINGS)
        assert account.overdraft_policy == NO_OVERDRAFT


class TestAccountLifecycle:
    """Test freeze, close and policy changes"""

    def setup_method(self):
        """Set up test fixtures"""
        self.account = make_account(opening_balance="100")

    def test_frozen_account(self):
        """Test frozen accounts accept credits and refuse debits"""
        self.account.freeze("Suspicious activity")

        assert self.account.state == AccountState.FROZEN
        assert self.account.credit(10).ok
        assert self.account.debit(10).error == LedgerErrorCode.ACCOUNT_NOT_ACTIVE
        assert self.account.balance() == Decimal('110.00')

        self.account.unfreeze()
        assert self.account.debit(10).ok

    def test_close_requires_zero_balance(self):
        with pytest.raises(ValueError, match="non-zero"):
            self.account.close()
        assert self.account.state == AccountState.ACTIVE

    def test_close(self):
        """Test closing keeps history and refuses further mutations"""
        self.account.debit(100)
        history = self.account.close("Customer request")

        assert len(history) == 1
        assert self.account.state == AccountState.CLOSED
        assert self.account.credit(1).error == LedgerErrorCode.ACCOUNT_NOT_ACTIVE
        assert self.account.history() == history

        with pytest.raises(ValueError):
            self.account.unfreeze()

    def test_force_close(self):
        self.account.close(force=True)
        assert self.account.state == AccountState.CLOSED

    def test_change_overdraft_policy(self):
        """Test a new policy cannot strand the balance below its floor"""
        account = make_account(opening_balance="0", limit="500")
        account.debit(300)

        with pytest.raises(ValueError):
            account.change_overdraft_policy(OverdraftPolicy.with_limit(100))

        account.change_overdraft_policy(OverdraftPolicy.with_limit(1000))
        assert account.overdraft_limit == Decimal('1000.00')
        assert account.debit(700).ok


class TestAccountEvents:
    """Test event publication from accounts"""

    def setup_method(self):
        """Set up test fixtures"""
        self.dispatcher = EventDispatcher()
        self.events = []
        self.dispatcher.subscribe_all(self.events.append)
        self.account = make_account(opening_balance="50", dispatcher=self.dispatcher)

    def test_credit_and_debit_events(self):
        self.account.credit(10)
        self.account.debit(5)

        assert [e.event_type for e in self.events] == [
            LedgerEvent.ACCOUNT_CREDITED, LedgerEvent.ACCOUNT_DEBITED
        ]
        assert self.events[0].entity_id == self.account.id
        assert self.events[0].data['amount'] == "10.00"

    def test_rejected_debit_event(self):
        """Test a refused debit is published, not printed"""
        self.account.debit(500)

        event = self.events[-1]
        assert event.event_type == LedgerEvent.DEBIT_REJECTED
        assert event.data['error'] == "insufficient_funds"

    def test_handler_can_read_account(self):
        """Test subscribers run after the lock is released"""
        seen = []

        def reader(event):
            result = []
            thread = threading.Thread(target=lambda: result.append(self.account.balance()))
            thread.start()
            thread.join(timeout=2)
            seen.append(result)

        self.dispatcher.subscribe(LedgerEvent.ACCOUNT_CREDITED, reader)
        self.account.credit(1)

        assert seen == [[Decimal('51.00')]]

    def test_state_change_events(self):
        self.account.freeze("review")
        self.account.debit(50)
        self.account.unfreeze()

        types = [e.event_type for e in self.events]
        assert types.count(LedgerEvent.ACCOUNT_STATE_CHANGED) == 2
        assert LedgerEvent.DEBIT_REJECTED in types


class TestAccountConcurrency:
    """Test concurrent mutation of one account"""

    def test_concurrent_debits_never_breach_floor(self):
        """Test racing debits cannot jointly overdraw the account"""
        account = make_account(opening_balance="1000", limit="100")
        barrier = threading.Barrier(20)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            for _ in range(10):
                result = account.debit(7)
                with lock:
                    results.append(result)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        successes = [r for r in results if r.ok]
        # 1100 of headroom at 7 each
        assert len(successes) == 157
        assert account.balance() == Decimal('1000') - 157 * Decimal('7')
        assert account.balance() >= Decimal('-100')
        assert len(account.history()) == 157

    def test_concurrent_credits_and_debits_balance_matches_history(self):
        account = make_account(opening_balance="500")

        def depositor():
            for _ in range(100):
                account.credit(3)

        def spender():
            for _ in range(100):
                account.debit(4)

        threads = [threading.Thread(target=f) for f in (depositor, spender, depositor, spender)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        total = account.opening_balance + sum(r.signed_amount for r in account.history())
        assert total == account.balance()
        assert account.balance() >= Decimal('0')
