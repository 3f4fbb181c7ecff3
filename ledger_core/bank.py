"""
Bank Registry Module

Opens, finds and closes ledger accounts. Closing an account removes it from
the registry and archives its history; records are never deleted.
"""

from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import threading

from .accounts import LedgerAccount
from .amounts import AmountLike, ZERO
from .audit import AuditTrail
from .config import LedgerConfig, get_config
from .errors import AccountNotFound, LedgerErrorCode
from .events import EventDispatcher, LedgerEvent
from .logging_config import get_logger, log_action
from .policies import OverdraftPolicy, ProductType, default_policy_for
from .providers import (
    Clock, IdGenerator, SequentialIdGenerator, SystemClock, UuidIdGenerator
)
from .transactions import TransactionRecord
from .transfers import TransferResult, transfer


class Bank:
    """
    Registry of ledger accounts sharing one clock, id sources and event sink
    """

    def __init__(
        self,
        name: str,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Clock] = None,
        account_ids: Optional[IdGenerator] = None,
        transaction_ids: Optional[IdGenerator] = None,
        transfer_ids: Optional[IdGenerator] = None,
        dispatcher: Optional[EventDispatcher] = None
    ):
        self.name = name
        self.config = config or get_config()
        self.clock = clock or SystemClock()
        self.account_ids = account_ids or SequentialIdGenerator(self.config.account_id_prefix)
        self.transaction_ids = transaction_ids or UuidIdGenerator(self.config.transaction_id_prefix)
        self.transfer_ids = transfer_ids or UuidIdGenerator(self.config.transfer_id_prefix)
        self.dispatcher = dispatcher
        self.audit_trail: Optional[AuditTrail] = None
        if dispatcher is not None and self.config.enable_audit_logging:
            self.audit_trail = AuditTrail()
            self.audit_trail.attach(dispatcher)
        self._accounts: Dict[str, LedgerAccount] = {}
        self._archive: Dict[str, Tuple[TransactionRecord, ...]] = {}
        self._lock = threading.RLock()
        self.logger = get_logger("ledger_core.bank")

    def open_account(
        self,
        product_type: ProductType = ProductType.SAVINGS,
        opening_balance: AmountLike = ZERO,
        overdraft_limit: Optional[AmountLike] = None,
        owner: Optional[str] = None,
        account_id: Optional[str] = None
    ) -> LedgerAccount:
        """
        Create and register a new account

        Args:
            product_type: Product label; picks the default overdraft policy
            opening_balance: Initial balance
            overdraft_limit: Explicit limit overriding the product default
            owner: Owner/customer reference
            account_id: Specific id (generated if not provided)

        Returns:
            Registered LedgerAccount

        Raises:
            ValueError: If the id is already registered or the opening balance
                breaches the overdraft floor
        """
        if overdraft_limit is None:
            policy = default_policy_for(product_type, self.config)
        else:
            policy = OverdraftPolicy.with_limit(overdraft_limit)

        with self._lock:
            account_id = account_id or self.account_ids.next_id()
            if account_id in self._accounts or account_id in self._archive:
                raise ValueError(f"Account {account_id} already exists")

            account = LedgerAccount(
                account_id=account_id,
                opening_balance=opening_balance,
                overdraft_policy=policy,
                product_type=product_type,
                owner=owner,
                clock=self.clock,
                id_generator=self.transaction_ids,
                dispatcher=self.dispatcher,
                config=self.config
            )
            self._accounts[account_id] = account

        log_action(
            self.logger, "info",
            f"{owner or 'Customer'} opened a {product_type.value} account {account_id}",
            account_id=account_id, action="open_account", resource=f"bank:{self.name}",
            extra={
                "opening_balance": str(account.opening_balance),
                "overdraft_limit": str(account.overdraft_limit),
                "owner": owner
            }
        )
        if self.dispatcher:
            self.dispatcher.emit(LedgerEvent.ACCOUNT_OPENED, "account", account_id, {
                "bank": self.name,
                "product_type": product_type.value,
                "opening_balance": str(account.opening_balance),
                "overdraft_limit": str(account.overdraft_limit),
                "owner": owner
            }, timestamp=self.clock.now())

        return account

    def get_account(self, account_id: str) -> LedgerAccount:
        """
        Get a registered account

        Raises:
            AccountNotFound: If no open account has this id
        """
        account = self.find_account(account_id)
        if account is None:
            raise AccountNotFound(f"Account {account_id} not found in {self.name}",
                                  account_id=account_id)
        return account

    def find_account(self, account_id: str) -> Optional[LedgerAccount]:
        """Get a registered account or None"""
        with self._lock:
            return self._accounts.get(account_id)

    def accounts(self) -> List[LedgerAccount]:
        """All open accounts in opening order"""
        with self._lock:
            return list(self._accounts.values())

    def accounts_for_owner(self, owner: str) -> List[LedgerAccount]:
        return [account for account in self.accounts() if account.owner == owner]

    def close_account(self, account_id: str, reason: str = "",
                      force: bool = False) -> Tuple[TransactionRecord, ...]:
        """
        Close an account, unregister it and archive its history

        Args:
            account_id: Account to close
            reason: Reason for closing
            force: Close even with a non-zero balance

        Returns:
            The archived history snapshot

        Raises:
            AccountNotFound: If the account is not registered
            ValueError: If the balance is non-zero and force is not set
        """
        with self._lock:
            account = self.get_account(account_id)
            history = account.close(reason=reason, force=force)
            del self._accounts[account_id]
            self._archive[account_id] = history

        log_action(
            self.logger, "info", f"Account {account_id} closed",
            account_id=account_id, action="close_account", resource=f"bank:{self.name}",
            extra={"reason": reason, "archived_records": len(history)}
        )
        return history

    def archived_history(self, account_id: str) -> Tuple[TransactionRecord, ...]:
        """
        History of a closed account

        Raises:
            AccountNotFound: If no closed account has this id
        """
        with self._lock:
            if account_id not in self._archive:
                raise AccountNotFound(f"No archived history for account {account_id}",
                                      account_id=account_id)
            return self._archive[account_id]

    def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: AmountLike,
        description: str = "",
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> TransferResult:
        """Transfer between two registered accounts"""
        source = self.find_account(from_account_id)
        destination = self.find_account(to_account_id)
        missing = from_account_id if source is None else to_account_id
        if source is None or destination is None:
            log_action(
                self.logger, "warning", f"Transfer failed: account {missing} not found",
                account_id=from_account_id, action="transfer", resource=f"bank:{self.name}"
            )
            return TransferResult(
                transfer_id=self.transfer_ids.next_id(),
                source_id=from_account_id,
                destination_id=to_account_id,
                amount=None,
                error=LedgerErrorCode.ACCOUNT_NOT_FOUND,
                message=f"Account {missing} not found in {self.name}",
                failed_account_id=missing
            )

        return transfer(
            source, destination, amount,
            description=description,
            timeout=timeout,
            cancel_event=cancel_event,
            dispatcher=self.dispatcher,
            id_generator=self.transfer_ids,
            config=self.config
        )

    def total_deposits(self) -> Decimal:
        """Sum of balances across open accounts"""
        return sum((account.balance() for account in self.accounts()), ZERO)

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    def __contains__(self, account_id: str) -> bool:
        with self._lock:
            return account_id in self._accounts
