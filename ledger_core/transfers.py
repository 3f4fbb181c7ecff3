"""
Transfer Operation Module

Moves funds between two ledger accounts as one unit of work. Both account
locks are taken in a consistent global order (by account id) with a bounded
wait, so opposite-direction transfers between the same pair cannot deadlock
and no observer ever sees the debit leg without the credit leg.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Optional
import threading
import time

from .accounts import LedgerAccount
from .amounts import AmountLike, ZERO, checked_sum, to_amount, format_amount
from .config import LedgerConfig, get_config
from .errors import LedgerErrorCode, error_for
from .events import EventDispatcher, LedgerEvent
from .logging_config import get_logger, log_action
from .providers import Clock, IdGenerator, UuidIdGenerator
from .transactions import TransactionKind, TransactionRecord

logger = get_logger("ledger_core.transfers")


@dataclass(frozen=True)
class TransferResult:
    """
    Outcome of a transfer
    On success both legs are present and share the transfer id as reference
    """
    transfer_id: str
    source_id: str
    destination_id: str
    amount: Optional[Decimal]
    error: Optional[LedgerErrorCode] = None
    message: str = ""
    failed_account_id: Optional[str] = None
    debit_record: Optional[TransactionRecord] = None
    credit_record: Optional[TransactionRecord] = None

    @property
    def ok(self) -> bool:
        """Check if the transfer completed"""
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    def raise_for_error(self) -> 'TransferResult':
        """Raise the matching LedgerError if the transfer failed"""
        if self.error is not None:
            raise error_for(self.error, self.message, self.failed_account_id)
        return self


def _credit_fits(account: LedgerAccount, amount: Decimal) -> bool:
    try:
        checked_sum(account.balance(), amount)
    except ValueError:
        return False
    return True


def _acquire_in_order(
    first: LedgerAccount,
    second: LedgerAccount,
    timeout: float
) -> bool:
    """Take both locks before the deadline or neither"""
    deadline = time.monotonic() + timeout
    if not first._try_lock(timeout):
        return False
    remaining = deadline - time.monotonic()
    if not second._try_lock(remaining):
        first._unlock()
        return False
    return True


def transfer(
    source: LedgerAccount,
    destination: LedgerAccount,
    amount: AmountLike,
    description: str = "",
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    dispatcher: Optional[EventDispatcher] = None,
    id_generator: Optional[IdGenerator] = None,
    config: Optional[LedgerConfig] = None
) -> TransferResult:
    """
    Debit source and credit destination atomically

    Args:
        source: Account to debit (TRANSFER_OUT leg)
        destination: Account to credit (TRANSFER_IN leg)
        amount: Positive amount
        description: Free text stored on both records
        timeout: Bounded wait for both locks in seconds (defaults to config)
        cancel_event: If set before the debit commits, the transfer is abandoned
        dispatcher: Event sink (defaults to the source account's sink)
        id_generator: Source of transfer ids
        config: Settings (defaults to the global config)

    Returns:
        TransferResult. Failures: SAME_ACCOUNT, INVALID_AMOUNT,
        OPERATION_TIMED_OUT, OPERATION_CANCELLED, ACCOUNT_NOT_ACTIVE,
        INSUFFICIENT_FUNDS. On any failure neither account is changed.
    """
    settings = config or get_config()
    ids = id_generator or UuidIdGenerator(settings.transfer_id_prefix)
    transfer_id = ids.next_id()
    sink = dispatcher or source._dispatcher or destination._dispatcher
    wait = settings.transfer_lock_timeout_seconds if timeout is None else timeout

    def fail(code: LedgerErrorCode, message: str, value: Optional[Decimal] = None,
             account_id: Optional[str] = None) -> TransferResult:
        result = TransferResult(
            transfer_id=transfer_id,
            source_id=source.id,
            destination_id=destination.id,
            amount=value,
            error=code,
            message=message,
            failed_account_id=account_id or source.id
        )
        _report_failure(result, sink, source._clock)
        return result

    if source is destination or source.id == destination.id:
        return fail(LedgerErrorCode.SAME_ACCOUNT,
                    f"Cannot transfer from account {source.id} to itself")

    try:
        value = to_amount(amount)
    except ValueError as e:
        return fail(LedgerErrorCode.INVALID_AMOUNT, str(e))

    if value <= ZERO:
        return fail(LedgerErrorCode.INVALID_AMOUNT, "Transfer amount must be positive", value)

    if cancel_event is not None and cancel_event.is_set():
        return fail(LedgerErrorCode.OPERATION_CANCELLED,
                    "Transfer cancelled before locking", value)

    first, second = sorted((source, destination), key=lambda account: account.id)
    if not _acquire_in_order(first, second, wait):
        return fail(
            LedgerErrorCode.OPERATION_TIMED_OUT,
            f"Could not lock accounts {first.id} and {second.id} within {wait}s",
            value
        )

    failure = None
    try:
        if cancel_event is not None and cancel_event.is_set():
            failure = (LedgerErrorCode.OPERATION_CANCELLED,
                       "Transfer cancelled before the debit committed", source.id)
        # Destination checks run before the debit so the credit leg cannot fail afterwards
        elif not destination.can_credit():
            failure = (
                LedgerErrorCode.ACCOUNT_NOT_ACTIVE,
                f"Account {destination.id} is {destination.state.value} and cannot be credited",
                destination.id
            )
        elif not _credit_fits(destination, value):
            failure = (
                LedgerErrorCode.INVALID_AMOUNT,
                f"Crediting {format_amount(value)} would take account {destination.id} out of range",
                destination.id
            )
        else:
            debit_result = source._post(
                value, TransactionKind.TRANSFER_OUT, description,
                reference=transfer_id, counterparty_account_id=destination.id
            )
            if debit_result.ok:
                credit_result = destination._post(
                    value, TransactionKind.TRANSFER_IN, description,
                    reference=transfer_id, counterparty_account_id=source.id
                )
            else:
                failure = (debit_result.error, debit_result.message, source.id)
    finally:
        second._unlock()
        first._unlock()

    if failure:
        code, message, failed_account_id = failure
        return fail(code, message, value, failed_account_id)

    source._report(debit_result, TransactionKind.TRANSFER_OUT, value)
    destination._report(credit_result, TransactionKind.TRANSFER_IN, value)

    result = TransferResult(
        transfer_id=transfer_id,
        source_id=source.id,
        destination_id=destination.id,
        amount=value,
        debit_record=debit_result.record,
        credit_record=credit_result.record
    )

    log_action(
        logger, "info",
        f"Transferred {format_amount(value)} from {source.id} to {destination.id}",
        account_id=source.id, action="transfer",
        resource=f"transfer:{transfer_id}", correlation_id=transfer_id,
        extra={"destination": destination.id, "amount": str(value)}
    )
    if sink:
        sink.emit(LedgerEvent.TRANSFER_COMPLETED, "transfer", transfer_id, {
            "source_id": source.id,
            "destination_id": destination.id,
            "amount": str(value),
            "debit_record_id": result.debit_record.id,
            "credit_record_id": result.credit_record.id
        }, timestamp=source._clock.now())
    return result


def _report_failure(result: TransferResult, sink: Optional[EventDispatcher],
                    clock: Optional[Clock] = None) -> None:
    log_action(
        logger, "warning",
        f"Transfer {result.transfer_id} from {result.source_id} to {result.destination_id} "
        f"failed: {result.message}",
        account_id=result.source_id, action="transfer",
        resource=f"transfer:{result.transfer_id}", correlation_id=result.transfer_id,
        extra={"error": result.error.value,
               "amount": str(result.amount) if result.amount is not None else None}
    )
    if sink:
        sink.emit(LedgerEvent.TRANSFER_FAILED, "transfer", result.transfer_id, {
            "source_id": result.source_id,
            "destination_id": result.destination_id,
            "amount": str(result.amount) if result.amount is not None else None,
            "error": result.error.value,
            "message": result.message
        }, timestamp=clock.now() if clock else None)
