"""
Overdraft Policy Module

A single account type is parameterised by an overdraft policy value instead
of a class hierarchy. The guard in OverdraftPolicy.allows() is the only place
that decides whether a debit may proceed.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Optional
from enum import Enum

from .amounts import AmountLike, ZERO, to_amount
from .config import LedgerConfig, get_config


class ProductType(Enum):
    """Account product labels; carry no behaviour beyond the default policy"""
    SAVINGS = "savings"    # No overdraft, earns interest
    CHECKING = "checking"  # Overdraft up to the configured limit
    CURRENT = "current"    # Same policy as checking
    LOAN = "loan"          # Disbursement account, limit given explicitly
    WALLET = "wallet"      # Prepaid balance, no overdraft


@dataclass(frozen=True)
class OverdraftPolicy:
    """
    Most negative balance a debit may produce is -limit
    A limit of zero means the account can never go below zero
    """
    limit: Decimal = ZERO

    def __post_init__(self):
        limit = to_amount(self.limit)
        if limit < ZERO:
            raise ValueError("Overdraft limit cannot be negative")
        object.__setattr__(self, 'limit', limit)

    @classmethod
    def with_limit(cls, amount: AmountLike) -> 'OverdraftPolicy':
        return cls(limit=to_amount(amount))

    @property
    def floor(self) -> Decimal:
        """Lowest balance this policy permits"""
        return -self.limit

    @property
    def allows_overdraft(self) -> bool:
        return self.limit > ZERO

    def allows(self, balance: Decimal, amount: Decimal) -> bool:
        """Debit guard: balance - amount must stay at or above the floor"""
        return balance - amount >= self.floor

    def headroom(self, balance: Decimal) -> Decimal:
        """Largest amount that can currently be debited"""
        return max(balance + self.limit, ZERO)

    def permits_balance(self, balance: Decimal) -> bool:
        return balance >= self.floor


NO_OVERDRAFT = OverdraftPolicy()


def default_policy_for(
    product_type: ProductType,
    config: Optional[LedgerConfig] = None
) -> OverdraftPolicy:
    """
    Pick the overdraft policy a product gets when none is given

    Args:
        product_type: Product label of the account
        config: Settings supplying the default checking limit

    Returns:
        NO_OVERDRAFT for savings, wallet and loan accounts; the configured
        default limit for checking and current accounts
    """
    settings = config or get_config()
    if product_type in (ProductType.CHECKING, ProductType.CURRENT):
        return OverdraftPolicy.with_limit(settings.default_overdraft_limit)
    return NO_OVERDRAFT
