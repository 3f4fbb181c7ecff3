"""
Test suite for policies module

Tests the overdraft guard and the product default policies.
"""

import pytest
from decimal import Decimal

from ledger_core.config import LedgerConfig
from ledger_core.policies import (
    NO_OVERDRAFT, OverdraftPolicy, ProductType, default_policy_for
)


class TestOverdraftPolicy:
    """Test OverdraftPolicy guard"""

    def test_no_overdraft(self):
        """Test a zero limit never allows a negative balance"""
        assert NO_OVERDRAFT.limit == Decimal('0.00')
        assert NO_OVERDRAFT.floor == Decimal('0.00')
        assert not NO_OVERDRAFT.allows_overdraft

        assert NO_OVERDRAFT.allows(Decimal('100.00'), Decimal('100.00'))
        assert not NO_OVERDRAFT.allows(Decimal('100.00'), Decimal('100.01'))

    def test_overdraft_limit(self):
        """Test a debit may reach exactly -limit"""
        policy = OverdraftPolicy.with_limit("500")

        assert policy.limit == Decimal('500.00')
        assert policy.floor == Decimal('-500.00')
        assert policy.allows_overdraft
        assert policy.allows(Decimal('0'), Decimal('500.00'))
        assert not policy.allows(Decimal('0'), Decimal('500.01'))
        assert not policy.allows(Decimal('-300.00'), Decimal('300.00'))

    def test_headroom(self):
        """Test available funds include unused overdraft"""
        policy = OverdraftPolicy.with_limit(500)

        assert policy.headroom(Decimal('100.00')) == Decimal('600.00')
        assert policy.headroom(Decimal('-300.00')) == Decimal('200.00')
        assert NO_OVERDRAFT.headroom(Decimal('-10.00')) == Decimal('0')

    def test_permits_balance(self):
        policy = OverdraftPolicy.with_limit(100)
        assert policy.permits_balance(Decimal('-100.00'))
        assert not policy.permits_balance(Decimal('-100.01'))

    def test_negative_limit_rejected(self):
        """Test a negative limit is a construction error"""
        with pytest.raises(ValueError, match="negative"):
            OverdraftPolicy.with_limit("-1")

    def test_policy_is_value(self):
        """Test policies with equal limits compare equal"""
        assert OverdraftPolicy.with_limit("250") == OverdraftPolicy(Decimal('250'))


class TestDefaultPolicy:
    """Test product default policies"""

    def setup_method(self):
        """Set up test fixtures"""
        self.config = LedgerConfig(default_overdraft_limit="750.00")

    def test_checking_and_current_get_configured_limit(self):
        for product in (ProductType.CHECKING, ProductType.CURRENT):
            policy = default_policy_for(product, self.config)
            assert policy.limit == Decimal('750.00')

    def test_other_products_get_no_overdraft(self):
        for product in (ProductType.SAVINGS, ProductType.WALLET, ProductType.LOAN):
            assert default_policy_for(product, self.config) == NO_OVERDRAFT
