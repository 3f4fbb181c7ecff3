"""
Test suite for audit module

Tests hash-chained audit trail, tamper detection and integrity verification.
"""

import hashlib
import json
from datetime import datetime, timezone
from decimal import Decimal

from ledger_core.accounts import LedgerAccount
from ledger_core.audit import AuditEntry, AuditTrail
from ledger_core.events import EventDispatcher, LedgerEvent
from ledger_core.transfers import transfer


class TestAuditEntry:
    """Test AuditEntry functionality"""

    def test_metadata_serialization(self):
        """Test Decimals, datetimes and enums become JSON-friendly"""
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        entry = AuditEntry(
            id="EVT-1",
            created_at=now,
            event_type=LedgerEvent.ACCOUNT_CREDITED,
            entity_type="account",
            entity_id="ACC-1",
            previous_hash="",
            current_hash="",
            metadata={
                "amount": Decimal('12.50'),
                "at": now,
                "kind": LedgerEvent.ACCOUNT_CREDITED,
                "nested": {"values": [Decimal('1.1')]}
            }
        )

        assert entry.metadata["amount"] == "12.50"
        assert entry.metadata["at"] == now.isoformat()
        assert entry.metadata["kind"] == "account.credited"
        assert entry.metadata["nested"] == {"values": ["1.1"]}
        json.dumps(entry.metadata)

    def test_hash_calculation(self):
        """Test hash is SHA-256 over sorted compact JSON"""
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        entry = AuditEntry("EVT-1", now, LedgerEvent.ACCOUNT_OPENED, "account", "ACC-1",
                           previous_hash="abc", current_hash="")

        expected = hashlib.sha256(json.dumps({
            'id': "EVT-1",
            'created_at': now.isoformat(),
            'event_type': "account.opened",
            'entity_type': "account",
            'entity_id': "ACC-1",
            'previous_hash': "abc",
            'metadata': {}
        }, sort_keys=True, separators=(',', ':')).encode('utf-8')).hexdigest()

        assert entry.calculate_hash() == expected
        entry.current_hash = expected
        assert entry.verify_hash()


class TestAuditTrail:
    """Test AuditTrail fed by a dispatcher"""

    def setup_method(self):
        """Set up test fixtures"""
        self.dispatcher = EventDispatcher()
        self.trail = AuditTrail()
        self.trail.attach(self.dispatcher)
        self.a = LedgerAccount("A", opening_balance="100", dispatcher=self.dispatcher)
        self.b = LedgerAccount("B", opening_balance="0", dispatcher=self.dispatcher)

    def test_chain_links(self):
        """Test each entry points at the previous entry's hash"""
        self.a.credit(10)
        self.a.debit(5)
        transfer(self.a, self.b, 20)

        entries = self.trail.entries()
        assert len(entries) == len(self.trail) >= 5
        assert entries[0].previous_hash == ""
        for previous, current in zip(entries, entries[1:]):
            assert current.previous_hash == previous.current_hash
        assert self.trail.latest_hash == entries[-1].current_hash

    def test_entries_for(self):
        self.a.credit(10)
        self.b.credit(1)
        self.a.debit(500)

        entries = self.trail.entries_for("A")
        assert [e.event_type for e in entries] == [
            LedgerEvent.ACCOUNT_CREDITED, LedgerEvent.DEBIT_REJECTED
        ]
        assert self.trail.entries_for("A", limit=1) == entries[-1:]

    def test_verify_integrity(self):
        """Test an untouched chain verifies"""
        self.a.credit(10)
        self.a.credit(20)

        result = self.trail.verify_integrity()
        assert result['valid']
        assert result['total_entries'] == 2
        assert result['hash_errors'] == []
        assert result['chain_breaks'] == []

    def test_tampering_detected(self):
        """Test editing an entry's metadata breaks its hash"""
        self.a.credit(10)
        self.a.credit(20)

        self.trail.entries()[0].metadata['amount'] = "1000000.00"

        result = self.trail.verify_integrity()
        assert not result['valid']
        assert result['hash_errors'][0]['position'] == 0

    def test_edited_entity_detected(self):
        """Test entries are mutable, so a field edit after recording must show as a hash error"""
        self.a.credit(10)

        entry = self.trail.entries()[0]
        entry.entity_id = "ACC-OTHER"

        assert not entry.verify_hash()
        assert self.trail.verify_integrity()['hash_errors'][0]['entry_id'] == entry.id

    def test_chain_break_detected(self):
        self.a.credit(10)
        self.a.credit(20)

        second = self.trail.entries()[1]
        second.previous_hash = "forged"
        second.current_hash = second.calculate_hash()

        result = self.trail.verify_integrity()
        assert not result['valid']
        assert result['chain_breaks'][0]['position'] == 1

    def test_detach(self):
        self.trail.detach(self.dispatcher)
        self.a.credit(10)
        assert len(self.trail) == 0
        assert self.trail.latest_hash is None
