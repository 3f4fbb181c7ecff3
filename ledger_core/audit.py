"""
Audit Trail Module

Hash-chained in-memory audit log with SHA-256 for tamper detection.
The trail subscribes to an EventDispatcher and records every ledger event.
"""

import hashlib
import json
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
from decimal import Decimal
import threading

from .events import EventDispatcher, EventPayload, LedgerEvent
from .logging_config import get_logger


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


@dataclass
class AuditEntry:
    """
    Audit entry chained to its predecessor by hash
    current_hash is filled in by AuditTrail.record_event after construction;
    later edits to any field are caught by verify_integrity()
    """
    id: str
    created_at: datetime
    event_type: LedgerEvent
    entity_type: str  # account, transfer, atm
    entity_id: str
    previous_hash: str  # Hash of the previous entry, "" for the first
    current_hash: str   # SHA-256 hash of this entry
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.metadata = _json_safe(self.metadata)

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this entry
        Hash covers every field except current_hash
        """
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'metadata': self.metadata
        }

        # Deterministic JSON string
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        return self.current_hash == self.calculate_hash()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'current_hash': self.current_hash,
            'metadata': self.metadata
        }


class AuditTrail:
    """
    Hash-chained audit trail fed by ledger events
    """

    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._last_hash: Optional[str] = None
        self._lock = threading.Lock()
        self.logger = get_logger("ledger_core.audit")

    def attach(self, dispatcher: EventDispatcher) -> None:
        """Record every event published on the dispatcher"""
        dispatcher.subscribe_all(self.record_event)

    def detach(self, dispatcher: EventDispatcher) -> None:
        dispatcher.unsubscribe_all(self.record_event)

    def record_event(self, event: EventPayload) -> AuditEntry:
        """
        Append an event to the chain

        Args:
            event: Published ledger event

        Returns:
            Created AuditEntry
        """
        with self._lock:
            entry = AuditEntry(
                id=event.event_id,
                created_at=event.timestamp,
                event_type=event.event_type,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                previous_hash=self._last_hash or "",
                current_hash="",  # Calculated below
                metadata=dict(event.data)
            )
            entry.current_hash = entry.calculate_hash()
            self._entries.append(entry)
            self._last_hash = entry.current_hash

        self.logger.debug(f"Audited {event.event_type.value} for {event.entity_id}")
        return entry

    def entries(self) -> List[AuditEntry]:
        """All entries in chain order"""
        with self._lock:
            return list(self._entries)

    def entries_for(self, entity_id: str, limit: Optional[int] = None) -> List[AuditEntry]:
        """
        Entries about one entity, in chain order

        Args:
            entity_id: Account, transfer or ATM id
            limit: Keep only the most recent N entries
        """
        entries = [e for e in self.entries() if e.entity_id == entity_id]
        if limit:
            entries = entries[-limit:]
        return entries

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_entries': 0,
            'hash_errors': [],
            'chain_breaks': []
        }

        entries = self.entries()
        result['total_entries'] = len(entries)

        previous_hash = ""
        for i, entry in enumerate(entries):
            if not entry.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'entry_id': entry.id,
                    'position': i,
                    'expected_hash': entry.calculate_hash(),
                    'actual_hash': entry.current_hash
                })
            if entry.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'entry_id': entry.id,
                    'position': i,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': entry.previous_hash
                })
            previous_hash = entry.current_hash

        if not result['valid']:
            self.logger.warning(
                f"Audit chain integrity check failed: {len(result['hash_errors'])} hash errors, "
                f"{len(result['chain_breaks'])} chain breaks"
            )
        return result

    @property
    def latest_hash(self) -> Optional[str]:
        """Hash of the most recent entry"""
        return self._last_hash

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
