"""
Event Log Module

Hash-chained record of every ledger notification, kept in storage with
SHA-256 links for tamper detection. Attach an EventLog to a dispatcher and
it durably records each event the ledger publishes.
"""

import hashlib
import json
import logging
import threading
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from .events import EventDispatcher, EventPayload, LedgerEvent
from .storage import StorageInterface, StorageRecord


logger = logging.getLogger("token_ledger.audit")


@dataclass
class EventRecord(StorageRecord):
    """
    Stored form of a ledger notification with hash chaining
    """
    sequence: int
    event_type: LedgerEvent
    entity_id: str
    data: Dict[str, Any]
    emitted_at: str
    previous_hash: str
    current_hash: str

    def calculate_hash(self) -> str:
        """
        SHA-256 over every field except current_hash
        """
        hash_data = {
            'id': self.id,
            'sequence': self.sequence,
            'event_type': self.event_type.value,
            'entity_id': self.entity_id,
            'data': self.data,
            'emitted_at': self.emitted_at,
            'previous_hash': self.previous_hash
        }

        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'), default=str)
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    def to_payload(self) -> EventPayload:
        """Rebuild the notification this record was made from"""
        return EventPayload(
            event_type=self.event_type,
            entity_type="token",
            entity_id=self.entity_id,
            data=dict(self.data),
            timestamp=datetime.fromisoformat(self.emitted_at),
            event_id=self.id
        )

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['event_type'] = self.event_type.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventRecord':
        if isinstance(data['event_type'], str):
            data['event_type'] = LedgerEvent(data['event_type'])
        return super().from_dict(data)


class EventLog:
    """
    Durable, hash-chained sink for ledger notifications
    """

    def __init__(self, storage: StorageInterface, table_name: str = "ledger_events"):
        self.storage = storage
        self.table_name = table_name
        self._lock = threading.Lock()
        self._last_hash = ""
        self._next_sequence = 0
        self._load_chain_head()

    def _load_chain_head(self) -> None:
        records = self._load_sorted()
        if records:
            self._last_hash = records[-1].current_hash
            self._next_sequence = records[-1].sequence + 1

    def _load_sorted(self) -> List[EventRecord]:
        records = [EventRecord.from_dict(data) for data in self.storage.load_all(self.table_name)]
        records.sort(key=lambda r: r.sequence)
        return records

    def attach(self, dispatcher: EventDispatcher) -> None:
        """Record every event published on dispatcher"""
        dispatcher.subscribe_all(self.record)

    def detach(self, dispatcher: EventDispatcher) -> None:
        dispatcher.unsubscribe_all(self.record)

    def record(self, event: EventPayload) -> EventRecord:
        """
        Append a notification to the chain

        Args:
            event: Payload published by the ledger

        Returns:
            Stored EventRecord
        """
        with self._lock:
            now = datetime.now(timezone.utc)
            record = EventRecord(
                id=event.event_id,
                created_at=now,
                updated_at=now,
                sequence=self._next_sequence,
                event_type=event.event_type,
                entity_id=event.entity_id,
                data=dict(event.data),
                emitted_at=event.timestamp.isoformat(),
                previous_hash=self._last_hash,
                current_hash=""
            )
            record.current_hash = record.calculate_hash()

            self.storage.save(self.table_name, record.id, record.to_dict())

            self._last_hash = record.current_hash
            self._next_sequence += 1
            logger.debug(f"Recorded {event.event_type.value} #{record.sequence}")

            return record

    def get_events(
        self,
        event_type: Optional[LedgerEvent] = None,
        account: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[EventRecord]:
        """
        Get recorded events in emission order

        Args:
            event_type: Only events of this type
            account: Only events naming this account (hex) in any participant field
            limit: Keep the most recent N events

        Returns:
            List of EventRecord objects
        """
        records = self._load_sorted()

        if event_type:
            records = [r for r in records if r.event_type == event_type]

        if account:
            records = [r for r in records
                       if account in (v for k, v in r.data.items() if k not in ('value', 'total_supply'))]

        if limit:
            records = records[-limit:]

        return records

    def count_events(self) -> int:
        return self.storage.count(self.table_name)

    def get_latest_hash(self) -> Optional[str]:
        return self._last_hash or None

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify every record hash and the continuity of the chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_events': 0,
            'hash_errors': [],
            'chain_breaks': []
        }

        records = self._load_sorted()
        result['total_events'] = len(records)

        previous_hash = ""
        for position, record in enumerate(records):
            if not record.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'event_id': record.id,
                    'position': position,
                    'expected_hash': record.calculate_hash(),
                    'actual_hash': record.current_hash
                })

            if record.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'event_id': record.id,
                    'position': position,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': record.previous_hash
                })
            previous_hash = record.current_hash

        if not result['valid']:
            logger.warning(
                f"Event log integrity check failed: {len(result['hash_errors'])} hash errors, "
                f"{len(result['chain_breaks'])} chain breaks"
            )

        return result
