"""
Event System Module

Notification sink for the ledger. Every completed state transition is
published as an immutable EventPayload through an EventDispatcher using a
publish/subscribe mechanism.
"""

from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, List, Any, Mapping, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid
import logging
from threading import RLock


class LedgerEvent(Enum):
    """Notifications emitted by the token ledger"""
    CREATED = "token.created"
    TRANSFER = "token.transfer"
    APPROVAL = "token.approval"
    TRANSFER_FROM = "token.transfer_from"
    BURN = "token.burn"
    ISSUE = "token.issue"


@dataclass(frozen=True)
class EventPayload:
    """
    Immutable record of a completed ledger state transition

    The same payload is handed to every subscriber and returned to the
    caller, so data is held as a read-only view over a private copy.
    """
    event_type: LedgerEvent
    entity_type: str
    entity_id: str
    data: Mapping[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        object.__setattr__(self, 'data', MappingProxyType(dict(self.data)))

    @property
    def value(self) -> int:
        """Amount carried by the event (total supply for CREATED)"""
        if self.event_type == LedgerEvent.CREATED:
            return self.data['total_supply']
        return self.data['value']

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'data': dict(self.data),
            'timestamp': self.timestamp.isoformat(),
            'event_id': self.event_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventPayload':
        """Create from dictionary"""
        return cls(
            event_type=LedgerEvent(data['event_type']),
            entity_type=data['entity_type'],
            entity_id=data['entity_id'],
            data=dict(data['data']),
            timestamp=datetime.fromisoformat(data['timestamp']) if isinstance(data['timestamp'], str) else data['timestamp'],
            event_id=data['event_id']
        )


def _handler_name(handler: Callable) -> str:
    return getattr(handler, '__name__', repr(handler))


class EventDispatcher:
    """Central event dispatcher: publish/subscribe pattern"""

    def __init__(self):
        self._handlers: Dict[LedgerEvent, List[Callable]] = {}
        self._global_handlers: List[Callable] = []  # catch-all handlers
        self._lock = RLock()
        self.logger = logging.getLogger("token_ledger.events")

    def subscribe(self, event_type: LedgerEvent, handler: Callable) -> None:
        """Subscribe to a specific event type"""
        with self._lock:
            if event_type not in self._handlers:
                self._handlers[event_type] = []
            self._handlers[event_type].append(handler)
            self.logger.debug(f"Subscribed handler {_handler_name(handler)} to {event_type.value}")

    def subscribe_all(self, handler: Callable) -> None:
        """Subscribe to ALL events"""
        with self._lock:
            self._global_handlers.append(handler)
            self.logger.debug(f"Subscribed global handler {_handler_name(handler)}")

    def unsubscribe(self, event_type: LedgerEvent, handler: Callable) -> None:
        """Unsubscribe from a specific event type"""
        with self._lock:
            if event_type in self._handlers:
                try:
                    self._handlers[event_type].remove(handler)
                    self.logger.debug(f"Unsubscribed handler {_handler_name(handler)} from {event_type.value}")
                except ValueError:
                    self.logger.warning(f"Handler {_handler_name(handler)} was not subscribed to {event_type.value}")

    def unsubscribe_all(self, handler: Callable) -> None:
        """Remove a catch-all handler"""
        with self._lock:
            try:
                self._global_handlers.remove(handler)
                self.logger.debug(f"Unsubscribed global handler {_handler_name(handler)}")
            except ValueError:
                self.logger.warning(f"Global handler {_handler_name(handler)} was not subscribed")

    def publish(self, event: EventPayload) -> None:
        """Publish event to all subscribers"""
        with self._lock:
            self.logger.debug(f"Publishing event {event.event_type.value} for {event.entity_type}:{event.entity_id}")

            for handler in self._handlers.get(event.event_type, []):
                try:
                    handler(event)
                except Exception:
                    # The state transition has already committed
                    self.logger.exception(f"Error in event handler {_handler_name(handler)} for {event.event_type.value}")

            for handler in self._global_handlers:
                try:
                    handler(event)
                except Exception:
                    self.logger.exception(f"Error in global event handler {_handler_name(handler)} for {event.event_type.value}")

    def clear(self) -> None:
        """Clear all handlers"""
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()
            self.logger.info("All event handlers cleared")

    def get_handler_count(self, event_type: Optional[LedgerEvent] = None) -> int:
        """Get count of handlers for a specific event type or all"""
        with self._lock:
            if event_type:
                return len(self._handlers.get(event_type, []))
            total = sum(len(handlers) for handlers in self._handlers.values())
            total += len(self._global_handlers)
            return total

    def get_subscribed_events(self) -> List[LedgerEvent]:
        """Get list of events that have subscribers"""
        with self._lock:
            return [event_type for event_type, handlers in self._handlers.items() if handlers]


# Process-wide dispatcher used when a ledger is built without one
_global_dispatcher: Optional[EventDispatcher] = None


def get_global_dispatcher() -> EventDispatcher:
    """Get the global event dispatcher instance"""
    global _global_dispatcher
    if _global_dispatcher is None:
        _global_dispatcher = EventDispatcher()
    return _global_dispatcher


def set_global_dispatcher(dispatcher: EventDispatcher) -> None:
    """Set a custom global event dispatcher"""
    global _global_dispatcher
    _global_dispatcher = dispatcher


# Factories for the six ledger notifications. Accounts are expected as AccountId.

def create_created_event(creator, total_supply: int) -> EventPayload:
    return EventPayload(
        event_type=LedgerEvent.CREATED,
        entity_type="token",
        entity_id=creator.hex(),
        data={"from": creator.hex(), "total_supply": total_supply}
    )


def create_transfer_event(sender, to, value: int) -> EventPayload:
    return EventPayload(
        event_type=LedgerEvent.TRANSFER,
        entity_type="token",
        entity_id=sender.hex(),
        data={"from": sender.hex(), "to": to.hex(), "value": value}
    )


def create_approval_event(owner, spender, value: int) -> EventPayload:
    return EventPayload(
        event_type=LedgerEvent.APPROVAL,
        entity_type="token",
        entity_id=owner.hex(),
        data={"owner": owner.hex(), "spender": spender.hex(), "value": value}
    )


def create_transfer_from_event(spender, owner, to, value: int) -> EventPayload:
    """The `from` field is the spender who initiated the delegated transfer"""
    return EventPayload(
        event_type=LedgerEvent.TRANSFER_FROM,
        entity_type="token",
        entity_id=spender.hex(),
        data={"from": spender.hex(), "owner": owner.hex(), "to": to.hex(), "value": value}
    )


def create_burn_event(sender, value: int) -> EventPayload:
    return EventPayload(
        event_type=LedgerEvent.BURN,
        entity_type="token",
        entity_id=sender.hex(),
        data={"from": sender.hex(), "value": value}
    )


def create_issue_event(issuer, value: int) -> EventPayload:
    return EventPayload(
        event_type=LedgerEvent.ISSUE,
        entity_type="token",
        entity_id=issuer.hex(),
        data={"issuer": issuer.hex(), "value": value}
    )
