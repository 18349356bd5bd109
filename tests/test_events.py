"""
Tests for the Event System (Observer Pattern)

Tests the dispatcher, payload serialization and the ledger event factories.
"""

import pytest
from datetime import datetime
from unittest.mock import Mock

from token_ledger.amounts import AccountId
from token_ledger.events import (
    LedgerEvent, EventPayload, EventDispatcher,
    create_created_event, create_transfer_event, create_approval_event,
    create_transfer_from_event, create_burn_event, create_issue_event,
    get_global_dispatcher, set_global_dispatcher
)


OWNER = AccountId(b"\x0a" * 32)
SPENDER = AccountId(b"\x0b" * 32)
RECIPIENT = AccountId(b"\x0c" * 32)


class TestEventPayload:
    """Test EventPayload creation and serialization"""

    def test_event_payload_creation(self):
        event = create_transfer_event(OWNER, RECIPIENT, 42)

        assert event.event_type == LedgerEvent.TRANSFER
        assert event.entity_type == "token"
        assert event.entity_id == OWNER.hex()
        assert event.value == 42
        assert isinstance(event.timestamp, datetime)
        assert len(event.event_id) > 0

    def test_event_payload_is_immutable(self):
        event = create_burn_event(OWNER, 1)
        with pytest.raises(Exception):
            event.entity_id = "other"

    def test_event_data_is_read_only(self):
        source = {"from": OWNER.hex(), "value": 1}
        event = EventPayload(LedgerEvent.BURN, "token", OWNER.hex(), source)

        with pytest.raises(TypeError):
            event.data["value"] = 999
        with pytest.raises(TypeError):
            del event.data["from"]

        source["value"] = 999
        assert event.value == 1
        assert event.data == {"from": OWNER.hex(), "value": 1}

    def test_event_payload_serialization(self):
        original = create_approval_event(OWNER, SPENDER, 7)

        event_dict = original.to_dict()
        assert event_dict['event_type'] == "token.approval"
        assert event_dict['data'] == {"owner": OWNER.hex(), "spender": SPENDER.hex(), "value": 7}

        restored = EventPayload.from_dict(event_dict)
        assert restored == original

    def test_event_ids_are_unique(self):
        first = create_issue_event(OWNER, 1)
        second = create_issue_event(OWNER, 1)
        assert first.event_id != second.event_id


class TestEventFactories:
    """Each notification carries its participants and amount"""

    def test_created(self):
        event = create_created_event(OWNER, 1000)
        assert event.event_type == LedgerEvent.CREATED
        assert event.data == {"from": OWNER.hex(), "total_supply": 1000}
        assert event.value == 1000

    def test_transfer_from_names_spender_as_from(self):
        event = create_transfer_from_event(SPENDER, OWNER, RECIPIENT, 5)
        assert event.entity_id == SPENDER.hex()
        assert event.data == {
            "from": SPENDER.hex(), "owner": OWNER.hex(), "to": RECIPIENT.hex(), "value": 5
        }

    def test_burn_and_issue(self):
        assert create_burn_event(OWNER, 3).data == {"from": OWNER.hex(), "value": 3}
        assert create_issue_event(OWNER, 4).data == {"issuer": OWNER.hex(), "value": 4}


class TestEventDispatcher:
    """Test the event dispatcher"""

    def test_subscribe_and_publish_single_event(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(LedgerEvent.TRANSFER, handler)

        event = create_transfer_event(OWNER, RECIPIENT, 1)
        dispatcher.publish(event)

        handler.assert_called_once_with(event)

    def test_handlers_only_receive_their_type(self):
        dispatcher = EventDispatcher()
        transfer_handler = Mock()
        burn_handler = Mock()
        dispatcher.subscribe(LedgerEvent.TRANSFER, transfer_handler)
        dispatcher.subscribe(LedgerEvent.BURN, burn_handler)

        burn = create_burn_event(OWNER, 2)
        dispatcher.publish(burn)

        transfer_handler.assert_not_called()
        burn_handler.assert_called_once_with(burn)

    def test_global_handler_receives_all_events(self):
        dispatcher = EventDispatcher()
        global_handler = Mock()
        dispatcher.subscribe_all(global_handler)

        dispatcher.publish(create_transfer_event(OWNER, RECIPIENT, 1))
        dispatcher.publish(create_issue_event(OWNER, 1))

        assert global_handler.call_count == 2

    def test_unsubscribe(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(LedgerEvent.ISSUE, handler)
        dispatcher.unsubscribe(LedgerEvent.ISSUE, handler)

        dispatcher.publish(create_issue_event(OWNER, 1))

        handler.assert_not_called()
        assert dispatcher.get_subscribed_events() == []

    def test_unsubscribe_unknown_handler_is_harmless(self):
        dispatcher = EventDispatcher()
        dispatcher.subscribe(LedgerEvent.ISSUE, Mock())
        dispatcher.unsubscribe(LedgerEvent.ISSUE, Mock())
        dispatcher.unsubscribe_all(Mock())
        assert dispatcher.get_handler_count() == 1

    def test_handler_error_does_not_stop_others(self):
        dispatcher = EventDispatcher()
        failing = Mock(side_effect=RuntimeError("boom"))
        healthy = Mock()
        dispatcher.subscribe(LedgerEvent.BURN, failing)
        dispatcher.subscribe_all(healthy)

        event = create_burn_event(OWNER, 1)
        dispatcher.publish(event)

        failing.assert_called_once_with(event)
        healthy.assert_called_once_with(event)

    def test_handler_counts_and_clear(self):
        dispatcher = EventDispatcher()
        dispatcher.subscribe(LedgerEvent.BURN, Mock())
        dispatcher.subscribe(LedgerEvent.BURN, Mock())
        dispatcher.subscribe_all(Mock())

        assert dispatcher.get_handler_count(LedgerEvent.BURN) == 2
        assert dispatcher.get_handler_count() == 3
        assert dispatcher.get_subscribed_events() == [LedgerEvent.BURN]

        dispatcher.clear()
        assert dispatcher.get_handler_count() == 0


class TestGlobalDispatcher:

    def test_set_and_get(self):
        previous = get_global_dispatcher()
        custom = EventDispatcher()
        try:
            set_global_dispatcher(custom)
            assert get_global_dispatcher() is custom
        finally:
            set_global_dispatcher(previous)

    def test_singleton(self):
        assert get_global_dispatcher() is get_global_dispatcher()
