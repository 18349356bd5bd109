"""
Integration tests for the assembled token system
"""

import logging

import pytest

from token_ledger.amounts import AccountId
from token_ledger.config import LedgerConfig
from token_ledger.errors import NotIssuerError, LedgerNotInitializedError
from token_ledger.events import LedgerEvent
from token_ledger.storage import InMemoryStorage, SQLiteStorage
from token_ledger.system import TokenSystem


ALICE = AccountId(b"\xa1" * 32)
BOB = AccountId(b"\xb2" * 32)
CHARLIE = AccountId(b"\xc3" * 32)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("token_ledger")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def memory_config(**overrides):
    return LedgerConfig(_env_file=None, storage_backend="memory", **overrides)


class TestTokenSystem:

    def test_wires_components_from_config(self):
        system = TokenSystem(memory_config())

        assert isinstance(system.storage, InMemoryStorage)
        assert system.event_log is not None
        assert system.dispatcher.get_handler_count() == 1
        assert not system.initialized

    def test_event_log_can_be_disabled(self):
        system = TokenSystem(memory_config(enable_event_log=False))
        assert system.event_log is None
        assert system.dispatcher.get_handler_count() == 0

    def test_full_scenario_recorded(self):
        """Create, transfer, reserve, delegated spend, burn and issue against one ledger, checked through the event log"""
        system = TokenSystem(memory_config())
        ledger = system.create_ledger(1000, ALICE)
        assert system.initialized

        ledger.transfer(ALICE, BOB, 100)
        ledger.approve(ALICE, BOB, 100)
        ledger.transfer_from(BOB, ALICE, CHARLIE, 50)
        ledger.burn(ALICE, 100)
        ledger.issue(ALICE, 1000)
        with pytest.raises(NotIssuerError):
            ledger.issue(BOB, 1000)

        assert ledger.balance_of(ALICE) == 1700
        assert ledger.balance_of(BOB) == 100
        assert ledger.balance_of(CHARLIE) == 50
        assert ledger.allowance(ALICE, BOB) == 50
        assert ledger.total_supply() == 1900
        assert ledger.verify_supply()['valid'] is True

        records = system.event_log.get_events()
        assert [r.event_type for r in records] == [
            LedgerEvent.CREATED, LedgerEvent.TRANSFER, LedgerEvent.APPROVAL,
            LedgerEvent.TRANSFER_FROM, LedgerEvent.BURN, LedgerEvent.ISSUE
        ]
        assert system.event_log.verify_integrity()['valid'] is True

    def test_ledger_property_requires_creation(self):
        system = TokenSystem(memory_config())
        with pytest.raises(LedgerNotInitializedError):
            system.ledger

    def test_sqlite_system_reopens(self, tmp_path):
        config = LedgerConfig(
            _env_file=None,
            storage_backend="sqlite",
            database_path=str(tmp_path / "system.db")
        )
        system = TokenSystem(config)
        system.create_ledger(500, ALICE).transfer(ALICE, BOB, 200)
        system.close()

        reopened = TokenSystem(config)
        assert isinstance(reopened.storage, SQLiteStorage)
        assert reopened.initialized
        assert reopened.ledger.issuer == ALICE
        assert reopened.ledger.balance_of(BOB) == 200

        reopened.ledger.burn(BOB, 50)
        assert reopened.event_log.count_events() == 3
        assert reopened.event_log.verify_integrity()['valid'] is True
        reopened.close()
