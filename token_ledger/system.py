"""
Token System Wiring

Assembles configuration, logging, storage, the notification dispatcher and
the event log around a TokenLedger. This plays the host's part: it persists
state between calls and durably records emitted notifications.
"""

from typing import Optional

from .amounts import AccountId
from .audit import EventLog
from .config import LedgerConfig, get_config
from .events import EventDispatcher
from .ledger import TokenLedger, META_TABLE, META_ID
from .logging_config import setup_logging
from .storage import create_storage


class TokenSystem:
    """Main token system that coordinates all components"""

    def __init__(self, config: Optional[LedgerConfig] = None):
        self.config = config or get_config()
        self.logger = setup_logging(self.config.log_level, "token_ledger", self.config.log_format)

        self.storage = create_storage(self.config)
        self.dispatcher = EventDispatcher()

        self.event_log: Optional[EventLog] = None
        if self.config.enable_event_log:
            self.event_log = EventLog(self.storage, self.config.event_log_table)
            self.event_log.attach(self.dispatcher)

        self._ledger: Optional[TokenLedger] = None

    @property
    def initialized(self) -> bool:
        return self.storage.exists(META_TABLE, META_ID)

    @property
    def ledger(self) -> TokenLedger:
        """The ledger held in storage, opened on first access"""
        if self._ledger is None:
            self._ledger = TokenLedger.open(self.storage, self.dispatcher)
        return self._ledger

    def create_ledger(self, initial_supply: int, creator) -> TokenLedger:
        self._ledger = TokenLedger.new(
            initial_supply, AccountId.coerce(creator),
            storage=self.storage, dispatcher=self.dispatcher
        )
        self.logger.info(f"Token ledger created with supply {initial_supply}")
        return self._ledger

    def close(self) -> None:
        self.storage.close()
