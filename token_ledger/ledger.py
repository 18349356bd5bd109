"""
Token Ledger Engine

State machine over account balances, owner/spender allowances and total
supply. Every mutating operation validates its precondition first, commits
its writes inside one storage transaction and then publishes exactly one
notification. A failed operation raises a LedgerError and leaves state and
the event stream untouched.

Invariant: stored balances plus reserved allowances equal total supply;
with no allowance outstanding, balances alone equal total supply.

Note on approve: approving debits the owner's balance into the allowance,
and transfer_from draws from that allowance only, crediting the recipient.
This deliberately differs from ERC-20, where approve merely sets a ceiling.
"""

from typing import Dict, Optional, Union

from .amounts import AccountId, validate_amount, checked_add, parse_amount
from .errors import (
    InsufficientAllowanceError, InsufficientBalanceError, NotIssuerError,
    LedgerError, LedgerAlreadyInitializedError, LedgerNotInitializedError
)
from .events import (
    EventDispatcher, EventPayload, get_global_dispatcher,
    create_created_event, create_transfer_event, create_approval_event,
    create_transfer_from_event, create_burn_event, create_issue_event
)
from .logging_config import get_logger, log_action
from .storage import StorageInterface, InMemoryStorage


AccountLike = Union[AccountId, bytes, str]

META_TABLE = "ledger_meta"
META_ID = "ledger"
BALANCES_TABLE = "balances"
ALLOWANCES_TABLE = "allowances"


class TokenLedger:
    """
    Fungible token ledger backed by a storage interface.

    Use TokenLedger.new() to create a ledger and TokenLedger.open() to attach
    to one already persisted in storage. The caller identity is passed
    explicitly to every mutating operation.
    """

    def __init__(
        self,
        storage: StorageInterface,
        issuer: AccountId,
        dispatcher: Optional[EventDispatcher] = None
    ):
        self.storage = storage
        self._issuer = issuer
        self._dispatcher = dispatcher
        self.logger = get_logger("token_ledger.ledger")

    @classmethod
    def new(
        cls,
        initial_supply: int,
        creator: AccountLike,
        storage: Optional[StorageInterface] = None,
        dispatcher: Optional[EventDispatcher] = None
    ) -> 'TokenLedger':
        """
        Create a ledger with the whole initial supply held by its creator

        Args:
            initial_supply: Tokens minted to the creator
            creator: Account that becomes the issuer
            storage: Backend for ledger state, a fresh InMemoryStorage by default
            dispatcher: Notification sink, the global dispatcher by default

        Returns:
            TokenLedger after emitting one CREATED event

        Raises:
            LedgerAlreadyInitializedError: If storage already holds a ledger
        """
        creator = AccountId.coerce(creator)
        validate_amount(initial_supply, "initial_supply")

        if storage is None:
            storage = InMemoryStorage()
        if storage.exists(META_TABLE, META_ID):
            raise LedgerAlreadyInitializedError("Storage already holds a token ledger")

        ledger = cls(storage, creator, dispatcher)
        event = create_created_event(creator, initial_supply)

        with storage.atomic():
            ledger._set_total_supply(initial_supply)
            ledger._set_balance(creator, initial_supply)

        ledger._emit(event, creator, "create", "supply")
        return ledger

    @classmethod
    def open(
        cls,
        storage: StorageInterface,
        dispatcher: Optional[EventDispatcher] = None
    ) -> 'TokenLedger':
        """Attach to a ledger previously created in storage (no event)"""
        meta = storage.load(META_TABLE, META_ID)
        if meta is None:
            raise LedgerNotInitializedError("Storage holds no token ledger")
        return cls(storage, AccountId.from_hex(meta['issuer']), dispatcher)

    @property
    def issuer(self) -> AccountId:
        return self._issuer

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher or get_global_dispatcher()

    # Read operations

    def total_supply(self) -> int:
        meta = self.storage.load(META_TABLE, META_ID)
        return parse_amount(meta['total_supply']) if meta else 0

    def balance_of(self, account: AccountLike) -> int:
        account = AccountId.coerce(account)
        record = self.storage.load(BALANCES_TABLE, account.hex())
        return parse_amount(record['amount']) if record else 0

    def allowance(self, owner: AccountLike, spender: AccountLike) -> int:
        owner = AccountId.coerce(owner)
        spender = AccountId.coerce(spender)
        record = self.storage.load(ALLOWANCES_TABLE, self._allowance_key(owner, spender))
        return parse_amount(record['amount']) if record else 0

    def holders(self) -> Dict[AccountId, int]:
        """Every stored balance, including explicit zeros"""
        return {
            AccountId.from_hex(record['account']): parse_amount(record['amount'])
            for record in self.storage.load_all(BALANCES_TABLE)
        }

    def reserved(self) -> int:
        """Total held in allowances, debited from balances but still in supply"""
        return sum(parse_amount(record['amount'])
                   for record in self.storage.load_all(ALLOWANCES_TABLE))

    def verify_supply(self) -> Dict[str, object]:
        """
        Recompute balances and reserved allowances and compare with total supply

        Balances alone equal supply only while no allowance is outstanding.
        """
        balances = self.holders()
        total = sum(balances.values())
        reserved = self.reserved()
        supply = self.total_supply()
        result = {
            'valid': total + reserved == supply,
            'total_supply': supply,
            'sum_of_balances': total,
            'reserved_allowances': reserved,
            'accounts': len(balances)
        }
        if not result['valid']:
            self.logger.error(
                f"Supply invariant broken: balances {total} + reserved {reserved} != supply {supply}"
            )
        return result

    # Mutating operations

    def transfer(self, caller: AccountLike, to: AccountLike, value: int) -> EventPayload:
        """
        Move value from caller's balance to `to`

        Raises:
            InsufficientBalanceError: If caller holds less than value
        """
        caller = AccountId.coerce(caller)
        to = AccountId.coerce(to)
        validate_amount(value)

        from_balance = self.balance_of(caller)
        if from_balance < value:
            raise self._rejected(InsufficientBalanceError(caller, value, from_balance), "transfer")

        event = create_transfer_event(caller, to, value)
        with self.storage.atomic():
            self._set_balance(caller, from_balance - value)
            # Re-read so a self-transfer nets to zero
            self._set_balance(to, checked_add(self.balance_of(to), value))

        return self._emit(event, caller, "transfer", "balance")

    def approve(self, caller: AccountLike, spender: AccountLike, value: int) -> EventPayload:
        """
        Reserve value from caller's balance into spender's allowance.
        Repeated approvals accumulate.

        Raises:
            InsufficientBalanceError: If caller holds less than value
        """
        owner = AccountId.coerce(caller)
        spender = AccountId.coerce(spender)
        validate_amount(value)

        owner_balance = self.balance_of(owner)
        if owner_balance < value:
            raise self._rejected(InsufficientBalanceError(owner, value, owner_balance), "approve")

        event = create_approval_event(owner, spender, value)
        with self.storage.atomic():
            self._set_balance(owner, owner_balance - value)
            self._set_allowance(owner, spender, checked_add(self.allowance(owner, spender), value))

        return self._emit(event, owner, "approve", "allowance")

    def transfer_from(
        self,
        caller: AccountLike,
        owner: AccountLike,
        to: AccountLike,
        value: int
    ) -> EventPayload:
        """
        Spend value out of the allowance owner granted caller, crediting `to`

        Raises:
            InsufficientAllowanceError: If the allowance is below value
        """
        spender = AccountId.coerce(caller)
        owner = AccountId.coerce(owner)
        to = AccountId.coerce(to)
        validate_amount(value)

        allowance = self.allowance(owner, spender)
        if allowance < value:
            raise self._rejected(InsufficientAllowanceError(owner, spender, value, allowance), "transfer_from")

        event = create_transfer_from_event(spender, owner, to, value)
        with self.storage.atomic():
            self._set_allowance(owner, spender, allowance - value)
            self._set_balance(to, checked_add(self.balance_of(to), value))

        return self._emit(event, spender, "transfer_from", "allowance")

    def burn(self, caller: AccountLike, value: int) -> EventPayload:
        """
        Destroy value from caller's balance, shrinking total supply

        Raises:
            InsufficientBalanceError: If caller holds less than value
        """
        caller = AccountId.coerce(caller)
        validate_amount(value)

        from_balance = self.balance_of(caller)
        if from_balance < value:
            raise self._rejected(InsufficientBalanceError(caller, value, from_balance), "burn")

        event = create_burn_event(caller, value)
        with self.storage.atomic():
            self._set_balance(caller, from_balance - value)
            self._set_total_supply(self.total_supply() - value)

        return self._emit(event, caller, "burn", "supply")

    def issue(self, caller: AccountLike, value: int) -> EventPayload:
        """
        Mint value to the issuer's balance

        Raises:
            NotIssuerError: If caller is not the issuer
        """
        caller = AccountId.coerce(caller)
        validate_amount(value)

        if caller != self._issuer:
            raise self._rejected(NotIssuerError(caller, self._issuer), "issue")

        event = create_issue_event(caller, value)
        with self.storage.atomic():
            # Supply bounds every balance
            self._set_total_supply(checked_add(self.total_supply(), value))
            self._set_balance(caller, checked_add(self.balance_of(caller), value))

        return self._emit(event, caller, "issue", "supply")

    # Internals

    @staticmethod
    def _allowance_key(owner: AccountId, spender: AccountId) -> str:
        return f"{owner.hex()}:{spender.hex()}"

    def _set_balance(self, account: AccountId, amount: int) -> None:
        self.storage.save(BALANCES_TABLE, account.hex(), {
            'account': account.hex(),
            'amount': str(amount)
        })

    def _set_allowance(self, owner: AccountId, spender: AccountId, amount: int) -> None:
        self.storage.save(ALLOWANCES_TABLE, self._allowance_key(owner, spender), {
            'owner': owner.hex(),
            'spender': spender.hex(),
            'amount': str(amount)
        })

    def _set_total_supply(self, amount: int) -> None:
        self.storage.save(META_TABLE, META_ID, {
            'issuer': self._issuer.hex(),
            'total_supply': str(amount)
        })

    def _emit(self, event: EventPayload, actor: AccountId, action: str, resource: str) -> EventPayload:
        self.dispatcher.publish(event)
        log_action(
            self.logger, "info", f"{action} committed",
            account=actor.hex(), action=action, resource=resource,
            event_type=event.event_type.value, event_id=event.event_id,
            extra=dict(event.data)
        )
        return event

    def _rejected(self, error: LedgerError, action: str) -> LedgerError:
        log_action(
            self.logger, "warning", f"{action} rejected: {error}",
            action=action, error_code=error.code, extra=error.to_dict()
        )
        return error
