"""
Ledger Error Module

Recoverable failures of the ledger operations share the LedgerError base.
Argument validation, lifecycle misuse and invariant violations have their
own types because a caller is not expected to handle them as business outcomes.
"""

from typing import Any, Optional


class LedgerError(ValueError):
    """Base class for recoverable ledger operation failures"""

    code = "ledger_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.details = details

    def to_dict(self) -> dict:
        """Convert to dictionary for logging"""
        return {
            'code': self.code,
            'message': str(self),
            **{k: str(v) for k, v in self.details.items()}
        }


class InsufficientBalanceError(LedgerError):
    """The acting account's spendable balance is below the requested amount"""

    code = "insufficient_balance"

    def __init__(self, account: Any, requested: int, available: int):
        super().__init__(
            f"Insufficient balance for {account}: requested {requested}, available {available}",
            account=account,
            requested=requested,
            available=available
        )
        self.account = account
        self.requested = requested
        self.available = available


class InsufficientAllowanceError(LedgerError):
    """The spender's allowance over the owner's funds is below the requested amount"""

    code = "insufficient_allowance"

    def __init__(self, owner: Any, spender: Any, requested: int, available: int):
        super().__init__(
            f"Insufficient allowance for {spender} over {owner}: "
            f"requested {requested}, available {available}",
            owner=owner,
            spender=spender,
            requested=requested,
            available=available
        )
        self.owner = owner
        self.spender = spender
        self.requested = requested
        self.available = available


class NotIssuerError(LedgerError):
    """Only the account that created the ledger may issue new tokens"""

    code = "not_issuer"

    def __init__(self, caller: Any, issuer: Optional[Any] = None):
        super().__init__(f"Account {caller} is not the issuer", caller=caller)
        self.caller = caller
        self.issuer = issuer


class InvalidAmountError(ValueError):
    """Amount argument outside the unsigned 128-bit domain"""


class InvalidAccountError(ValueError):
    """Malformed account identifier"""


class LedgerAlreadyInitializedError(RuntimeError):
    """Storage backend already holds a ledger"""


class LedgerNotInitializedError(RuntimeError):
    """Storage backend holds no ledger to open"""


class LedgerInvariantError(RuntimeError):
    """Fatal: an arithmetic or supply invariant would be broken"""
