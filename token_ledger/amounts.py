"""
Account Identity and Amount Module

Defines the opaque 32-byte account identifier and the unsigned 128-bit
amount domain used by the ledger. Amounts are plain ints; every amount that
crosses the ledger boundary is validated here, and additions are checked so
they can never silently exceed the 128-bit range.
"""

from dataclasses import dataclass
from typing import Union

from .errors import InvalidAccountError, InvalidAmountError, LedgerInvariantError


ACCOUNT_ID_LENGTH = 32
AMOUNT_BITS = 128
MAX_AMOUNT = 2 ** AMOUNT_BITS - 1


@dataclass(frozen=True)
class AccountId:
    """
    Immutable opaque account identity (32 raw bytes).
    Equality and hashing are by value so it can key the ledger mappings.
    """
    raw: bytes

    def __post_init__(self):
        if isinstance(self.raw, bytearray):
            object.__setattr__(self, 'raw', bytes(self.raw))

        if not isinstance(self.raw, bytes):
            raise InvalidAccountError(f"Account id must be bytes, got {type(self.raw).__name__}")

        if len(self.raw) != ACCOUNT_ID_LENGTH:
            raise InvalidAccountError(
                f"Account id must be {ACCOUNT_ID_LENGTH} bytes, got {len(self.raw)}"
            )

    @classmethod
    def from_hex(cls, value: str) -> 'AccountId':
        """Parse a 64-character hex string (optional 0x prefix)"""
        text = value[2:] if value.startswith("0x") else value
        try:
            raw = bytes.fromhex(text)
        except ValueError as e:
            raise InvalidAccountError(f"Invalid account id hex: {value!r}") from e
        return cls(raw)

    @classmethod
    def coerce(cls, value: Union['AccountId', bytes, bytearray, str]) -> 'AccountId':
        """Accept an AccountId, raw bytes or a hex string"""
        if isinstance(value, AccountId):
            return value
        if isinstance(value, str):
            return cls.from_hex(value)
        return cls(value)

    def hex(self) -> str:
        """Lowercase hex rendering used for storage keys, events and logs"""
        return self.raw.hex()

    def short(self) -> str:
        """Abbreviated form for log messages"""
        return f"{self.raw[:4].hex()}..{self.raw[-2:].hex()}"

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"AccountId({self.short()})"


def validate_amount(value: int, name: str = "value") -> int:
    """
    Ensure value is an int in [0, MAX_AMOUNT]

    Raises:
        InvalidAmountError: For non-int (bool included), negative or oversized values
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(f"{name} must be an int, got {type(value).__name__}")

    if value < 0:
        raise InvalidAmountError(f"{name} cannot be negative: {value}")

    if value > MAX_AMOUNT:
        raise InvalidAmountError(f"{name} exceeds the {AMOUNT_BITS}-bit amount range: {value}")

    return value


def checked_add(left: int, right: int) -> int:
    """
    Add two amounts, treating overflow as a fatal invariant violation.
    Unreachable while total supply itself stays inside the amount range.
    """
    result = left + right
    if result > MAX_AMOUNT:
        raise LedgerInvariantError(
            f"Amount overflow: {left} + {right} exceeds the {AMOUNT_BITS}-bit range"
        )
    return result


def parse_amount(text: str) -> int:
    """Decode an amount persisted as a decimal string"""
    return validate_amount(int(text), "stored amount")
