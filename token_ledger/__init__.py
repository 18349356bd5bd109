"""
Token Ledger

A fungible-token ledger tracking balances, owner/spender allowances and
total supply, with hash-chained event logging and pluggable storage.
"""

__version__ = "1.0.0"
