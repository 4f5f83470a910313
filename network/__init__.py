# network/__init__.py
from .ledger_client import LedgerClient, LedgerError

__all__ = [
    'LedgerClient',
    'LedgerError',
]
