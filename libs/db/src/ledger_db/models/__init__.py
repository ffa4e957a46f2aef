"""Shared SQLAlchemy models registry for the ledger database.

Currently includes the ledger tables read and patched by ``ledger_transfers``.
"""

from .ledger import Base, LedgerAccount, LedgerPayee, LedgerTransaction

__all__ = [
    "Base",
    "LedgerAccount",
    "LedgerPayee",
    "LedgerTransaction",
]
