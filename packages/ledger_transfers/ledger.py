"""The ledger collaborator seen by the linker.

The linker never talks to a store directly; it issues partial-field updates
through any object exposing :meth:`LedgerWriter.update_transaction`. The
SQLAlchemy-backed implementation lives in :mod:`ledger_transfers.persistence`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

# Fields a link plan may write on a transaction.
PATCHABLE_FIELDS: frozenset[str] = frozenset({"payee", "transfer_id", "date", "notes"})


@runtime_checkable
class LedgerWriter(Protocol):
    def update_transaction(self, transaction_id: str, fields: Mapping[str, Any]) -> None:
        """Apply ``fields`` to one transaction; raise on failure."""
        ...


__all__ = ["LedgerWriter", "PATCHABLE_FIELDS"]
