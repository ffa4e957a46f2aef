# ruff: noqa: I001
"""Persistence integration for ledger_transfers.

Reads accounts, payees and transactions from the shared ledger database owned
by ``libs/db`` and writes link-plan patches back. Relies on the SQLAlchemy ORM
models in ``ledger_db.models.ledger`` and a session from ``ledger_db.client``.

Each :meth:`SqlLedger.update_transaction` call commits on its own, so a pair
applied through :func:`ledger_transfers.linking.apply_plan` is two sequential
writes, as with any remote ledger.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ledger_db.models.ledger import LedgerAccount, LedgerPayee, LedgerTransaction
from .ledger import PATCHABLE_FIELDS
from .logging_setup import get_logger
from .models import Account, Payee, Transaction

logger = get_logger("ledger_transfers.persistence")

# Patch keys whose column name differs on the ORM model.
_COLUMN_FOR_FIELD: dict[str, str] = {"payee": "payee_id"}


def _to_date(raw: Any) -> date:
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    try:
        return date.fromisoformat(s[:10])
    except ValueError as e:
        raise ValueError(f"invalid date: {raw!r}") from e


def _to_transaction(row: LedgerTransaction) -> Transaction:
    return Transaction(
        id=row.id,
        account=row.account_id,
        amount=int(row.amount),
        date=row.date.isoformat(),
        imported_payee=row.imported_payee,
        notes=row.notes,
        transfer_id=row.transfer_id,
        is_parent=bool(row.is_parent),
        payee=row.payee_id,
    )


class SqlLedger:
    """Ledger store backed by a SQLAlchemy session.

    Parameters
    ----------
    session:
        An open session; the caller owns its lifecycle.
    dry_run:
        When ``True``, updates are logged and never written.
    """

    def __init__(self, session: Session, *, dry_run: bool = False) -> None:
        self.session = session
        self.dry_run = dry_run

    # ---- reads -------------------------------------------------------------

    def load_accounts(self) -> list[Account]:
        rows = self.session.scalars(
            select(LedgerAccount).order_by(
                LedgerAccount.sort_order.is_(None),
                LedgerAccount.sort_order,
                LedgerAccount.name,
            )
        ).all()
        return [
            Account(id=r.id, name=r.name, offbudget=bool(r.offbudget), closed=bool(r.closed))
            for r in rows
        ]

    def load_payees(self) -> list[Payee]:
        rows = self.session.scalars(select(LedgerPayee).order_by(LedgerPayee.name)).all()
        return [
            Payee(id=r.id, name=r.name, transfer_account_id=r.transfer_account_id) for r in rows
        ]

    def load_transactions(
        self, *, from_date: str | None = None, to_date: str | None = None
    ) -> list[Transaction]:
        """Return transactions ordered by date then id, optionally bounded (inclusive)."""

        stmt = select(LedgerTransaction)
        if from_date:
            stmt = stmt.where(LedgerTransaction.date >= _to_date(from_date))
        if to_date:
            stmt = stmt.where(LedgerTransaction.date <= _to_date(to_date))
        stmt = stmt.order_by(LedgerTransaction.date, LedgerTransaction.id)
        return [_to_transaction(r) for r in self.session.scalars(stmt).all()]

    # ---- writes ------------------------------------------------------------

    def update_transaction(self, transaction_id: str, fields: Mapping[str, Any]) -> None:
        """Apply a partial-field patch to one transaction and commit it.

        Raises ``ValueError`` for fields outside :data:`PATCHABLE_FIELDS` and
        ``LookupError`` when the transaction does not exist.
        """

        unknown = sorted(set(fields) - PATCHABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported transaction fields: {unknown}")

        values: dict[str, Any] = {}
        for key, val in fields.items():
            column = _COLUMN_FOR_FIELD.get(key, key)
            values[column] = _to_date(val) if key == "date" else val

        if self.dry_run:
            logger.info("dry run: would update transaction %s with %s", transaction_id, values)
            return

        result = self.session.execute(
            update(LedgerTransaction)
            .where(LedgerTransaction.id == transaction_id)
            .values(**values)
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise LookupError(f"Transaction not found: {transaction_id}")
        self.session.commit()
        logger.debug("updated transaction %s: %s", transaction_id, sorted(values))


__all__ = ["SqlLedger"]
