from __future__ import annotations

import datetime as dt

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: ledger_accounts
# ---------------------------


class LedgerAccount(Base):
    __tablename__ = "ledger_accounts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    offbudget: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    closed: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=sa_expr.false())
    sort_order: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


# ---------------------------
# Reference: ledger_payees
# ---------------------------


class LedgerPayee(Base):
    __tablename__ = "ledger_payees"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # Set only on the canonical "transfer to account X" payee of each account.
    transfer_account_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("ledger_accounts.id"), nullable=True, unique=True
    )


# ---------------------------
# Core: ledger_transactions
# ---------------------------


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    account_id: Mapped[str] = mapped_column(
        String, ForeignKey("ledger_accounts.id"), nullable=False
    )
    # Signed minor units; negative = outflow.
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    imported_payee: Mapped[str | None] = mapped_column(Text, nullable=True)
    payee_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("ledger_payees.id"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Counterpart transaction id when linked as a transfer.
    transfer_id: Mapped[str | None] = mapped_column(String, nullable=True)
    is_parent: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    updated_at: Mapped[dt.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_ledger_tx_account_date", "account_id", "date"),
        Index("ix_ledger_tx_amount", "amount"),
    )
