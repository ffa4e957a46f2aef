"""Data models and option types for ``ledger_transfers``.

Ledger records (:class:`Transaction`, :class:`Account`, :class:`Payee`) are
owned by the external ledger store; this package only reads them and emits
partial-field patches. Matcher and linker outputs (:class:`Candidate`,
:class:`LinkPlan`) are ephemeral and created per invocation.

Amounts are signed integers in minor currency units (negative = outflow) and
dates are ISO ``YYYY-MM-DD`` strings, so lexicographic comparison matches
calendar order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """A single ledger transaction as seen by the matcher and linker."""

    id: str
    account: str
    amount: int
    date: str
    imported_payee: str | None = None
    notes: str | None = None
    transfer_id: str | None = None
    is_parent: bool = False
    # Payee id currently assigned in the ledger; informational for matching.
    payee: str | None = None

    @property
    def is_outflow(self) -> bool:
        return self.amount < 0

    @property
    def is_inflow(self) -> bool:
        return self.amount > 0

    @property
    def is_transfer(self) -> bool:
        # An empty counterpart id is treated as unlinked.
        return bool(self.transfer_id)

    @property
    def is_linkable(self) -> bool:
        """``True`` when the row may take part in a new transfer pair."""

        return not self.is_parent and not self.is_transfer


@dataclass(frozen=True, slots=True)
class Account:
    id: str
    name: str
    offbudget: bool = False
    closed: bool = False


@dataclass(frozen=True, slots=True)
class Payee:
    """A payee record; ``transfer_account_id`` marks a transfer payee."""

    id: str
    name: str
    transfer_account_id: str | None = None


# ---------------------------------------------------------------------------
# Matcher / linker outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PairScore:
    """Score in ``[0, 1]`` plus ordered reason tags for one outflow/inflow pair.

    A hard rejection is encoded as ``score == 0`` with the single rejection
    reason; it is not an error.
    """

    score: float
    reasons: tuple[str, ...]

    @property
    def rejected(self) -> bool:
        return self.score <= 0.0


@dataclass(frozen=True, slots=True)
class Candidate:
    """A scored, unapplied outflow→inflow transfer pairing."""

    outflow: Transaction
    inflow: Transaction
    score: float
    reasons: tuple[str, ...]

    @property
    def amount(self) -> int:
        return abs(self.outflow.amount)

    @property
    def later_date(self) -> str:
        return max(self.outflow.date, self.inflow.date)

    @property
    def pair(self) -> tuple[str, str]:
        return self.outflow.id, self.inflow.id


type TransactionPatch = dict[str, Any]
"""Partial-field update for one transaction (``payee``, ``transfer_id``, ``date``, ``notes``)."""


@dataclass(frozen=True, slots=True)
class LinkPlan:
    """The two symmetric patches that realize a candidate as a ledger transfer."""

    outflow_update: TransactionPatch
    inflow_update: TransactionPatch
    chosen_date: str
    merged_notes: str | None
    outflow_transfer_payee_id: str
    inflow_transfer_payee_id: str


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

type DatePreference = Literal["outflow", "inflow", "min", "max"]

DATE_PREFERENCES: tuple[str, ...] = ("outflow", "inflow", "min", "max")


class MatcherOptions(BaseModel):
    """Validated options for :func:`ledger_transfers.matching.find_transfer_candidates`.

    ``credit_card_account_ids`` and ``credit_card_account_name_regex`` are
    explicit targeting constraints: when either is set, inflows outside them
    are rejected and the built-in account-name heuristic is no longer required
    to pass.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    window_days: int = Field(default=5, ge=1)
    min_score: float = Field(default=0.95, ge=0.0, le=1.0)
    credit_card_account_ids: frozenset[str] | None = None
    credit_card_account_name_regex: re.Pattern[str] | None = None

    @field_validator("credit_card_account_ids", mode="before")
    @classmethod
    def _empty_ids_are_unset(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, str):
            raise ValueError("credit_card_account_ids must be a collection of ids, not a string")
        items = [str(s).strip() for s in v if s is not None and str(s).strip()]
        return frozenset(items) if items else None

    @field_validator("credit_card_account_name_regex", mode="before")
    @classmethod
    def _compile_regex(cls, v: Any) -> Any:
        if v is None or isinstance(v, re.Pattern):
            return v
        if isinstance(v, str):
            if not v:
                return None
            try:
                return re.compile(v, re.IGNORECASE)
            except re.error as e:
                raise ValueError(f"invalid credit card account name regex: {e}") from e
        raise ValueError("credit_card_account_name_regex must be a string or compiled pattern")

    @property
    def explicit_targeting(self) -> bool:
        return bool(self.credit_card_account_ids) or self.credit_card_account_name_regex is not None


class LinkOptions(BaseModel):
    """Options for :func:`ledger_transfers.linking.build_link_plan`."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    tag: str = ""
    date_preference: Literal["outflow", "inflow", "min", "max"] = "outflow"


__all__ = [
    "Transaction",
    "Account",
    "Payee",
    "PairScore",
    "Candidate",
    "TransactionPatch",
    "LinkPlan",
    "DatePreference",
    "DATE_PREFERENCES",
    "MatcherOptions",
    "LinkOptions",
]
