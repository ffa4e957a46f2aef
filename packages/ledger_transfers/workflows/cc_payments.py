# ruff: noqa: I001
"""Workflow for linking credit-card payment pairs against a ledger.

Composes the matcher and linker behind the checks the CLI applies before any
write: an explicitly requested pair is looked up in the full (unfiltered)
transaction list and validated, and batches of candidates are linked one at a
time in the matcher's order so a failure leaves a well-defined prefix of
linked pairs.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from ..errors import LinkApplyError, MissingTransferPayeeError, PairValidationError
from ..ledger import LedgerWriter
from ..linking import link_transfer_pair
from ..logging_setup import get_logger
from ..models import (
    Account,
    Candidate,
    LinkOptions,
    LinkPlan,
    MatcherOptions,
    Payee,
    Transaction,
)
from ..normalizers import is_credit_card_name

logger = get_logger("ledger_transfers.workflows.cc_payments")

type LinkStatus = Literal["linked", "failed", "skipped"]


@dataclass(frozen=True, slots=True)
class LinkOutcome:
    """Result of linking one candidate pair."""

    outflow_id: str
    inflow_id: str
    status: LinkStatus
    plan: LinkPlan | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "linked"


def parse_pair(value: str) -> tuple[str, str]:
    """Parse ``"outflowId,inflowId"``."""

    parts = [s.strip() for s in (value or "").split(",")]
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise PairValidationError("Invalid pair value. Expected: <outflowId>,<inflowId>")
    return parts[0], parts[1]


def select_pair(
    transactions: Sequence[Transaction], outflow_id: str, inflow_id: str
) -> tuple[Transaction, Transaction]:
    by_id = {t.id: t for t in transactions}
    outflow = by_id.get(outflow_id)
    if outflow is None:
        raise PairValidationError(f"Outflow transaction not found: {outflow_id}")
    inflow = by_id.get(inflow_id)
    if inflow is None:
        raise PairValidationError(f"Inflow transaction not found: {inflow_id}")
    return outflow, inflow


def validate_pair(
    outflow: Transaction,
    inflow: Transaction,
    accounts: Sequence[Account],
    *,
    options: MatcherOptions,
    force: bool = False,
) -> None:
    """Refuse pairs that cannot, or should not without ``force``, become a transfer."""

    if outflow.is_transfer or inflow.is_transfer:
        raise PairValidationError("One of the transactions is already a transfer")
    if outflow.amount >= 0 or inflow.amount <= 0:
        raise PairValidationError("Pair is not outflow->inflow")
    if abs(outflow.amount) != inflow.amount:
        raise PairValidationError("Amounts do not match")

    inflow_account_name = next((a.name for a in accounts if a.id == inflow.account), "")
    if force or options.explicit_targeting or is_credit_card_name(inflow_account_name):
        return
    raise PairValidationError(
        "Refusing to apply without an explicit CC account hint; re-run with "
        "--cc-account <id> or --cc-account-name-regex, or override with --force. "
        f'(inflow account: "{inflow_account_name}")'
    )


def link_pair(
    ledger: LedgerWriter,
    outflow: Transaction,
    inflow: Transaction,
    payees: Sequence[Payee],
    accounts: Sequence[Account],
    *,
    matcher_options: MatcherOptions,
    link_options: LinkOptions,
    force: bool = False,
) -> LinkPlan:
    """Validate one pair and link it; errors propagate to the caller."""

    validate_pair(outflow, inflow, accounts, options=matcher_options, force=force)
    logger.info("linking transfer pair %s -> %s", outflow.id, inflow.id)
    return link_transfer_pair(ledger, outflow, inflow, payees, accounts, link_options)


def link_candidates(
    ledger: LedgerWriter,
    candidates: Sequence[Candidate],
    payees: Sequence[Payee],
    accounts: Sequence[Account],
    *,
    matcher_options: MatcherOptions,
    link_options: LinkOptions,
    force: bool = False,
    stop_on_error: bool = False,
) -> list[LinkOutcome]:
    """Link ``candidates`` sequentially, in the given order.

    Each candidate is independent: a failure is recorded on its outcome and
    processing continues, unless ``stop_on_error`` is set, in which case every
    later candidate is reported as ``skipped`` and left untouched.
    """

    outcomes: list[LinkOutcome] = []
    stopped = False
    for c in candidates:
        if stopped:
            outcomes.append(LinkOutcome(c.outflow.id, c.inflow.id, "skipped"))
            continue
        try:
            plan = link_pair(
                ledger,
                c.outflow,
                c.inflow,
                payees,
                accounts,
                matcher_options=matcher_options,
                link_options=link_options,
                force=force,
            )
        except (PairValidationError, MissingTransferPayeeError, LinkApplyError) as e:
            logger.error("failed to link %s -> %s: %s", c.outflow.id, c.inflow.id, e)
            outcomes.append(LinkOutcome(c.outflow.id, c.inflow.id, "failed", error=str(e)))
            stopped = stop_on_error
            continue
        outcomes.append(LinkOutcome(c.outflow.id, c.inflow.id, "linked", plan=plan))
    return outcomes


__all__ = [
    "LinkOutcome",
    "parse_pair",
    "select_pair",
    "validate_pair",
    "link_pair",
    "link_candidates",
]
