"""Turn an accepted outflow/inflow pair into a ledger transfer.

:func:`build_link_plan` is pure: it resolves the two transfer payees, picks
the shared date, merges notes and returns two symmetric patches. Each side
points at the other transaction (``transfer_id``) and at the transfer payee of
the opposite account (``payee``); date and notes are mirrored on both sides.

:func:`apply_plan` writes the outflow patch, then the inflow patch. There is
no rollback: if the second write fails the caller re-runs the pair, and the
recomputed plan is identical.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from .errors import LinkApplyError, MissingTransferPayeeError
from .ledger import LedgerWriter
from .logging_setup import get_logger
from .models import Account, DatePreference, LinkOptions, LinkPlan, Payee, Transaction

logger = get_logger("ledger_transfers.linking")

NOTES_SEPARATOR = " | "
_WS = re.compile(r"\s+")


def transfer_payee_id(payees: Sequence[Payee], account_id: str) -> str | None:
    """Return the id of the "transfer to ``account_id``" payee, if any."""

    for p in payees:
        if p.transfer_account_id == account_id:
            return p.id
    return None


def choose_date(outflow: Transaction, inflow: Transaction, preference: DatePreference) -> str:
    if preference == "inflow":
        return inflow.date
    if preference == "min":
        return min(outflow.date, inflow.date)
    if preference == "max":
        return max(outflow.date, inflow.date)
    return outflow.date


def _normalize_notes(notes: str | None) -> str:
    return _WS.sub(" ", (notes or "").strip())


def add_tag(notes: str, tag: str) -> str:
    """Append ``tag`` once; a tag already present anywhere is left alone."""

    if not tag or tag in notes:
        return notes
    return f"{notes} {tag}".strip()


def merge_notes(a: str | None, b: str | None, tag: str = "") -> str | None:
    """Merge both sides' notes and append ``tag``.

    Equal notes collapse to one copy, a note contained in the other yields the
    longer one, and distinct notes are joined with ``" | "``. Returns ``None``
    when the result is empty.
    """

    na = _normalize_notes(a)
    nb = _normalize_notes(b)
    if na and nb:
        if na == nb or nb in na:
            merged = na
        elif na in nb:
            merged = nb
        else:
            merged = f"{na}{NOTES_SEPARATOR}{nb}"
    else:
        merged = na or nb

    merged = add_tag(merged, tag)
    return merged or None


def build_link_plan(
    outflow: Transaction,
    inflow: Transaction,
    payees: Sequence[Payee],
    accounts: Sequence[Account],
    options: LinkOptions | None = None,
) -> LinkPlan:
    """Build the symmetric update plan linking ``outflow`` and ``inflow``.

    Raises
    ------
    MissingTransferPayeeError
        When either account has no transfer payee. Nothing is written.
    """

    opts = options or LinkOptions()
    names = {a.id: a.name for a in accounts}

    outflow_payee = transfer_payee_id(payees, inflow.account)
    if outflow_payee is None:
        raise MissingTransferPayeeError(inflow.account, names.get(inflow.account))
    inflow_payee = transfer_payee_id(payees, outflow.account)
    if inflow_payee is None:
        raise MissingTransferPayeeError(outflow.account, names.get(outflow.account))

    chosen_date = choose_date(outflow, inflow, opts.date_preference)
    notes = merge_notes(outflow.notes, inflow.notes, opts.tag)

    return LinkPlan(
        outflow_update={
            "payee": outflow_payee,
            "transfer_id": inflow.id,
            "date": chosen_date,
            "notes": notes,
        },
        inflow_update={
            "payee": inflow_payee,
            "transfer_id": outflow.id,
            "date": chosen_date,
            "notes": notes,
        },
        chosen_date=chosen_date,
        merged_notes=notes,
        outflow_transfer_payee_id=outflow_payee,
        inflow_transfer_payee_id=inflow_payee,
    )


def apply_plan(
    ledger: LedgerWriter,
    outflow: Transaction,
    inflow: Transaction,
    plan: LinkPlan,
) -> None:
    """Write the outflow patch, then the inflow patch.

    Raises :class:`LinkApplyError` (chained to the ledger's exception) on the
    first failed write; ``sides_applied`` tells how far it got.
    """

    sides = ((outflow, plan.outflow_update), (inflow, plan.inflow_update))
    for applied, (tx, patch) in enumerate(sides):
        try:
            ledger.update_transaction(tx.id, dict(patch))
        except Exception as e:
            side = "outflow" if applied == 0 else "inflow"
            raise LinkApplyError(
                f"failed to update {side} transaction {tx.id}: {e}",
                outflow_id=outflow.id,
                inflow_id=inflow.id,
                sides_applied=applied,
            ) from e
    logger.debug("wrote link plan %s -> %s (date %s)", outflow.id, inflow.id, plan.chosen_date)


def link_transfer_pair(
    ledger: LedgerWriter,
    outflow: Transaction,
    inflow: Transaction,
    payees: Sequence[Payee],
    accounts: Sequence[Account],
    options: LinkOptions | None = None,
) -> LinkPlan:
    """Build and apply the plan for one pair; return the applied plan."""

    plan = build_link_plan(outflow, inflow, payees, accounts, options)
    apply_plan(ledger, outflow, inflow, plan)
    return plan


__all__ = [
    "NOTES_SEPARATOR",
    "transfer_payee_id",
    "choose_date",
    "add_tag",
    "merge_notes",
    "build_link_plan",
    "apply_plan",
    "link_transfer_pair",
]
