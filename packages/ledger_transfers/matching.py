"""Credit-card payment transfer matcher.

Finds pairs of ledger transactions that represent one real-world card payment:
money leaving a checking-style account (outflow) and the same amount arriving
on a credit-card account (inflow).

Pipeline
--------
1. Index every linkable inflow by exact amount.
2. For each linkable outflow, pair it with every inflow of the opposite
   amount on a different account (raw candidates).
3. Score each raw candidate with :func:`score_pair`: an ordered series of
   reject-fast gates, then additive, named weights.
4. Keep candidates at or above ``min_score`` and resolve them greedily by
   descending score into a one-to-one assignment.

The greedy assignment is not a globally optimal bipartite matching; the
highest-scoring pair always wins its transactions, and ties keep input order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from .logging_setup import get_logger
from .models import Account, Candidate, MatcherOptions, PairScore, Transaction
from .normalizers import (
    contains_token,
    day_distance,
    extract_last4,
    is_credit_card_name,
    looks_like_cc_payment_payee,
    looks_like_payment_inflow_payee,
    normalize_text,
    specific_card_tokens,
)

logger = get_logger("ledger_transfers.matching")

# ---------------------------------------------------------------------------
# Score weights
# ---------------------------------------------------------------------------

EXACT_AMOUNT_WEIGHT = 0.55
PROXIMITY_MAX_WEIGHT = 0.25
PROXIMITY_DECAY_PER_DAY = 0.05
OUTFLOW_PAYEE_WEIGHT = 0.15
INFLOW_PAYEE_WEIGHT = 0.05
CREDIT_CARD_ACCOUNT_WEIGHT = 0.10
LAST4_MATCH_WEIGHT = 0.20

_SCORE_PRECISION = 6


# ---------------------------------------------------------------------------
# Account classification
# ---------------------------------------------------------------------------


class AccountIndex:
    """Per-call view over the account list.

    Holds accounts by id, memoizes credit-card classification, and builds the
    global ``card_tokens`` index: for every tracked card account, the tokens
    that name that specific card. Scoring consults the whole index, not only
    the two accounts of the pair under consideration.
    """

    def __init__(self, accounts: Iterable[Account], options: MatcherOptions) -> None:
        self._options = options
        self.by_id: dict[str, Account] = {a.id: a for a in accounts}
        self._is_cc: dict[str, bool] = {}
        self.card_tokens: dict[str, tuple[str, ...]] = {}
        for account in self.by_id.values():
            tracked = is_credit_card_name(account.name) or self._explicitly_targeted(account)
            if not tracked:
                continue
            tokens = specific_card_tokens(account.name)
            if tokens:
                self.card_tokens[account.id] = tokens

    def name_of(self, account_id: str) -> str:
        account = self.by_id.get(account_id)
        return account.name if account is not None else ""

    def _explicitly_targeted(self, account: Account) -> bool:
        opts = self._options
        if opts.credit_card_account_ids and account.id in opts.credit_card_account_ids:
            return True
        regex = opts.credit_card_account_name_regex
        return regex is not None and regex.search(account.name) is not None

    def is_credit_card(self, account_id: str) -> bool:
        """Allow-list, then explicit name regex, then the built-in name pattern."""

        cached = self._is_cc.get(account_id)
        if cached is not None:
            return cached
        opts = self._options
        name = self.name_of(account_id)
        if opts.credit_card_account_ids and account_id in opts.credit_card_account_ids:
            result = True
        elif opts.credit_card_account_name_regex is not None:
            result = opts.credit_card_account_name_regex.search(name) is not None
        else:
            result = is_credit_card_name(name)
        self._is_cc[account_id] = result
        return result

    def mentions_other_card(self, text: str, account_id: str) -> bool:
        """``True`` when ``text`` names a tracked card other than ``account_id``."""

        for other_id, tokens in self.card_tokens.items():
            if other_id == account_id:
                continue
            if any(contains_token(text, tok) for tok in tokens):
                return True
        return False


# ---------------------------------------------------------------------------
# Scoring stages
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _PairContext:
    outflow: Transaction
    inflow: Transaction
    index: AccountIndex
    options: MatcherOptions
    out_payee: str = ""
    in_payee: str = ""
    day_delta: int = 0
    outflow_payee_signal: bool = False
    inflow_payee_signal: bool = False
    last4_signal: bool = False
    cc_account_signal: bool = False
    reasons: list[str] = field(default_factory=list)


# A gate returns a rejection reason, or ``None`` to let the pair through.
type Gate = Callable[[_PairContext], str | None]


def _gate_shape(ctx: _PairContext) -> str | None:
    out, inn = ctx.outflow, ctx.inflow
    if out.amount >= 0 or inn.amount <= 0:
        return "sign mismatch"
    if out.account == inn.account:
        return "same account"
    if out.is_transfer or inn.is_transfer:
        return "already a transfer"
    if out.is_parent or inn.is_parent:
        return "split parent"
    return None


def _gate_requested_accounts(ctx: _PairContext) -> str | None:
    opts = ctx.options
    if opts.credit_card_account_ids and ctx.inflow.account not in opts.credit_card_account_ids:
        return "inflow not in requested CC accounts"
    regex = opts.credit_card_account_name_regex
    if regex is not None and regex.search(ctx.index.name_of(ctx.inflow.account)) is None:
        return "inflow account name does not match regex"
    return None


def _gate_amount(ctx: _PairContext) -> str | None:
    if abs(ctx.outflow.amount) != ctx.inflow.amount:
        return "amount mismatch"
    ctx.reasons.append("amount exact match")
    return None


def _gate_date_window(ctx: _PairContext) -> str | None:
    ctx.day_delta = day_distance(ctx.outflow.date, ctx.inflow.date)
    if ctx.day_delta > ctx.options.window_days:
        return "outside date window"
    ctx.reasons.append(f"within {ctx.day_delta} day(s)")
    return None


def _gate_other_card(ctx: _PairContext) -> str | None:
    # Same-amount payments to two tracked cards on the same day are the main
    # false-positive source; a payee naming the other card settles it.
    if ctx.index.mentions_other_card(ctx.out_payee, ctx.inflow.account):
        return "outflow payee mentions a different card/account"
    return None


def _collect_signals(ctx: _PairContext) -> None:
    ctx.outflow_payee_signal = looks_like_cc_payment_payee(ctx.out_payee)
    if ctx.outflow_payee_signal:
        ctx.reasons.append("outflow payee looks like CC payment")

    ctx.inflow_payee_signal = looks_like_payment_inflow_payee(ctx.in_payee)
    if ctx.inflow_payee_signal:
        ctx.reasons.append("inflow payee looks like payment")

    out_last4 = extract_last4(ctx.out_payee)
    in_last4 = extract_last4(ctx.in_payee)
    ctx.last4_signal = out_last4 is not None and out_last4 == in_last4
    if ctx.last4_signal:
        ctx.reasons.append(f"card last4 match ({out_last4})")

    ctx.cc_account_signal = ctx.index.is_credit_card(ctx.inflow.account)
    if ctx.cc_account_signal:
        ctx.reasons.append("inflow account looks like credit card")


def _gate_payment_evidence(ctx: _PairContext) -> str | None:
    # Amount and date alone are never enough.
    if not (ctx.outflow_payee_signal or ctx.inflow_payee_signal or ctx.last4_signal):
        return "no payment evidence"
    return None


def _gate_credit_card_inflow(ctx: _PairContext) -> str | None:
    if not ctx.options.explicit_targeting and not ctx.cc_account_signal:
        return "inflow account does not look like a credit card"
    return None


_PRE_SIGNAL_GATES: tuple[Gate, ...] = (
    _gate_shape,
    _gate_requested_accounts,
    _gate_amount,
    _gate_date_window,
    _gate_other_card,
)
_POST_SIGNAL_GATES: tuple[Gate, ...] = (
    _gate_payment_evidence,
    _gate_credit_card_inflow,
)


def proximity_weight(day_delta: int) -> float:
    """0 days → 0.25, 1 day → 0.20, … never negative."""

    return max(0.0, PROXIMITY_MAX_WEIGHT - PROXIMITY_DECAY_PER_DAY * day_delta)


def _additive_score(ctx: _PairContext) -> float:
    score = EXACT_AMOUNT_WEIGHT
    score += proximity_weight(ctx.day_delta)
    if ctx.outflow_payee_signal:
        score += OUTFLOW_PAYEE_WEIGHT
    if ctx.inflow_payee_signal:
        score += INFLOW_PAYEE_WEIGHT
    if ctx.cc_account_signal:
        score += CREDIT_CARD_ACCOUNT_WEIGHT
    if ctx.last4_signal:
        score += LAST4_MATCH_WEIGHT
    return round(max(0.0, min(1.0, score)), _SCORE_PRECISION)


def _reject(reason: str) -> PairScore:
    return PairScore(score=0.0, reasons=(reason,))


def score_pair(
    outflow: Transaction,
    inflow: Transaction,
    index: AccountIndex,
    options: MatcherOptions,
) -> PairScore:
    """Score one outflow/inflow pair.

    Any gate failure short-circuits to ``score == 0`` with that gate's reason
    as the only tag, regardless of positive evidence collected so far.
    """

    # Only imported payee strings are trusted; ``payee`` is an opaque id.
    ctx = _PairContext(
        outflow=outflow,
        inflow=inflow,
        index=index,
        options=options,
        out_payee=normalize_text(outflow.imported_payee),
        in_payee=normalize_text(inflow.imported_payee),
    )
    for gate in _PRE_SIGNAL_GATES:
        reason = gate(ctx)
        if reason is not None:
            return _reject(reason)

    _collect_signals(ctx)

    for gate in _POST_SIGNAL_GATES:
        reason = gate(ctx)
        if reason is not None:
            return _reject(reason)

    return PairScore(score=_additive_score(ctx), reasons=tuple(ctx.reasons))


# ---------------------------------------------------------------------------
# Candidate generation and resolution
# ---------------------------------------------------------------------------


def _inflows_by_amount(transactions: Iterable[Transaction]) -> dict[int, list[Transaction]]:
    index: dict[int, list[Transaction]] = {}
    for tx in transactions:
        if tx.is_inflow and tx.is_linkable:
            index.setdefault(tx.amount, []).append(tx)
    return index


def score_candidates(
    transactions: Sequence[Transaction],
    accounts: Sequence[Account],
    options: MatcherOptions,
) -> list[Candidate]:
    """Score every raw outflow/inflow pair, rejections included.

    Raw candidates are all pairs of a linkable outflow and a linkable inflow of
    equal absolute amount on distinct accounts, in input order. Rejected pairs
    carry ``score == 0`` and their rejection reason, for audit.
    """

    index = AccountIndex(accounts, options)
    inflows = _inflows_by_amount(transactions)

    scored: list[Candidate] = []
    for outflow in transactions:
        if not outflow.is_outflow or not outflow.is_linkable:
            continue
        for inflow in inflows.get(-outflow.amount, ()):
            if inflow.account == outflow.account:
                continue
            result = score_pair(outflow, inflow, index, options)
            scored.append(
                Candidate(
                    outflow=outflow,
                    inflow=inflow,
                    score=result.score,
                    reasons=result.reasons,
                )
            )
    return scored


def resolve_one_to_one(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Greedy one-to-one assignment by descending score.

    Each transaction id is consumed by the first (highest-scoring) candidate
    that uses it. The selection is returned ordered by score, then by the
    later of the two dates (most recent first); full ties keep input order.
    """

    used: set[str] = set()
    selected: list[Candidate] = []
    for c in sorted(candidates, key=lambda c: c.score, reverse=True):
        if c.outflow.id in used or c.inflow.id in used:
            continue
        used.add(c.outflow.id)
        used.add(c.inflow.id)
        selected.append(c)

    # Two stable passes: secondary key first, primary key last.
    selected.sort(key=lambda c: c.later_date, reverse=True)
    selected.sort(key=lambda c: c.score, reverse=True)
    return selected


def find_transfer_candidates(
    transactions: Sequence[Transaction],
    accounts: Sequence[Account],
    options: MatcherOptions | None = None,
) -> list[Candidate]:
    """Return the ordered, one-to-one credit-card payment transfer candidates.

    Rejected pairs (``score == 0``) are never retained, even when
    ``min_score`` is ``0``.
    """

    opts = options or MatcherOptions()
    scored = score_candidates(transactions, accounts, opts)

    retained: list[Candidate] = []
    for c in scored:
        if c.score > 0.0 and c.score >= opts.min_score:
            retained.append(c)
        else:
            logger.debug(
                "pair %s -> %s not retained (score=%.2f): %s",
                c.outflow.id,
                c.inflow.id,
                c.score,
                ", ".join(c.reasons),
            )

    selected = resolve_one_to_one(retained)
    logger.info(
        "scored %d raw pair(s); %d above min_score=%.2f; %d selected",
        len(scored),
        len(retained),
        opts.min_score,
        len(selected),
    )
    return selected


__all__ = [
    "EXACT_AMOUNT_WEIGHT",
    "PROXIMITY_MAX_WEIGHT",
    "PROXIMITY_DECAY_PER_DAY",
    "OUTFLOW_PAYEE_WEIGHT",
    "INFLOW_PAYEE_WEIGHT",
    "CREDIT_CARD_ACCOUNT_WEIGHT",
    "LAST4_MATCH_WEIGHT",
    "AccountIndex",
    "proximity_weight",
    "score_pair",
    "score_candidates",
    "resolve_one_to_one",
    "find_transfer_candidates",
]
