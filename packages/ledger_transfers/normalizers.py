"""Payee-text and account-name heuristics for credit-card payment matching.

All predicates operate on text already passed through :func:`normalize_text`
(lowercase, punctuation folded to spaces except ``*`` and ``#`` which carry
card-suffix masks such as ``****1234``). Patterns are tuned for precision:
a generic "payment" processor name must not look like a card payment.
"""

from __future__ import annotations

import re
from datetime import date

# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

_NON_PAYEE_CHARS = re.compile(r"[^a-z0-9*#\s]")
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WS = re.compile(r"\s+")


def normalize_text(raw: str | None) -> str:
    """Lowercase, fold punctuation to spaces and collapse whitespace."""

    if not raw:
        return ""
    s = _NON_PAYEE_CHARS.sub(" ", raw.lower())
    return _WS.sub(" ", s).strip()


def contains_token(text: str, token: str) -> bool:
    """Return ``True`` when ``token`` appears as a whole whitespace-delimited word."""

    t = _NON_ALNUM.sub("", (token or "").lower())
    if not t:
        return False
    return re.search(rf"(?:^|\s){re.escape(t)}(?:\s|$)", text) is not None


# ---------------------------------------------------------------------------
# Account names
# ---------------------------------------------------------------------------

_CC_ACCOUNT_NAME = re.compile(r"\b(visa|mastercard|amex|credit|card|cc)\b", re.IGNORECASE)

# Generic card/issuer words that do not identify one specific card.
_GENERIC_ACCOUNT_WORDS: frozenset[str] = frozenset(
    {
        "visa",
        "mastercard",
        "amex",
        "credit",
        "card",
        "cc",
        "rewards",
        "cashback",
        "account",
        "accounts",
        # Company-suffix and region noise
        "ca",
        "com",
        "inc",
        "ltd",
        "corp",
        "us",
    }
)


def is_credit_card_name(name: str | None) -> bool:
    """Built-in, conservative account-name heuristic for credit cards."""

    return bool(name) and _CC_ACCOUNT_NAME.search(name) is not None


def specific_card_tokens(name: str | None) -> tuple[str, ...]:
    """Return the tokens that identify one specific card (``"td"``, ``"amazon"``).

    Two-letter tokens are kept on purpose: short bank identifiers such as
    ``td`` or ``pc`` are common in card names.
    """

    words = _WS.split(re.sub(r"[^a-z0-9\s]", " ", (name or "").lower()))
    return tuple(w for w in words if len(w) >= 2 and w not in _GENERIC_ACCOUNT_WORDS)


# ---------------------------------------------------------------------------
# Payee text signals
# ---------------------------------------------------------------------------

# "****1234", "*1234", "x1234", "ending 1234"
_LAST4 = re.compile(r"(?:\*{1,4}|x{1,4}|ending)\s*(\d{4})\b")
_PAYMENT_WORD = re.compile(r"\b(payment|pmt|paymt)\b")
_CARD_WORD = re.compile(r"\b(visa|mastercard|amex|credit|card|cc)\b")
_PLAN_PHRASE = re.compile(r"\b(payment plan|installment|plan fee)\b")
_REFUND_PHRASE = re.compile(r"\b(refund|reversal|chargeback)\b")
_INFLOW_PAYMENT = re.compile(r"\b(payment received|payment)\b")


def extract_last4(text: str) -> str | None:
    m = _LAST4.search(text)
    return m.group(1) if m else None


def looks_like_cc_payment_payee(text: str) -> bool:
    """Outflow side: a payment word *and* a card word, minus plans and refunds."""

    return (
        _PAYMENT_WORD.search(text) is not None
        and _CARD_WORD.search(text) is not None
        and _PLAN_PHRASE.search(text) is None
        and _REFUND_PHRASE.search(text) is None
    )


def looks_like_payment_inflow_payee(text: str) -> bool:
    """Inflow side: card statements usually read "PAYMENT RECEIVED" or similar."""

    return _INFLOW_PAYMENT.search(text) is not None


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def _parse_iso_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw.strip()[:10])
    except (AttributeError, ValueError) as e:
        raise ValueError(f"invalid ISO date: {raw!r}") from e


def day_distance(a: str, b: str) -> int:
    """Absolute number of calendar days between two ISO dates."""

    return abs((_parse_iso_date(a) - _parse_iso_date(b)).days)


__all__ = [
    "normalize_text",
    "contains_token",
    "is_credit_card_name",
    "specific_card_tokens",
    "extract_last4",
    "looks_like_cc_payment_payee",
    "looks_like_payment_inflow_payee",
    "day_distance",
]
