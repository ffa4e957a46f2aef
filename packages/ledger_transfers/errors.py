"""Exception types raised by ``ledger_transfers``.

Scoring rejections are not errors (they are ``score == 0`` plus a reason);
these types cover precondition failures and ledger write failures only.
"""

from __future__ import annotations


class MissingTransferPayeeError(LookupError):
    """No transfer payee exists for an account taking part in a pair."""

    def __init__(self, account_id: str, account_name: str | None = None) -> None:
        self.account_id = account_id
        self.account_name = account_name
        label = account_name or account_id
        super().__init__(f'Missing transfer payee for account "{label}" ({account_id})')


class PairValidationError(ValueError):
    """An explicitly requested pair cannot be linked as a transfer."""


class LinkApplyError(RuntimeError):
    """A ledger update failed while applying a link plan.

    ``sides_applied`` is ``0`` when the outflow update failed, ``1`` when the
    outflow side was written and the inflow update failed. No rollback is
    attempted; re-applying the same pair converges.
    """

    def __init__(self, message: str, *, outflow_id: str, inflow_id: str, sides_applied: int) -> None:
        super().__init__(message)
        self.outflow_id = outflow_id
        self.inflow_id = inflow_id
        self.sides_applied = sides_applied


__all__ = ["MissingTransferPayeeError", "PairValidationError", "LinkApplyError"]
