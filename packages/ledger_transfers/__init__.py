"""Public interface for the ``ledger_transfers`` package.

Re-exports the API functions, models and error types. There is no runtime
logic here, only symbol re-exports.
"""

from .api import (
    apply_plan,
    build_link_plan,
    find_transfer_candidates,
    link_candidates,
    link_pair,
    link_transfer_pair,
    score_candidates,
)
from .errors import LinkApplyError, MissingTransferPayeeError, PairValidationError
from .models import (
    Account,
    Candidate,
    LinkOptions,
    LinkPlan,
    MatcherOptions,
    PairScore,
    Payee,
    Transaction,
)

__all__ = [
    # API
    "find_transfer_candidates",
    "score_candidates",
    "build_link_plan",
    "apply_plan",
    "link_transfer_pair",
    "link_pair",
    "link_candidates",
    # Models / options
    "Transaction",
    "Account",
    "Payee",
    "PairScore",
    "Candidate",
    "LinkPlan",
    "MatcherOptions",
    "LinkOptions",
    # Errors
    "MissingTransferPayeeError",
    "PairValidationError",
    "LinkApplyError",
]
