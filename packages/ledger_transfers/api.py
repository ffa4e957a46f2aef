"""Public API surface for the ``ledger_transfers`` package.

This module is a stable import surface; implementations live in
``ledger_transfers.matching`` (candidate search), ``ledger_transfers.linking``
(plan construction and application) and ``ledger_transfers.workflows``
(validated, sequential linking against a ledger).
"""

from __future__ import annotations

from .linking import apply_plan, build_link_plan, link_transfer_pair
from .matching import find_transfer_candidates, score_candidates
from .workflows.cc_payments import link_candidates, link_pair

__all__ = [
    "find_transfer_candidates",
    "score_candidates",
    "build_link_plan",
    "apply_plan",
    "link_transfer_pair",
    "link_pair",
    "link_candidates",
]
