"""Best-of-N candidate selection.

Candidates are ordered by ``(projected_value, -enablement_index)``: the
highest value wins and ties go to the strategy enabled first.
"""

from __future__ import annotations

from collections.abc import Sequence

from storage_dispatch.strategies.base import Candidate


def selection_key(candidate: Candidate, enablement_index: int) -> tuple[float, int]:
    """Total-order key for a candidate at a given enablement position."""
    return (candidate.projected_value, -enablement_index)


def select_best(candidates: Sequence[Candidate]) -> Candidate | None:
    """Pick the winning candidate.

    Args:
        candidates: Candidates in enablement order.

    Returns:
        The winner, or None when there are no candidates.
    """
    if not candidates:
        return None
    best_index = max(
        range(len(candidates)),
        key=lambda i: selection_key(candidates[i], i),
    )
    return candidates[best_index]
