"""Reduce a roster to the candidates usable for a draw."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from .types import Candidate, ExclusionReason, Gender


@dataclass(frozen=True)
class EligibilityOutcome:
    """Candidates that passed the filter and the reasons the others did not."""

    pool: tuple[Candidate, ...]
    stubs: Mapping[str, ExclusionReason]


def exclusion_reason(
    candidate: Candidate,
    gender_scope: Optional[Gender],
    manual_excluded_ids: frozenset[str],
) -> Optional[ExclusionReason]:
    """Return the first reason ``candidate`` is excluded, or ``None``.

    The checks run in a fixed priority order (status, manual exclusion,
    gender scope) and only the first match is reported, so a manually
    excluded candidate is reported as such even if the gender scope would
    also reject it.
    """
    if not candidate.is_active:
        return ExclusionReason.STATUS_INACTIVE
    if candidate.id in manual_excluded_ids:
        return ExclusionReason.MANUALLY_EXCLUDED
    if gender_scope is not None and candidate.gender != gender_scope:
        return ExclusionReason.GENDER_SCOPE_MISMATCH
    return None


def filter_candidates(
    roster: Sequence[Candidate],
    gender_scope: Optional[Gender] = None,
    manual_excluded_ids: Iterable[str] = (),
) -> EligibilityOutcome:
    """Split ``roster`` into an ordered pool and exclusion stubs.

    Parameters
    ----------
    roster : Sequence[Candidate]
        Full roster of the class, in display order.
    gender_scope : Optional[Gender], default: None
        When given, only candidates of that gender stay in the pool.
        Candidates with an unknown gender do not match any scope.
    manual_excluded_ids : Iterable[str], default: ()
        Ids temporarily excluded by the operator for this draw.

    Returns
    -------
    EligibilityOutcome
        ``pool`` keeps roster order; ``stubs`` maps every excluded id to its
        reason.
    """
    scope = Gender(gender_scope) if gender_scope is not None else None
    excluded = frozenset(manual_excluded_ids)

    pool: list[Candidate] = []
    stubs: dict[str, ExclusionReason] = {}
    for candidate in roster:
        reason = exclusion_reason(candidate, scope, excluded)
        if reason is None:
            pool.append(candidate)
        else:
            stubs[candidate.id] = reason
    return EligibilityOutcome(pool=tuple(pool), stubs=stubs)


__all__ = ["EligibilityOutcome", "exclusion_reason", "filter_candidates"]
