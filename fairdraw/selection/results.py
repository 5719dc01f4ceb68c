"""Assemble engine responses and explain them."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from .types import (
    Candidate,
    CandidateTrace,
    ExclusionReason,
    FairnessPolicy,
    GroupMeta,
    GroupResult,
    PickResult,
    SelectionMeta,
)

ENGINE_VERSION = "1.0.0"


def build_traces(
    roster: Sequence[Candidate],
    stubs: Mapping[str, ExclusionReason],
    cooldown_excluded_ids: frozenset[str] = frozenset(),
    weights: Optional[Mapping[str, float]] = None,
) -> Mapping[str, CandidateTrace]:
    """Return one trace per roster candidate, in roster order.

    Eligibility-filter stubs take precedence over the cooldown. Cooldown ids
    only mark a candidate ineligible when they are absent from ``weights``,
    i.e. when they were really kept out of the pool (not relaxed back in).
    """
    weights = weights or {}
    traces: dict[str, CandidateTrace] = {}
    for candidate in roster:
        reason = stubs.get(candidate.id)
        if reason is None and candidate.id in cooldown_excluded_ids and candidate.id not in weights:
            reason = ExclusionReason.COOLDOWN
        eligible = reason is None
        traces[candidate.id] = CandidateTrace(
            candidate_id=candidate.id,
            eligible=eligible,
            reason=reason,
            weight=weights.get(candidate.id, 0.0) if eligible else 0.0,
            base_weight=candidate.display_weight,
        )
    return MappingProxyType(traces)


def build_pick_result(
    *,
    roster: Sequence[Candidate],
    stubs: Mapping[str, ExclusionReason],
    cooldown_excluded_ids: frozenset[str],
    weights: Mapping[str, float],
    winners: Sequence[str],
    policy: FairnessPolicy,
    requested_count: int,
    strategy_id: str,
    generated_at: datetime,
    cooldown_relaxed: bool = False,
    fallback_notes: Sequence[str] = (),
) -> PickResult:
    """Merge filter, cooldown and sampler output into a :class:`PickResult`.

    Parameters
    ----------
    roster : Sequence[Candidate]
        Full roster the traces are produced for.
    stubs : Mapping[str, ExclusionReason]
        Exclusions reported by the eligibility filter.
    cooldown_excluded_ids : frozenset[str]
        Ids barred by the cooldown tracker.
    weights : Mapping[str, float]
        Weights of the final pool members.
    winners : Sequence[str]
        Ordered winner ids from the sampler.
    policy : FairnessPolicy
        Policy in effect; a deep copy is stored in the metadata.
    requested_count : int
        Count the caller asked for.
    strategy_id : str
        Id of the strategy that was actually used.
    generated_at : datetime
        Timestamp stamped on the result.
    cooldown_relaxed : bool, default: False
        Whether the cooldown was discarded to keep the pool non-empty.
    fallback_notes : Sequence[str], default: ()
        Human-readable notes about degraded behaviour.
    """
    meta = SelectionMeta(
        engine_version=ENGINE_VERSION,
        policy_snapshot=copy.deepcopy(policy),
        requested_count=requested_count,
        actual_count=len(winners),
        generated_at=generated_at,
        strategy_id=strategy_id,
        cooldown_relaxed=cooldown_relaxed,
        fallback_notes=tuple(fallback_notes),
    )
    return PickResult(
        winners=tuple(winners),
        traces=build_traces(roster, stubs, cooldown_excluded_ids, weights),
        cooldown_excluded_ids=frozenset(cooldown_excluded_ids),
        meta=meta,
    )


def build_group_result(
    *,
    roster: Sequence[Candidate],
    stubs: Mapping[str, ExclusionReason],
    groups: Sequence[Sequence[str]],
    policy: FairnessPolicy,
    group_count: int,
    generated_at: datetime,
    unresolved_pairs: Sequence[tuple[str, str]] = (),
    conflicts_relaxed: bool = False,
    fallback_notes: Sequence[str] = (),
) -> GroupResult:
    """Merge filter and partitioner output into a :class:`GroupResult`."""
    grouped_ids = {member for group in groups for member in group}
    weights = {candidate_id: 1.0 for candidate_id in grouped_ids}
    meta = GroupMeta(
        engine_version=ENGINE_VERSION,
        policy_snapshot=copy.deepcopy(policy),
        group_count=group_count,
        generated_at=generated_at,
        conflicts_relaxed=conflicts_relaxed,
        fallback_notes=tuple(fallback_notes),
    )
    return GroupResult(
        groups=tuple(tuple(group) for group in groups),
        traces=build_traces(roster, stubs, weights=weights),
        meta=meta,
        unresolved_pairs=tuple(unresolved_pairs),
    )


@dataclass(frozen=True)
class WinnerExplanation:
    """Why a winner was drawn, as shown in the explanation panel.

    ``estimated_probability`` is the winner's share of the total eligible
    weight, i.e. its chance on the first draw step.
    """

    candidate_id: str
    base_weight: int
    weight: float
    estimated_probability: float


def explain_winners(result: PickResult) -> list[WinnerExplanation]:
    """Return one explanation per winner, in draw order."""
    total = sum(trace.weight for trace in result.traces.values() if trace.eligible)
    explanations: list[WinnerExplanation] = []
    for winner in result.winners:
        trace = result.traces[winner]
        explanations.append(
            WinnerExplanation(
                candidate_id=winner,
                base_weight=trace.base_weight,
                weight=trace.weight,
                estimated_probability=trace.weight / total if total > 0 else 0.0,
            )
        )
    return explanations


def explanation_summary(result: PickResult) -> str:
    """Return a one-line description of the rules that shaped ``result``."""
    policy = result.meta.policy_snapshot
    parts = ["weighted draw" if policy.weighted_random else "uniform random draw"]
    if policy.weighted_random:
        parts.append(f"strategy '{result.meta.strategy_id}'")
    if policy.prevent_repeat:
        if policy.cooldown_rounds > 0:
            parts.append(f"cooldown of {policy.cooldown_rounds} rounds")
        else:
            parts.append("no repeats until everyone was drawn")
    if policy.prioritize_unpicked_count > 0:
        parts.append(f"prioritizing {policy.prioritize_unpicked_count} never-picked")
    if result.meta.fallback_notes:
        parts.append("constraints relaxed after a conflict")
    return ", ".join(parts)


__all__ = [
    "ENGINE_VERSION",
    "WinnerExplanation",
    "build_group_result",
    "build_pick_result",
    "build_traces",
    "explain_winners",
    "explanation_summary",
]
