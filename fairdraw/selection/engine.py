"""Selection engine combining eligibility, cooldown, sampling and grouping."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import random
from typing import Callable, Iterable, Optional, Sequence

from .cooldown import HistoryIndex, apply_cooldown
from .eligibility import filter_candidates
from .grouping import partition
from .results import build_group_result, build_pick_result
from .sampler import compute_weights, draw
from .strategies import DEFAULT_STRATEGY_REGISTRY, StrategyRegistry
from .types import (
    Candidate,
    FairnessPolicy,
    Gender,
    GroupResult,
    HistoryEvent,
    PickResult,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PickRequest:
    """Input of :meth:`SelectionEngine.pick`.

    Attributes
    ----------
    class_id : str
        Class the draw belongs to; only its history counts for the cooldown.
    roster : Sequence[Candidate]
        Full roster. Candidate ids must be unique.
    history : Sequence[HistoryEvent]
        Complete history known to the caller.
    policy : FairnessPolicy
        Fairness policy for this draw.
    requested_count : int
        Number of winners wanted. Must be at least ``1``.
    gender_scope : Optional[Gender]
        Restrict the draw to one gender.
    manual_excluded_ids : frozenset[str]
        Ids temporarily excluded by the operator.
    """

    class_id: str
    roster: Sequence[Candidate]
    history: Sequence[HistoryEvent]
    policy: FairnessPolicy
    requested_count: int
    gender_scope: Optional[Gender] = None
    manual_excluded_ids: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class GroupRequest:
    """Input of :meth:`SelectionEngine.group`."""

    class_id: str
    roster: Sequence[Candidate]
    history: Sequence[HistoryEvent]
    policy: FairnessPolicy
    group_count: int
    manual_excluded_ids: frozenset[str] = field(default_factory=frozenset)


def _ensure_unique_ids(roster: Iterable[Candidate]) -> None:
    seen: set[str] = set()
    duplicates: list[str] = []
    for candidate in roster:
        if candidate.id in seen:
            duplicates.append(candidate.id)
        seen.add(candidate.id)
    if duplicates:
        raise ValueError(
            "Roster contains duplicate candidate ids: " + ", ".join(sorted(set(duplicates)))
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SelectionEngine:
    """Engine that turns a roster, its history and a policy into decisions.

    The engine is stateless apart from the strategy registry it resolves
    presets against; every call receives the full roster and history.
    """

    def __init__(
        self,
        *,
        registry: Optional[StrategyRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Create a selection engine.

        Parameters
        ----------
        registry : Optional[StrategyRegistry], default: None
            Registry used to resolve ``policy.strategy_preset``. Typically
            omitted, in which case the shared default registry is used.
        clock : Optional[Callable[[], datetime]], default: None
            Source of ``generated_at`` timestamps. Defaults to the current UTC
            time.
        """
        self._registry = registry or DEFAULT_STRATEGY_REGISTRY
        self._clock = clock or _utcnow

    @property
    def registry(self) -> StrategyRegistry:
        return self._registry

    def pick(
        self, request: PickRequest, rng: Optional[random.Random] = None
    ) -> PickResult:
        """Draw winners for ``request``.

        Parameters
        ----------
        request : PickRequest
            Roster, history, policy and requested count.
        rng : Optional[random.Random], default: None
            Random source. Pass a seeded instance for reproducible results.

        Returns
        -------
        PickResult
            Winners, per-candidate traces, cooldown exclusions and metadata.
            An empty eligible pool produces an empty winner list.

        Notes
        -----
        The draw runs these steps:

        1. Filter the roster by status, manual exclusion and gender scope.
        2. Apply the cooldown derived from the class's pick history, relaxing
           it if it would leave nobody.
        3. Resolve the strategy preset (unknown ids fall back to ``classic``).
        4. Sample ``min(requested_count, pool size)`` winners without
           replacement.

        Raises
        ------
        ValueError
            If ``requested_count`` is less than ``1`` or the roster has
            duplicate ids.
        """
        if request.requested_count < 1:
            raise ValueError("requested_count must be at least 1")
        _ensure_unique_ids(request.roster)
        policy = request.policy
        notes: list[str] = []

        eligibility = filter_candidates(
            request.roster,
            gender_scope=request.gender_scope,
            manual_excluded_ids=request.manual_excluded_ids,
        )
        index = HistoryIndex(request.history)
        cooldown = apply_cooldown(eligibility.pool, index, policy, request.class_id)
        if cooldown.relaxed:
            notes.append("cooldown relaxed: it would have excluded every candidate")

        strategy = self._registry.resolve(policy.strategy_preset)
        if policy.weighted_random and strategy.id != policy.strategy_preset:
            notes.append(
                f"unknown strategy '{policy.strategy_preset}', used '{strategy.id}'"
            )

        weights = compute_weights(cooldown.pool, strategy, policy.weighted_random)
        if cooldown.pool and not any(weights.values()):
            notes.append("all weights were zero, drew uniformly")

        winners = draw(
            cooldown.pool,
            strategy,
            request.requested_count,
            rng,
            weighted_random=policy.weighted_random,
            prioritize_unpicked=policy.prioritize_unpicked_count,
            weights=weights,
        )
        logger.debug(
            f"Pick for class '{request.class_id}': {len(cooldown.pool)} eligible, "
            f"{len(winners)}/{request.requested_count} drawn"
        )

        return build_pick_result(
            roster=request.roster,
            stubs=eligibility.stubs,
            cooldown_excluded_ids=cooldown.excluded_ids,
            weights=weights,
            winners=winners,
            policy=policy,
            requested_count=request.requested_count,
            strategy_id=strategy.id,
            generated_at=self._clock(),
            cooldown_relaxed=cooldown.relaxed,
            fallback_notes=notes,
        )

    def group(
        self, request: GroupRequest, rng: Optional[random.Random] = None
    ) -> GroupResult:
        """Partition the eligible roster of ``request`` into groups.

        Raises
        ------
        ValueError
            If ``group_count`` is less than ``2`` or the roster has duplicate
            ids.
        """
        if request.group_count < 2:
            raise ValueError("group_count must be at least 2")
        _ensure_unique_ids(request.roster)
        policy = request.policy
        notes: list[str] = []

        eligibility = filter_candidates(
            request.roster, manual_excluded_ids=request.manual_excluded_ids
        )
        outcome = partition(
            eligibility.pool,
            request.group_count,
            policy,
            HistoryIndex(request.history),
            rng,
            class_id=request.class_id,
        )
        if outcome.relaxed:
            notes.append(
                f"pair avoidance relaxed: {len(outcome.unresolved_pairs)} recent pairs share a group"
            )
        logger.debug(
            f"Grouping for class '{request.class_id}': {len(eligibility.pool)} "
            f"candidates into {len(outcome.groups)} groups"
        )

        return build_group_result(
            roster=request.roster,
            stubs=eligibility.stubs,
            groups=outcome.groups,
            policy=policy,
            group_count=request.group_count,
            generated_at=self._clock(),
            unresolved_pairs=outcome.unresolved_pairs,
            conflicts_relaxed=outcome.relaxed,
            fallback_notes=notes,
        )


selection_engine = SelectionEngine()

__all__ = [
    "GroupRequest",
    "PickRequest",
    "SelectionEngine",
    "selection_engine",
]
