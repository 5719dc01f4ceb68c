"""Value objects shared by the selection engine components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional


class CandidateStatus(str, Enum):
    ACTIVE = "active"
    ABSENT = "absent"
    EXCLUDED = "excluded"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class EventKind(str, Enum):
    PICK = "pick"
    GROUP = "group"


class GroupStrategy(str, Enum):
    RANDOM = "random"
    BALANCED_SCORE = "balanced-score"


class ExclusionReason(str, Enum):
    """Why a candidate did not enter the pool, in evaluation priority order."""

    STATUS_INACTIVE = "status_inactive"
    MANUALLY_EXCLUDED = "manually_excluded"
    GENDER_SCOPE_MISMATCH = "gender_scope_mismatch"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class Candidate:
    """One participant of a roster.

    Attributes
    ----------
    id : str
        Stable identity of the candidate within the roster.
    display_weight : int
        User-assigned base weight. Must be a positive integer.
    pick_count : int
        Lifetime number of times the candidate has been selected.
    score : int
        Signed score maintained by the caller.
    last_picked_at : Optional[datetime]
        When the candidate was last selected, if ever.
    status : CandidateStatus
        Only ``active`` candidates can enter a pool.
    gender : Optional[Gender]
        Used for gender-scoped draws.
    name : Optional[str]
        Display label; not used by any decision.
    """

    id: str
    display_weight: int = 1
    pick_count: int = 0
    score: int = 0
    last_picked_at: Optional[datetime] = None
    status: CandidateStatus = CandidateStatus.ACTIVE
    gender: Optional[Gender] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("candidate id must be a non-empty string")
        if self.display_weight < 1:
            raise ValueError(
                f"candidate '{self.id}' display_weight must be a positive integer"
            )
        if self.pick_count < 0:
            raise ValueError(f"candidate '{self.id}' pick_count must be non-negative")
        # Accept raw strings coming from storage.
        object.__setattr__(self, "status", CandidateStatus(self.status))
        if self.gender is not None:
            object.__setattr__(self, "gender", Gender(self.gender))

    @property
    def is_active(self) -> bool:
        return self.status is CandidateStatus.ACTIVE


@dataclass(frozen=True)
class FairnessPolicy:
    """Fairness configuration in effect for a single call.

    ``cooldown_rounds`` and ``pair_avoid_rounds`` count the most recent
    matching history events; they are not durations. ``cooldown_rounds == 0``
    selects the cyclic mode (nobody repeats until everyone was drawn once).
    """

    weighted_random: bool = False
    prevent_repeat: bool = False
    cooldown_rounds: int = 0
    strategy_preset: str = "classic"
    group_strategy: GroupStrategy = GroupStrategy.RANDOM
    pair_avoid_rounds: int = 0
    auto_relax_on_conflict: bool = True
    prioritize_unpicked_count: int = 0

    def __post_init__(self) -> None:
        for name in ("cooldown_rounds", "pair_avoid_rounds", "prioritize_unpicked_count"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer")
        object.__setattr__(self, "group_strategy", GroupStrategy(self.group_strategy))

    def to_json(self) -> dict[str, Any]:
        return {
            "weighted_random": self.weighted_random,
            "prevent_repeat": self.prevent_repeat,
            "cooldown_rounds": self.cooldown_rounds,
            "strategy_preset": self.strategy_preset,
            "group_strategy": self.group_strategy.value,
            "pair_avoid_rounds": self.pair_avoid_rounds,
            "auto_relax_on_conflict": self.auto_relax_on_conflict,
            "prioritize_unpicked_count": self.prioritize_unpicked_count,
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "FairnessPolicy":
        """Rebuild a policy from :meth:`to_json` output, ignoring unknown keys."""
        defaults = cls()
        return cls(
            weighted_random=bool(data.get("weighted_random", defaults.weighted_random)),
            prevent_repeat=bool(data.get("prevent_repeat", defaults.prevent_repeat)),
            cooldown_rounds=int(data.get("cooldown_rounds", defaults.cooldown_rounds)),
            strategy_preset=str(data.get("strategy_preset", defaults.strategy_preset)),
            group_strategy=GroupStrategy(
                data.get("group_strategy", defaults.group_strategy.value)
            ),
            pair_avoid_rounds=int(
                data.get("pair_avoid_rounds", defaults.pair_avoid_rounds)
            ),
            auto_relax_on_conflict=bool(
                data.get("auto_relax_on_conflict", defaults.auto_relax_on_conflict)
            ),
            prioritize_unpicked_count=int(
                data.get("prioritize_unpicked_count", defaults.prioritize_unpicked_count)
            ),
        )


@dataclass(frozen=True)
class HistoryEvent:
    """An immutable past draw or grouping, supplied in full on every call."""

    timestamp: datetime
    class_id: str
    kind: EventKind
    picked_ids: tuple[str, ...] = ()
    groups: tuple[tuple[str, ...], ...] = ()
    policy_snapshot: Optional[FairnessPolicy] = None
    id: Optional[str] = None
    cooldown_excluded_ids: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        # Naive timestamps (e.g. read back from SQLite) are taken as UTC.
        if self.timestamp.tzinfo is None:
            object.__setattr__(
                self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc)
            )
        object.__setattr__(self, "kind", EventKind(self.kind))
        object.__setattr__(self, "picked_ids", tuple(self.picked_ids))
        object.__setattr__(
            self, "groups", tuple(tuple(group) for group in self.groups)
        )
        object.__setattr__(
            self, "cooldown_excluded_ids", frozenset(self.cooldown_excluded_ids)
        )


@dataclass(frozen=True)
class WeightContext:
    """Pool-level figures a weight transform may take into account."""

    pool_size: int = 0
    mean_pick_count: float = 0.0
    max_score: int = 0

    @classmethod
    def for_pool(cls, pool: Iterable[Candidate]) -> "WeightContext":
        members = list(pool)
        if not members:
            return cls()
        return cls(
            pool_size=len(members),
            mean_pick_count=sum(c.pick_count for c in members) / len(members),
            max_score=max(c.score for c in members),
        )


@dataclass(frozen=True)
class CandidateTrace:
    """Per-candidate audit record used to explain a draw."""

    candidate_id: str
    eligible: bool
    reason: Optional[ExclusionReason] = None
    weight: float = 0.0
    base_weight: int = 1

    def to_json(self) -> dict[str, Any]:
        return {
            "candidate_id": self.candidate_id,
            "eligible": self.eligible,
            "reason": self.reason.value if self.reason is not None else None,
            "weight": self.weight,
            "base_weight": self.base_weight,
        }


@dataclass(frozen=True)
class SelectionMeta:
    engine_version: str
    policy_snapshot: FairnessPolicy
    requested_count: int
    actual_count: int
    generated_at: datetime
    strategy_id: str
    cooldown_relaxed: bool = False
    fallback_notes: tuple[str, ...] = ()

    def to_json(self) -> dict[str, Any]:
        return {
            "engine_version": self.engine_version,
            "policy_snapshot": self.policy_snapshot.to_json(),
            "requested_count": self.requested_count,
            "actual_count": self.actual_count,
            "generated_at": self.generated_at.isoformat(),
            "strategy_id": self.strategy_id,
            "cooldown_relaxed": self.cooldown_relaxed,
            "fallback_notes": list(self.fallback_notes),
        }


@dataclass(frozen=True)
class GroupMeta:
    engine_version: str
    policy_snapshot: FairnessPolicy
    group_count: int
    generated_at: datetime
    conflicts_relaxed: bool = False
    fallback_notes: tuple[str, ...] = ()

    def to_json(self) -> dict[str, Any]:
        return {
            "engine_version": self.engine_version,
            "policy_snapshot": self.policy_snapshot.to_json(),
            "group_count": self.group_count,
            "generated_at": self.generated_at.isoformat(),
            "conflicts_relaxed": self.conflicts_relaxed,
            "fallback_notes": list(self.fallback_notes),
        }


@dataclass(frozen=True)
class PickResult:
    """Outcome of a pick request.

    Attributes
    ----------
    winners : tuple[str, ...]
        Ordered winner ids, unique, at most ``requested_count`` long.
    traces : Mapping[str, CandidateTrace]
        One trace per roster candidate.
    cooldown_excluded_ids : frozenset[str]
        Ids barred by the cooldown window. When the cooldown was relaxed these
        ids were admitted back into the pool but are still reported here.
    meta : SelectionMeta
        Audit metadata persisted by callers.
    """

    winners: tuple[str, ...]
    traces: Mapping[str, CandidateTrace]
    cooldown_excluded_ids: frozenset[str]
    meta: SelectionMeta

    def to_json(self) -> dict[str, Any]:
        return {
            "winners": list(self.winners),
            "traces": {key: trace.to_json() for key, trace in self.traces.items()},
            "cooldown_excluded_ids": sorted(self.cooldown_excluded_ids),
            "meta": self.meta.to_json(),
        }


@dataclass(frozen=True)
class GroupResult:
    """Outcome of a group request.

    ``unresolved_pairs`` lists recently-grouped pairs that still share a group.
    It is empty when pair avoidance succeeded or was not requested.
    """

    groups: tuple[tuple[str, ...], ...]
    traces: Mapping[str, CandidateTrace]
    meta: GroupMeta
    unresolved_pairs: tuple[tuple[str, str], ...] = field(default=())

    @property
    def has_unresolved_conflicts(self) -> bool:
        return bool(self.unresolved_pairs)

    def to_json(self) -> dict[str, Any]:
        return {
            "groups": [list(group) for group in self.groups],
            "traces": {key: trace.to_json() for key, trace in self.traces.items()},
            "unresolved_pairs": [list(pair) for pair in self.unresolved_pairs],
            "meta": self.meta.to_json(),
        }


__all__ = [
    "Candidate",
    "CandidateStatus",
    "CandidateTrace",
    "EventKind",
    "ExclusionReason",
    "FairnessPolicy",
    "Gender",
    "GroupMeta",
    "GroupResult",
    "GroupStrategy",
    "HistoryEvent",
    "PickResult",
    "SelectionMeta",
    "WeightContext",
]
