"""Partition a pool into balanced groups."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
import logging
import random
from typing import Iterable, Optional, Sequence

from .cooldown import HistoryIndex
from .types import Candidate, EventKind, FairnessPolicy, GroupStrategy, HistoryEvent

logger = logging.getLogger(__name__)

Pair = frozenset


@dataclass(frozen=True)
class PartitionOutcome:
    """Groups produced by :func:`partition`.

    Attributes
    ----------
    groups : tuple[tuple[str, ...], ...]
        Candidate ids per group. Sizes differ by at most one.
    unresolved_pairs : tuple[tuple[str, str], ...]
        Recently grouped pairs that still share a group.
    relaxed : bool
        ``True`` when conflicts remained and the best-effort assignment was
        accepted because ``auto_relax_on_conflict`` is enabled.
    """

    groups: tuple[tuple[str, ...], ...]
    unresolved_pairs: tuple[tuple[str, str], ...] = ()
    relaxed: bool = False


def shuffled(items: Sequence[Candidate], rng: random.Random) -> list[Candidate]:
    """Fisher-Yates shuffle returning a new list."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randrange(i + 1)
        result[i], result[j] = result[j], result[i]
    return result


def deal_round_robin(items: Sequence[Candidate], group_count: int) -> list[list[Candidate]]:
    buckets: list[list[Candidate]] = [[] for _ in range(group_count)]
    for index, candidate in enumerate(items):
        buckets[index % group_count].append(candidate)
    return buckets


def snake_draft(items: Sequence[Candidate], group_count: int) -> list[list[Candidate]]:
    """Deal ``items`` in 0..N-1, N-1..0 order so ranks interleave evenly."""
    buckets: list[list[Candidate]] = [[] for _ in range(group_count)]
    for index, candidate in enumerate(items):
        round_number, offset = divmod(index, group_count)
        if round_number % 2 == 1:
            offset = group_count - 1 - offset
        buckets[offset].append(candidate)
    return buckets


def recent_pairs(
    history: Iterable[HistoryEvent] | HistoryIndex, class_id: str, rounds: int
) -> set[Pair]:
    """Return every id pair that shared a group in the last ``rounds`` group events."""
    if rounds <= 0:
        return set()
    index = history if isinstance(history, HistoryIndex) else HistoryIndex(history)
    pairs: set[Pair] = set()
    for event in index.recent(class_id, EventKind.GROUP, rounds):
        for group in event.groups:
            for a, b in combinations(dict.fromkeys(group), 2):
                pairs.add(Pair((a, b)))
    return pairs


def _group_conflicts(group: Sequence[str], pairs: set[Pair]) -> list[tuple[str, str]]:
    return [
        (a, b) for a, b in combinations(group, 2) if Pair((a, b)) in pairs
    ]


def _adjacency(pairs: set[Pair]) -> dict[str, frozenset[str]]:
    partners: dict[str, set[str]] = {}
    for pair in pairs:
        a, b = tuple(pair)
        partners.setdefault(a, set()).add(b)
        partners.setdefault(b, set()).add(a)
    return {member: frozenset(others) for member, others in partners.items()}


def _best_swap_for(
    member: str,
    g: int,
    groups: list[list[str]],
    members: list[set[str]],
    adjacency: dict[str, frozenset[str]],
    scores: dict[str, int],
) -> Optional[tuple[int, int]]:
    """Return ``(h, j)`` for the swap of ``member`` that removes the most conflicts.

    Ties prefer the partner with the closest score, which keeps
    score-balanced groups close to balanced.
    """
    own = adjacency.get(member, frozenset())
    current = len(own & members[g])
    best: Optional[tuple[int, int]] = None
    best_key: Optional[tuple[int, int]] = None
    for h, other_group in enumerate(groups):
        if h == g:
            continue
        joining = len(own & members[h])
        for j, other in enumerate(other_group):
            theirs = adjacency.get(other, frozenset())
            before = current + len(theirs & members[h])
            after = (
                joining
                - (other in own)
                + len(theirs & members[g])
                - (member in theirs)
            )
            gain = before - after
            if gain <= 0:
                continue
            key = (-gain, abs(scores[member] - scores[other]))
            if best_key is None or key < best_key:
                best_key = key
                best = (h, j)
    return best


def resolve_pair_conflicts(
    groups: list[list[str]],
    pairs: set[Pair],
    scores: dict[str, int],
    max_swaps: Optional[int] = None,
) -> list[list[str]]:
    """Greedily swap conflicting members between groups while conflicts drop.

    Each conflicting member in turn is swapped with the partner that removes
    the most conflicts. Every swap strictly lowers the conflict count, so by
    default at most that many swaps are made; ``max_swaps`` lowers the bound.
    Group sizes never change.
    """
    if not pairs:
        return groups
    adjacency = _adjacency(pairs)
    members = [set(group) for group in groups]
    initial = sum(
        len(adjacency.get(member, frozenset()) & members[g])
        for g, group in enumerate(groups)
        for member in group
    ) // 2
    limit = initial if max_swaps is None else min(max_swaps, initial)

    swaps = 0
    improved = True
    while improved and swaps < limit:
        improved = False
        for g, group in enumerate(groups):
            for i in range(len(group)):
                if swaps >= limit:
                    return groups
                member = group[i]
                if not adjacency.get(member, frozenset()) & members[g]:
                    continue
                swap = _best_swap_for(member, g, groups, members, adjacency, scores)
                if swap is None:
                    continue
                h, j = swap
                other = groups[h][j]
                group[i], groups[h][j] = other, member
                members[g].discard(member)
                members[g].add(other)
                members[h].discard(other)
                members[h].add(member)
                swaps += 1
                improved = True
    return groups


def partition(
    pool: Sequence[Candidate],
    group_count: int,
    policy: FairnessPolicy,
    history: Iterable[HistoryEvent] | HistoryIndex,
    rng: Optional[random.Random] = None,
    class_id: Optional[str] = None,
) -> PartitionOutcome:
    """Split ``pool`` into ``group_count`` groups.

    Parameters
    ----------
    pool : Sequence[Candidate]
        Eligible candidates.
    group_count : int
        Number of groups. Must be at least ``2``.
    policy : FairnessPolicy
        ``group_strategy`` selects random dealing or a score snake draft;
        ``pair_avoid_rounds`` and ``auto_relax_on_conflict`` control pair
        avoidance.
    history : Iterable[HistoryEvent] | HistoryIndex
        History used to find recently grouped pairs.
    rng : Optional[random.Random], default: None
        Random source for the ``random`` strategy.
    class_id : Optional[str], default: None
        Class whose group events count for pair avoidance. Pair avoidance is
        skipped when omitted.

    Returns
    -------
    PartitionOutcome
        Ordered groups and any pair-avoidance conflicts left over. An empty
        pool yields no groups.

    Raises
    ------
    ValueError
        If ``group_count`` is less than ``2``.
    """
    if group_count < 2:
        raise ValueError("group_count must be at least 2")
    members = list(pool)
    if not members:
        return PartitionOutcome(groups=())

    rng = rng or random.Random()
    if policy.group_strategy is GroupStrategy.BALANCED_SCORE:
        ranked = sorted(members, key=lambda c: -c.score)
        buckets = snake_draft(ranked, group_count)
    else:
        buckets = deal_round_robin(shuffled(members, rng), group_count)

    groups = [[c.id for c in bucket] for bucket in buckets]

    unresolved: list[tuple[str, str]] = []
    relaxed = False
    if policy.pair_avoid_rounds > 0 and class_id is not None:
        pairs = recent_pairs(history, class_id, policy.pair_avoid_rounds)
        scores = {c.id: c.score for c in members}
        groups = resolve_pair_conflicts(groups, pairs, scores)
        for group in groups:
            unresolved.extend(_group_conflicts(group, pairs))
        if unresolved:
            if policy.auto_relax_on_conflict:
                relaxed = True
                logger.debug(
                    f"Pair avoidance relaxed for class '{class_id}': "
                    f"{len(unresolved)} conflicts accepted"
                )
            else:
                logger.debug(
                    f"Pair avoidance left {len(unresolved)} unresolved conflicts "
                    f"for class '{class_id}'"
                )

    return PartitionOutcome(
        groups=tuple(tuple(group) for group in groups),
        unresolved_pairs=tuple(unresolved),
        relaxed=relaxed,
    )


__all__ = [
    "PartitionOutcome",
    "deal_round_robin",
    "partition",
    "recent_pairs",
    "resolve_pair_conflicts",
    "shuffled",
    "snake_draft",
]
