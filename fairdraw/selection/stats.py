"""Fairness statistics computed over draw history."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
import math
from typing import Iterable, Optional, Sequence

from .strategies import DEFAULT_STRATEGY_ID, DEFAULT_STRATEGY_REGISTRY, StrategyRegistry
from .types import Candidate, EventKind, HistoryEvent


@dataclass(frozen=True)
class StrategyUsage:
    strategy_id: str
    name: str
    count: int


@dataclass(frozen=True)
class FairnessReport:
    """Summary of how evenly picks were spread.

    Attributes
    ----------
    total_events : int
        Number of pick events considered.
    unique_picked : int
        Distinct candidates picked at least once.
    balance_index : int
        ``100 * (1 - coefficient of variation)`` of the pick counts over the
        active roster plus anyone picked, clamped to ``0..100``. ``100`` means
        everyone was picked equally often.
    cooldown_hit_count : int
        Pick events in which the cooldown barred at least one candidate.
    strategy_usage : tuple[StrategyUsage, ...]
        Pick events per strategy preset, most used first.
    """

    total_events: int
    unique_picked: int
    balance_index: int
    cooldown_hit_count: int
    strategy_usage: tuple[StrategyUsage, ...]


def balance_index(pick_counts: Sequence[int]) -> int:
    if not pick_counts:
        return 100
    mean = sum(pick_counts) / len(pick_counts)
    if mean == 0:
        return 100
    variance = sum((value - mean) ** 2 for value in pick_counts) / len(pick_counts)
    cv = math.sqrt(variance) / mean
    return max(0, min(100, round((1 - cv) * 100)))


def fairness_report(
    roster: Iterable[Candidate],
    history: Iterable[HistoryEvent],
    *,
    class_id: Optional[str] = None,
    registry: Optional[StrategyRegistry] = None,
) -> FairnessReport:
    """Compute a :class:`FairnessReport` from pick history.

    Parameters
    ----------
    roster : Iterable[Candidate]
        Roster whose active members count toward the balance index even if
        never picked.
    history : Iterable[HistoryEvent]
        History events; group events are ignored.
    class_id : Optional[str], default: None
        Restrict the report to one class.
    registry : Optional[StrategyRegistry], default: None
        Registry used to label strategies. Unknown ids are labelled as
        ``classic``, matching how the engine resolved them.
    """
    registry = registry or DEFAULT_STRATEGY_REGISTRY
    events = [
        event
        for event in history
        if event.kind is EventKind.PICK
        and (class_id is None or event.class_id == class_id)
    ]

    picked: Counter[str] = Counter()
    cooldown_hits = 0
    strategies: Counter[str] = Counter()
    for event in events:
        picked.update(event.picked_ids)
        if event.cooldown_excluded_ids:
            cooldown_hits += 1
        preset = (
            event.policy_snapshot.strategy_preset
            if event.policy_snapshot is not None
            else DEFAULT_STRATEGY_ID
        )
        strategies[preset] += 1

    population = {c.id for c in roster if c.is_active} | set(picked)
    counts = [picked.get(candidate_id, 0) for candidate_id in sorted(population)]

    usage = tuple(
        StrategyUsage(
            strategy_id=strategy_id,
            name=registry.resolve(strategy_id).name,
            count=count,
        )
        for strategy_id, count in sorted(
            strategies.items(), key=lambda item: (-item[1], item[0])
        )
    )
    return FairnessReport(
        total_events=len(events),
        unique_picked=len(picked),
        balance_index=balance_index(counts),
        cooldown_hit_count=cooldown_hits,
        strategy_usage=usage,
    )


__all__ = ["FairnessReport", "StrategyUsage", "balance_index", "fairness_report"]
