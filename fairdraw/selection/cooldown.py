"""Derive temporarily barred candidates from draw history."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
import logging
from typing import Iterable, Optional, Sequence

from .types import Candidate, EventKind, FairnessPolicy, HistoryEvent

logger = logging.getLogger(__name__)


class HistoryIndex:
    """History events grouped by ``(class_id, kind)``, newest first.

    Events with equal timestamps keep their relative order from the supplied
    history, with later entries treated as newer.
    """

    def __init__(self, history: Iterable[HistoryEvent]) -> None:
        buckets: dict[tuple[str, EventKind], list[tuple[int, HistoryEvent]]] = defaultdict(list)
        for position, event in enumerate(history):
            buckets[(event.class_id, event.kind)].append((position, event))
        self._events: dict[tuple[str, EventKind], tuple[HistoryEvent, ...]] = {
            key: tuple(
                event
                for _, event in sorted(
                    entries,
                    key=lambda item: (item[1].timestamp, item[0]),
                    reverse=True,
                )
            )
            for key, entries in buckets.items()
        }

    def recent(
        self, class_id: str, kind: EventKind, limit: Optional[int] = None
    ) -> tuple[HistoryEvent, ...]:
        """Return up to ``limit`` most recent events of ``kind`` for ``class_id``."""
        events = self._events.get((class_id, EventKind(kind)), ())
        if limit is None:
            return events
        return events[:limit]


@dataclass(frozen=True)
class CooldownOutcome:
    """Pool after applying the cooldown.

    Attributes
    ----------
    pool : tuple[Candidate, ...]
        Candidates available for the draw.
    excluded_ids : frozenset[str]
        Pool members barred by the cooldown window, reported even when the
        cooldown had to be relaxed.
    relaxed : bool
        ``True`` when the exclusion would have emptied the pool and was
        discarded for this call.
    """

    pool: tuple[Candidate, ...]
    excluded_ids: frozenset[str]
    relaxed: bool = False


def _windowed_ids(events: Sequence[HistoryEvent]) -> set[str]:
    barred: set[str] = set()
    for event in events:
        barred.update(event.picked_ids)
    return barred


def _cycle_ids(events: Sequence[HistoryEvent], pool_ids: frozenset[str]) -> set[str]:
    """Return ids drawn in the cycle that is still in progress.

    ``events`` are newest first. Ids are collected newest to oldest until one
    repeats, which marks the previous cycle's end and bars everything
    collected. Collecting every pool member first means the cycle is complete
    and nobody is barred. Ids outside the pool are ignored.
    """
    collected: set[str] = set()
    for event in events:
        for picked_id in reversed(event.picked_ids):
            if picked_id not in pool_ids:
                continue
            if picked_id in collected:
                return collected
            collected.add(picked_id)
            if len(collected) >= len(pool_ids):
                return set()
    return collected


def apply_cooldown(
    pool: Sequence[Candidate],
    history: Iterable[HistoryEvent] | HistoryIndex,
    policy: FairnessPolicy,
    class_id: str,
) -> CooldownOutcome:
    """Remove recently picked candidates from ``pool``.

    Parameters
    ----------
    pool : Sequence[Candidate]
        Pool produced by the eligibility filter.
    history : Iterable[HistoryEvent] | HistoryIndex
        Full history supplied by the caller, or an index already built from it.
    policy : FairnessPolicy
        ``prevent_repeat`` enables the cooldown. ``cooldown_rounds > 0`` bars
        everyone picked in that many most recent pick events of the class;
        ``0`` bars everyone picked in the current, unfinished cycle.
    class_id : str
        Class whose pick events are considered.

    Returns
    -------
    CooldownOutcome
        Filtered pool. If the cooldown would leave nobody, the original pool
        is returned with ``relaxed`` set and the barred ids still reported.
    """
    members = tuple(pool)
    if not policy.prevent_repeat or not members:
        return CooldownOutcome(pool=members, excluded_ids=frozenset())

    index = history if isinstance(history, HistoryIndex) else HistoryIndex(history)
    pool_ids = frozenset(c.id for c in members)

    if policy.cooldown_rounds > 0:
        events = index.recent(class_id, EventKind.PICK, policy.cooldown_rounds)
        barred = _windowed_ids(events)
    else:
        events = index.recent(class_id, EventKind.PICK)
        barred = _cycle_ids(events, pool_ids)

    excluded_ids = frozenset(barred & pool_ids)
    if not excluded_ids:
        return CooldownOutcome(pool=members, excluded_ids=frozenset())

    remaining = tuple(c for c in members if c.id not in excluded_ids)
    if not remaining:
        logger.debug(
            f"Cooldown would exclude all {len(members)} candidates of class "
            f"'{class_id}'; relaxing for this draw"
        )
        return CooldownOutcome(pool=members, excluded_ids=excluded_ids, relaxed=True)
    return CooldownOutcome(pool=remaining, excluded_ids=excluded_ids)


__all__ = ["CooldownOutcome", "HistoryIndex", "apply_cooldown"]
