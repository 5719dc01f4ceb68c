"""Weighted sampling without replacement."""

from __future__ import annotations

import random
from typing import Optional, Sequence

from .strategies import StrategyDescriptor
from .types import Candidate, WeightContext


def compute_weights(
    pool: Sequence[Candidate],
    strategy: StrategyDescriptor,
    weighted_random: bool = True,
) -> dict[str, float]:
    """Return the draw weight of every pool member keyed by id.

    The context handed to the transform describes the whole pool, so the
    weights do not change between draw steps. With ``weighted_random`` off
    every candidate weighs ``1.0`` regardless of the strategy.
    """
    if not weighted_random:
        return {c.id: 1.0 for c in pool}
    context = WeightContext.for_pool(pool)
    return {c.id: strategy.weight(c, context) for c in pool}


def _pick_index(weights: Sequence[float], rng: random.Random) -> int:
    """Draw one index with probability proportional to ``weights``.

    Falls back to a uniform choice when every weight is zero.
    """
    total = sum(weights)
    if total <= 0:
        return rng.randrange(len(weights))

    target = rng.random() * total
    cumulative = 0.0
    for index, weight in enumerate(weights):
        cumulative += weight
        if target < cumulative:
            return index
    # Floating point drift can leave ``target`` at the very top of the range;
    # the last candidate with a positive weight owns that slice.
    for index in range(len(weights) - 1, -1, -1):
        if weights[index] > 0:
            return index
    return len(weights) - 1


def draw(
    pool: Sequence[Candidate],
    strategy: StrategyDescriptor,
    requested_count: int,
    rng: Optional[random.Random] = None,
    *,
    weighted_random: bool = True,
    prioritize_unpicked: int = 0,
    weights: Optional[dict[str, float]] = None,
) -> list[str]:
    """Draw up to ``requested_count`` distinct winners from ``pool``.

    Parameters
    ----------
    pool : Sequence[Candidate]
        Eligible candidates, in roster order.
    strategy : StrategyDescriptor
        Strategy whose transform provides each candidate's weight.
    requested_count : int
        Number of winners requested. Must be at least ``1``.
    rng : Optional[random.Random], default: None
        Random source. Pass a seeded instance for reproducible draws.
    weighted_random : bool, default: True
        When ``False`` all candidates weigh the same.
    prioritize_unpicked : int, default: 0
        For this many initial steps, draw only among remaining candidates with
        ``pick_count == 0`` while any exist.
    weights : Optional[dict[str, float]], default: None
        Precomputed weights from :func:`compute_weights`.

    Returns
    -------
    list[str]
        Ordered winner ids, ``min(requested_count, len(pool))`` long.

    Raises
    ------
    ValueError
        If ``requested_count`` is less than ``1``.
    """
    if requested_count < 1:
        raise ValueError("requested_count must be at least 1")
    rng = rng or random.Random()
    if weights is None:
        weights = compute_weights(pool, strategy, weighted_random)

    remaining = list(pool)
    winners: list[str] = []
    effective_count = min(requested_count, len(remaining))

    for step in range(effective_count):
        candidates = remaining
        if step < prioritize_unpicked:
            unpicked = [c for c in remaining if c.pick_count == 0]
            if unpicked:
                candidates = unpicked

        index = _pick_index([weights.get(c.id, 0.0) for c in candidates], rng)
        winner = candidates[index]
        winners.append(winner.id)
        remaining = [c for c in remaining if c.id != winner.id]

    return winners


__all__ = ["compute_weights", "draw"]
