"""Trust scoring for distance query results.

Maps a hop count, a shortest-path count and the mutual-follow flag to a
score in [0, 1]:

    base   = 1 / (hops + 1)
    weight = distance weight for this hop count
    bonus  = mutual_bonus (if mutual) + min(path_bonus * (paths - 1), max_path_bonus)
    score  = clamp(base * weight + bonus, 0, 1)

The scoring function is stateless. Defaults live in the configuration
layer (``DEFAULT_SCORING`` / ``merge_scoring_config``), never in the
formula.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .defaults import (
    DEFAULT_DISTANCE_WEIGHTS,
    DEFAULT_MAX_PATH_BONUS,
    DEFAULT_MUTUAL_BONUS,
    DEFAULT_PATH_BONUS,
)


@dataclass
class ScoringConfig:
    """Weights for trust score calculation."""

    distance_weights: dict[int, float] = field(default_factory=dict)
    mutual_bonus: float = 0.0
    path_bonus: float = 0.0
    max_path_bonus: float = 0.0

    def weight_for(self, hops: int) -> float:
        """Distance weight for *hops*.

        Uses the exact entry when configured. Otherwise falls back to the
        largest configured hop count below *hops* (so distant hops reuse the
        most distant weight), or the smallest configured one when *hops* is
        below every key. An empty map yields 0.
        """
        if not self.distance_weights:
            return 0.0
        if hops in self.distance_weights:
            return float(self.distance_weights[hops])
        lower = [k for k in self.distance_weights if k < hops]
        key = max(lower) if lower else min(self.distance_weights)
        return float(self.distance_weights[key])

    def to_dict(self) -> dict[str, Any]:
        return {
            "distance_weights": {str(k): v for k, v in self.distance_weights.items()},
            "mutual_bonus": self.mutual_bonus,
            "path_bonus": self.path_bonus,
            "max_path_bonus": self.max_path_bonus,
        }


DEFAULT_SCORING = ScoringConfig(
    distance_weights=dict(DEFAULT_DISTANCE_WEIGHTS),
    mutual_bonus=DEFAULT_MUTUAL_BONUS,
    path_bonus=DEFAULT_PATH_BONUS,
    max_path_bonus=DEFAULT_MAX_PATH_BONUS,
)


def merge_scoring_config(partial: ScoringConfig | Mapping[str, Any] | None = None) -> ScoringConfig:
    """Overlay a partial scoring configuration onto the defaults.

    Distance weights are merged key by key; scalar bonuses replace the
    default when present.
    """
    if partial is None:
        return ScoringConfig(
            distance_weights=dict(DEFAULT_SCORING.distance_weights),
            mutual_bonus=DEFAULT_SCORING.mutual_bonus,
            path_bonus=DEFAULT_SCORING.path_bonus,
            max_path_bonus=DEFAULT_SCORING.max_path_bonus,
        )
    if isinstance(partial, ScoringConfig):
        partial = {
            "distance_weights": partial.distance_weights,
            "mutual_bonus": partial.mutual_bonus,
            "path_bonus": partial.path_bonus,
            "max_path_bonus": partial.max_path_bonus,
        }

    weights = dict(DEFAULT_SCORING.distance_weights)
    for hops, weight in (partial.get("distance_weights") or {}).items():
        weights[int(hops)] = float(weight)

    def _pick(name: str) -> float:
        value = partial.get(name)
        return float(value) if value is not None else getattr(DEFAULT_SCORING, name)

    return ScoringConfig(
        distance_weights=weights,
        mutual_bonus=_pick("mutual_bonus"),
        path_bonus=_pick("path_bonus"),
        max_path_bonus=_pick("max_path_bonus"),
    )


def calculate_trust_score(
    hops: int,
    paths: int,
    mutual: bool | None,
    config: ScoringConfig,
) -> float:
    """Compute a trust score in [0, 1].

    Args:
        hops: Shortest-path length to the target (0 for self)
        paths: Number of distinct shortest paths
        mutual: Whether the target follows back (None when unknown)
        config: Full weight configuration

    Returns:
        Clamped trust score
    """
    base = 1.0 / (hops + 1)
    weight = config.weight_for(hops)

    bonus = 0.0
    if mutual:
        bonus += config.mutual_bonus
    if paths > 1:
        bonus += min(config.path_bonus * (paths - 1), config.max_path_bonus)

    score = base * weight + bonus
    return min(1.0, max(0.0, score))
