"""Cross-repository component consistency scoring."""

from .engine import (
    DEFAULT_WEIGHTS,
    ConsistencyEngine,
    ScoringWeights,
    consistency_score,
    find_differences,
    similarity,
)

__all__ = [
    "ConsistencyEngine",
    "ScoringWeights",
    "DEFAULT_WEIGHTS",
    "consistency_score",
    "find_differences",
    "similarity",
]
