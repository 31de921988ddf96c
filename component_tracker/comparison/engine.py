"""Consistency engine for same-named components across repositories.

Groups stored components by exact name, scores how alike the
implementations are and lists the human-readable differences. Scoring is
a heuristic over four factors worth 25 points each; a factor whose
precondition is not met is left out of both the earned points and the
active weight.
"""

import math
from dataclasses import dataclass
from itertools import combinations

from rapidfuzz.distance import Levenshtein

from ..models import (
    DEFAULT_CATEGORY,
    Component,
    ComponentComparison,
    Repository,
    RepositoryPresence,
)
from ..store import RepositoryStore
from ..tracker_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.ENGINE)


@dataclass(frozen=True)
class ScoringWeights:
    """Points per similarity factor. Changing these changes observable scores."""

    category: float = 25.0
    tags: float = 25.0
    variants: float = 25.0
    variant_penalty: float = 5.0  # Points lost per variant of difference
    description: float = 25.0


DEFAULT_WEIGHTS = ScoringWeights()


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def _tags(component: Component) -> set[str]:
    return set(component.tags or [])


def _variant_count(component: Component) -> int:
    return len(component.variants or [])


def _category(component: Component) -> str:
    return component.category or DEFAULT_CATEGORY


def description_similarity(a: str, b: str) -> float:
    """Normalized edit-distance similarity in [0, 1]."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def similarity(
    a: Component, b: Component, weights: ScoringWeights = DEFAULT_WEIGHTS
) -> float:
    """Pairwise similarity of two implementations on a 0-100 scale.

    Symmetric in its arguments.

    Args:
        a: First component.
        b: Second component.
        weights: Factor weights.

    Returns:
        100 * earned points / active weight.
    """
    earned = 0.0
    active = 0.0

    # Category
    active += weights.category
    if _category(a) == _category(b):
        earned += weights.category

    # Tag overlap (Jaccard); two empty tag sets agree fully
    tags_a, tags_b = _tags(a), _tags(b)
    union = tags_a | tags_b
    active += weights.tags
    if union:
        earned += weights.tags * len(tags_a & tags_b) / len(union)
    else:
        earned += weights.tags

    # Variant count closeness
    active += weights.variants
    diff = abs(_variant_count(a) - _variant_count(b))
    earned += max(0.0, weights.variants - weights.variant_penalty * diff)

    # Description, only when both sides have one
    if a.description and b.description:
        active += weights.description
        earned += weights.description * description_similarity(
            a.description, b.description
        )

    return 100.0 * earned / active if active else 100.0


def consistency_score(
    implementations: list[Component], weights: ScoringWeights = DEFAULT_WEIGHTS
) -> int:
    """Mean pairwise similarity over all unordered pairs, rounded half-up."""
    if len(implementations) <= 1:
        return 100
    scores = [similarity(a, b, weights) for a, b in combinations(implementations, 2)]
    return round_half_up(sum(scores) / len(scores))


def find_differences(implementations: list[Component]) -> list[str]:
    """Human-readable differences between implementations of one name."""
    if len(implementations) <= 1:
        return []

    differences = []

    categories: list[str] = []
    for component in implementations:
        category = _category(component)
        if category not in categories:
            categories.append(category)
    if len(categories) > 1:
        differences.append(f"Different categories: {', '.join(categories)}")

    counts = [_variant_count(c) for c in implementations]
    if min(counts) != max(counts):
        differences.append(f"Different variant counts: {min(counts)} to {max(counts)}")

    tag_sets = [_tags(c) for c in implementations]
    if set.union(*tag_sets) != set.intersection(*tag_sets):
        differences.append("Inconsistent tags across repositories")

    return differences


class ConsistencyEngine:
    """Builds component comparisons from the current repository store."""

    def __init__(self, store: RepositoryStore, weights: ScoringWeights = DEFAULT_WEIGHTS):
        self.store = store
        self.weights = weights

    def group_by_name(self) -> dict[str, dict[str, Component]]:
        """Map component name to ``{repository_id: component}``.

        Names match exactly (case-sensitive). Within one repository the
        last component of a name in library order is kept.
        """
        groups: dict[str, dict[str, Component]] = {}
        for library in self.store.list_libraries():
            repository_id = library.repository.id
            for component in library.components:
                if not component.name:
                    continue
                groups.setdefault(component.name, {})[repository_id] = component
        return groups

    def compare_name(
        self,
        name: str,
        implementations: dict[str, Component],
        repositories: list[Repository],
    ) -> ComponentComparison:
        """Build the comparison for one component name."""
        presence = [
            RepositoryPresence(
                repository_id=repository.id,
                repository_name=repository.name,
                exists=repository.id in implementations,
                component=implementations.get(repository.id),
            )
            for repository in repositories
        ]
        components = list(implementations.values())
        return ComponentComparison(
            component_name=name,
            repositories=presence,
            consistency_score=consistency_score(components, self.weights),
            differences=find_differences(components),
        )

    def compare(self) -> list[ComponentComparison]:
        """Compare every component name across all repositories.

        Returns:
            Comparisons sorted by ascending consistency score (stable).
        """
        repositories = self.store.list_repositories()
        comparisons = [
            self.compare_name(name, implementations, repositories)
            for name, implementations in self.group_by_name().items()
        ]
        comparisons.sort(key=lambda c: c.consistency_score)

        logger.debug(
            f"Compared {len(comparisons)} component names across "
            f"{len(repositories)} repositories"
        )
        return comparisons
